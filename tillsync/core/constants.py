"""tillsync constants.

All magic numbers and storage keys live here.
"""

# Durable storage keys
QUEUE_STORAGE_KEY = "offline_queue"
MANUAL_OFFLINE_KEY = "manual_offline_mode"
RETRY_LEDGER_KEY = "offline_failures"
SELECTED_BRANCH_KEY = "selected_branch_id"
AUTH_SESSION_KEY = "auth_session"

# Transaction status written for completed checkouts
STATUS_COMPLETED = "completed"

# Connectivity
PROBE_TIMEOUT_MS = 4000
WATCHDOG_INTERVAL_S = 10.0
PROBE_OK_STATUSES = frozenset({401, 403})  # reached the backend, just not authorized

# Remote calls
FETCH_TIMEOUT_MS = 10000
WRITE_TIMEOUT_MS = 15000

# Actions failing this many passes are reported as stalled (still retried)
STALE_ATTEMPTS_THRESHOLD = 5
