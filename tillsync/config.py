"""tillsync configuration.

All settings can be overridden via environment variables with the
TILLSYNC_ prefix.
"""
import os
from dataclasses import dataclass, field
from pathlib import Path

from tillsync.core.constants import (
    FETCH_TIMEOUT_MS,
    PROBE_TIMEOUT_MS,
    WATCHDOG_INTERVAL_S,
    WRITE_TIMEOUT_MS,
)


@dataclass
class TillConfig:
    """Till configuration."""

    # Local storage
    data_dir: Path = field(default_factory=lambda: Path.home() / ".tillsync")
    tenant_id: str = "default"

    # Remote store (PostgREST-style)
    remote_url: str = ""
    api_key: str = ""
    transactions_table: str = "transactions"
    items_table: str = "transaction_items"

    # Timeouts
    fetch_timeout_ms: int = FETCH_TIMEOUT_MS
    write_timeout_ms: int = WRITE_TIMEOUT_MS
    probe_timeout_ms: int = PROBE_TIMEOUT_MS

    # Connectivity
    watchdog_interval_s: float = WATCHDOG_INTERVAL_S
    probe_path: str = "/rest/v1/"

    @classmethod
    def from_env(cls) -> "TillConfig":
        """Load configuration from environment variables."""
        config = cls()

        if "TILLSYNC_DATA_DIR" in os.environ:
            config.data_dir = Path(os.environ["TILLSYNC_DATA_DIR"]).expanduser()
        if "TILLSYNC_TENANT_ID" in os.environ:
            config.tenant_id = os.environ["TILLSYNC_TENANT_ID"]

        if "TILLSYNC_REMOTE_URL" in os.environ:
            config.remote_url = os.environ["TILLSYNC_REMOTE_URL"].rstrip("/")
        if "TILLSYNC_API_KEY" in os.environ:
            config.api_key = os.environ["TILLSYNC_API_KEY"]

        if "TILLSYNC_FETCH_TIMEOUT_MS" in os.environ:
            config.fetch_timeout_ms = int(os.environ["TILLSYNC_FETCH_TIMEOUT_MS"])
        if "TILLSYNC_WRITE_TIMEOUT_MS" in os.environ:
            config.write_timeout_ms = int(os.environ["TILLSYNC_WRITE_TIMEOUT_MS"])
        if "TILLSYNC_PROBE_TIMEOUT_MS" in os.environ:
            config.probe_timeout_ms = int(os.environ["TILLSYNC_PROBE_TIMEOUT_MS"])

        if "TILLSYNC_WATCHDOG_INTERVAL_S" in os.environ:
            config.watchdog_interval_s = float(os.environ["TILLSYNC_WATCHDOG_INTERVAL_S"])

        return config

    @property
    def probe_url(self) -> str:
        return f"{self.remote_url}{self.probe_path}"

    def validate(self) -> list[str]:
        """Validate configuration. Returns list of errors."""
        errors = []

        if not self.remote_url:
            errors.append("remote_url is not configured (set TILLSYNC_REMOTE_URL)")
        elif not self.remote_url.startswith(("http://", "https://")):
            errors.append(f"remote_url must be http(s), got {self.remote_url}")

        for name in ("fetch_timeout_ms", "write_timeout_ms", "probe_timeout_ms"):
            value = getattr(self, name)
            if value < 1:
                errors.append(f"{name} must be >= 1, got {value}")

        if self.watchdog_interval_s <= 0:
            errors.append(f"watchdog_interval_s must be > 0, got {self.watchdog_interval_s}")

        return errors
