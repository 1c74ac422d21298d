"""Exception hierarchy for tillsync."""


class TillSyncError(Exception):
    """Base class for every tillsync error."""


class QueuePersistenceError(TillSyncError):
    """The offline queue could not be written to or read from durable storage.

    Raised when there is no fallback left for a sale. Never catch silently.
    """


class RemoteError(TillSyncError):
    """The remote store rejected a request."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: str | None = None,
        hint: str | None = None,
        status: int | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details
        self.hint = hint
        self.status = status

    def to_dict(self) -> dict:
        return {
            "message": self.message,
            "code": self.code,
            "details": self.details,
            "hint": self.hint,
            "status": self.status,
        }


class RemoteUnavailableError(RemoteError):
    """The remote store could not be reached (network down, timeout)."""


class UnknownActionError(TillSyncError):
    """A stored action carries a type tag this build does not know."""


class CheckoutError(TillSyncError):
    """The cart cannot be turned into a sale."""
