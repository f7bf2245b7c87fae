# packwarden/core/errors.py
from __future__ import annotations

__all__ = [
    "PackwardenError", "PackIOError", "RemoteError", "RateLimitedError",
    "ParseError", "ValidationError", "NoCompatibleFileError", "MissingHashError",
    "UnsupportedHashFormatError", "InstallInterrupted",
    "RATE_LIMIT_MARKERS", "isRateLimitError",
]

# Substrings in an error message that mean the catalog asked us to slow down
RATE_LIMIT_MARKERS: tuple[str, ...] = ("429", "rate limit", "Rate limit", "too many requests", "Too Many Requests")



class PackwardenError(Exception):
    """Base class for every error this package raises on purpose."""
    pass



class PackIOError(PackwardenError, OSError):
    """A pack file (record, index, pack file, bundle) could not be read or written."""
    def __init__(self, message: str, *, path: object = None):
        super().__init__(message)
        self.path = path



class RemoteError(PackwardenError):
    """
    The catalog answered with a non-2xx status, or could not be reached at all.

    statusCode is None for transport-level failures (DNS, connect, timeout).
    """
    def __init__(self, statusCode: int | None, message: str):
        prefix = f"HTTP {statusCode}: " if statusCode is not None else ""
        super().__init__(f"{prefix}{message[:200]}")
        self.statusCode = statusCode
        self.message = message



class RateLimitedError(RemoteError):
    """HTTP 429 from the catalog. retryAfter carries the server hint in seconds, when given."""
    retryAfter: float | None = None



class ParseError(PackwardenError):
    """A document exists but its content is malformed."""
    def __init__(self, message: str, *, kind: str = "malformed", path: object = None):
        super().__init__(message)
        self.kind = kind
        self.path = path



class ValidationError(PackwardenError):
    """A structural invariant is violated (bad side, empty name, ...). Reported, never auto-fixed."""
    def __init__(self, message: str, *, field: str | None = None):
        super().__init__(message)
        self.field = field



class NoCompatibleFileError(PackwardenError):
    """A catalog version carries no files at all."""
    pass



class MissingHashError(PackwardenError):
    """A catalog file declares no digest we know how to verify."""
    pass



class UnsupportedHashFormatError(PackwardenError, ValueError):
    pass



class InstallInterrupted(PackwardenError):
    """Raised into the import loop when the operator asks the process to stop."""
    def __init__(self, signum: int):
        super().__init__(f"Interrupted by signal {signum}")
        self.signum = signum



def isRateLimitError(err: BaseException) -> bool:
    if isinstance(err, RateLimitedError):
        return True
    message = str(err)
    return any(marker in message for marker in RATE_LIMIT_MARKERS)
