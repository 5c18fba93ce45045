"""Exception types raised by the gate package."""


class GateError(RuntimeError):
    """Base class for gate failures."""


class ValidationError(GateError):
    """Raised when incoming data fails validation."""


class InvalidDate(GateError):
    """Raised when a value cannot be interpreted as a calendar date."""


class StorageError(GateError):
    """Raised when the key/value store cannot be read or written."""


class MalformedRecord(StorageError):
    """Raised when persisted or downloaded JSON does not match the record schema."""


class SyncError(GateError):
    """Raised when a download or upload round trip fails."""
