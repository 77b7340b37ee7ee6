# Sync/exceptions.py

class SyncError(Exception):
    """Base exception for the sync engine."""
    pass


class InvalidCutoffError(SyncError, ValueError):
    """The client-supplied `since` value is not a non-negative millisecond timestamp."""

    def __init__(self, raw_value, message="Invalid timestamp format. Use milliseconds since epoch."):
        super().__init__(message)
        self.raw_value = raw_value


class SyncStorageError(SyncError):
    """Reading one of the entity tables failed; the whole sync call is aborted."""

    def __init__(self, message, kind=None, *args):
        super().__init__(message, *args)
        self.kind = kind

    def __str__(self):
        base = super().__str__()
        return f"{base} (Kind: {self.kind})" if self.kind else base
