class ScorecardError(Exception):
    """Base class for errors raised by the scorecard server."""


class CacheReadError(ScorecardError):
    """The snapshot file is missing, unreadable or malformed."""


class CacheWriteError(ScorecardError):
    """The snapshot file could not be persisted."""


class RemoteQueryError(ScorecardError):
    """A query against the remote warehouse failed."""

    def __init__(self, message: str, *, family: str | None = None, status: int | None = None):
        super().__init__(message)
        self.family = family
        self.status = status
