from __future__ import annotations


class EngineError(Exception):
    """Base class for every error raised by the session engine."""


class NotFound(EngineError):
    pass


class Forbidden(EngineError):
    pass


class SessionClosed(EngineError):
    pass


class InvalidInput(EngineError):
    pass


class UpstreamFailure(EngineError):
    """The token source raised or produced a non-recoverable event."""


class PersistenceFailure(EngineError):
    """A record store write failed after the response was already produced."""
