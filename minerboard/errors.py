"""Domain exceptions raised by the services and mapped to HTTP by the server."""


class MinerboardError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500
    title = "Internal server error"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.title


class ValidationError(MinerboardError):
    status_code = 400
    title = "Validation error"


class Unauthorized(MinerboardError):
    status_code = 401
    title = "Unauthorized"


class NotFound(MinerboardError):
    status_code = 404
    title = "Not found"


class RateLimitExceeded(MinerboardError):
    status_code = 429
    title = "Rate limit exceeded"

    def __init__(self, message: str = "Too many requests. Please try again later."):
        super().__init__(message)


class StorageError(MinerboardError):
    """Persisted store unreachable or a statement failed. Details stay in the log."""

    status_code = 500
    title = "Internal server error"


class UpstreamError(MinerboardError):
    """The mining proxy API could not be reached or returned garbage."""

    status_code = 503
    title = "Proxy server unavailable"
