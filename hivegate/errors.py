"""Error kinds raised by the storage core and rendered by the API."""


class GatewayError(Exception):
    """Base class for errors that map to an HTTP status and a short client-facing message."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidRequest(GatewayError):
    status_code = 400
    default_message = "Path is required"


class NotFound(GatewayError):
    status_code = 404
    default_message = "Not found"


class PatternError(GatewayError):
    status_code = 500
    default_message = "Invalid search pattern"


class Internal(GatewayError):
    status_code = 500
    default_message = "Internal server error"


class RemoteUnavailable(GatewayError):
    """The remote tier is configured but cannot be reached."""

    status_code = 503
    default_message = "Remote storage unavailable"


class RemotePushFailed(GatewayError):
    """A push to the remote tier failed. Only ever logged, never returned to a client."""

    default_message = "Push to remote storage failed"
