class ConfigRelayError(Exception):
    """Base class for every error raised by config-relay."""


class StoreUnavailable(ConfigRelayError):
    """The versioned backing store cannot be read."""


class ParseError(ConfigRelayError):
    """Property content is malformed."""

    def __init__(self, message: str, source: str = "<string>", line_no: int | None = None):
        self.source = source
        self.line_no = line_no
        if line_no is not None:
            message = f"{source}:{line_no}: {message}"
        else:
            message = f"{source}: {message}"
        super().__init__(message)


class NotFound(ConfigRelayError):
    """Unknown application, profile or label."""


class RefreshInProgress(ConfigRelayError):
    """Another refresh of the same client is still running."""


class ClientNotReady(ConfigRelayError):
    """The client has not completed a successful bootstrap."""
