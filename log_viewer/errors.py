"""Error taxonomy surfaced to the renderer."""


class LogViewerError(Exception):
    """Base class. `message` is what the renderer shows to the user."""

    message = "Log viewer error"
    fatal = True

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        if message:
            self.message = message


class CatalogUnavailable(LogViewerError):
    message = "Error fetching filter options."


class PageFetchFailed(LogViewerError):
    message = "Failed to fetch historical logs. Please try again."


class ParseError(LogViewerError):
    """One malformed live message. The stream stays open."""

    message = "Error parsing log"
    fatal = False


class StreamError(LogViewerError):
    pass


class StreamClosed(StreamError):
    message = "WebSocket connection closed"


class StreamErrored(StreamError):
    message = "WebSocket error"
