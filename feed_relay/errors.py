"""Error taxonomy for Feed Relay."""


class FeedRelayError(Exception):
    """Base class for errors that map onto an HTTP error response."""

    status_code = 500
    message = "Failed to generate RSS feed"

    def __init__(self, details: str = "", message: str | None = None):
        super().__init__(details or message or self.message)
        self.details = details
        if message:
            self.message = message


class ValidationError(FeedRelayError):
    """Raised when query parameters are invalid."""

    status_code = 400
    message = "Invalid request parameters"


class ConfigurationMissing(FeedRelayError):
    """Raised when a credential required by an endpoint is not configured."""

    status_code = 500
    message = "Endpoint is not configured"


class UpstreamError(FeedRelayError):
    """Base class for failures talking to a third-party upstream."""

    message = "Upstream request failed"


class UpstreamTimeout(UpstreamError):
    """Raised when an upstream does not answer within the bound."""

    status_code = 504
    message = "Upstream request timed out"


class UpstreamRejected(UpstreamError):
    """Raised when an upstream answers with a non-2xx status."""

    message = "Upstream rejected the request"

    def __init__(self, status_code: int, status_text: str = "", url: str = ""):
        self.upstream_status = status_code
        self.status_text = status_text
        self.url = url
        super().__init__(f"{status_code} {status_text}".strip())


class UpstreamNetworkError(UpstreamError):
    """Raised on transport-level failures (DNS, refused connection, reset)."""

    message = "Upstream unreachable"


class UpstreamMalformed(UpstreamError):
    """Raised when a 2xx body is not the expected content type."""

    message = "Upstream returned an unexpected payload"


class CacheUnavailable(Exception):
    """Raised inside the cache layer when storage cannot be used. Never surfaced."""
