from __future__ import annotations


class PostCraftError(Exception):
    """Base error for pipeline failures."""


class ConfigurationError(PostCraftError):
    pass


class UpstreamError(PostCraftError):
    """Completion endpoint answered with a non-success HTTP status."""

    def __init__(self, status_code: int, body: str = "", message: str | None = None):
        super().__init__(message or f"Completion API error: {status_code} - {body}")
        self.status_code = status_code
        self.body = body


class UpstreamProtocolError(PostCraftError):
    """Transport failure or an upstream body that is not JSON."""


class RequestTimeoutError(PostCraftError):
    """Upstream attempt or end-to-end deadline exceeded."""


class EmptyCompletionError(PostCraftError):
    def __init__(self, message: str = "The model returned no usable text. Try again or choose a different model."):
        super().__init__(message)
