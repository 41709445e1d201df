from __future__ import annotations


class ReportError(Exception):
    """Base class for failures surfaced to callers of the report pipeline."""

    retryable = False


class ValidationError(ReportError, ValueError):
    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message)
        self.errors = list(errors or [])


class RenderError(ReportError, RuntimeError):
    def __init__(self, message: str, backend: str | None = None):
        super().__init__(message)
        self.backend = backend


class ResourceError(RenderError):
    """An external resource (font, browser engine) could not be acquired."""


class UpstreamError(ReportError):
    """The LLM or image-generation service kept failing after the allowed attempts."""

    retryable = True

    def __init__(self, message: str, service: str | None = None):
        super().__init__(message)
        self.service = service


class UpstreamTimeout(UpstreamError, TimeoutError):
    pass
