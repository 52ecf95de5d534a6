"""
Error taxonomy for the generation service.

Every error that reaches the HTTP boundary is a GenerationError carrying the
status code it should be rendered with. The handlers in api/index.py turn these
into `{"error": ...}` JSON bodies.
"""

from typing import Optional

from lib.retry import ModelError


class GenerationError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = 500
    code: Optional[str] = None

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(GenerationError):
    """Bad caller input. Detected before any external call."""

    status_code = 400
    code = "invalid_request"


class ConfigurationError(GenerationError):
    """Deployment misconfiguration, e.g. no credentials."""

    status_code = 500
    code = "configuration_error"


class OriginNotAllowedError(GenerationError):
    """Request origin failed the allow-list check."""

    status_code = 403
    code = "origin_not_allowed"

    def __init__(self, message: str = "Origin not allowed by CORS policy"):
        super().__init__(message)


class UpstreamError(GenerationError):
    """The model call failed after the retry/rotation budget was applied."""

    status_code = 500

    def __init__(self, message: str, model_error: Optional[ModelError] = None):
        super().__init__(message)
        self.model_error = model_error


class UpstreamTransientError(UpstreamError):
    """Upstream stayed busy across every attempt and key.

    The message is a localized, generic "try again" text; the raw provider
    error is kept on `model_error` for logging only.
    """

    code = "upstream_busy"
    retry_after_seconds = 60


class UpstreamFatalError(UpstreamError):
    """Upstream rejected the request with a non-retriable error."""

    code = "upstream_error"


class MalformedUpstreamOutput(UpstreamError):
    """The model answered but returned no usable text."""

    code = "malformed_output"
