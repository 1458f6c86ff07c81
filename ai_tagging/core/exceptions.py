"""Custom exceptions for the AI asset tagging service."""


# -----------------------------------------------------------------------------
# Application Base Error
# -----------------------------------------------------------------------------


class AppError(Exception):
    """Base application error with HTTP semantics.

    All domain exceptions that should map to HTTP responses inherit from this.
    The global error handler in error_handlers.py catches these and returns
    a consistent JSON response.
    """

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"

    def __init__(self, detail: str = "An unexpected error occurred", context: dict | None = None):
        self.detail = detail
        self.context = context
        super().__init__(self.detail)


# -----------------------------------------------------------------------------
# Generic CRUD Exceptions
# -----------------------------------------------------------------------------


class EntityNotFound(AppError):
    """Entity not found by primary key (404)."""

    status_code = 404
    error_code = "NOT_FOUND"


class ValidationError(AppError):
    """Generic validation error (400)."""

    status_code = 400
    error_code = "VALIDATION_ERROR"


# -----------------------------------------------------------------------------
# Tagging Queue Exceptions
# -----------------------------------------------------------------------------


class InvalidStateTransition(AppError):
    """Job is not in a state that allows the requested transition (409)."""

    status_code = 409
    error_code = "INVALID_STATE_TRANSITION"


class InternalAuthError(AppError):
    """Missing or wrong internal API key (401)."""

    status_code = 401
    error_code = "UNAUTHORIZED"


# -----------------------------------------------------------------------------
# Tagging Pipeline Exceptions
# -----------------------------------------------------------------------------


class TaggingError(Exception):
    """Base exception for tagging pipeline errors.

    All pipeline exceptions inherit from this class,
    allowing callers to catch all tagging errors with a single handler.
    """

    pass


class LLMError(TaggingError):
    """The LLM backend could not produce a response.

    Causes:
        - Ollama unreachable or timed out after retries
        - Ollama answered with an HTTP error status
        - Response body was not JSON
    """

    pass


class PredictionError(TaggingError):
    """Tag prediction failed. The job transitions to failed.

    Causes:
        - Ollama service unavailable or timed out after retries
        - LLM returned no structured object
        - Structured output did not match the prediction schema
    """

    pass


class ApplyError(TaggingError):
    """Applying tags to the external asset-management system failed.

    Never fails the job; logged by the processor.

    Causes:
        - Asset API unreachable or returned an HTTP error
        - Response envelope carried a non-zero code
        - Team API key exchange failed
    """

    pass
