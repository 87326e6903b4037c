"""Typed error hierarchy and the JSON error formatter used by every route."""

import logging
from typing import Any

logger = logging.getLogger(__name__)


class ModelCompareError(Exception):
    """Base class for errors that carry an HTTP status and a stable code."""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        self.message = message
        self.context: dict[str, Any] = dict(context or {})
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
            "context": self.context,
            "statusCode": self.status_code,
        }


class ValidationError(ModelCompareError):
    code = "VALIDATION_ERROR"
    status_code = 400


class AuthorizationError(ModelCompareError):
    code = "UNAUTHORIZED"
    status_code = 401


class ModelNotFoundError(ModelCompareError):
    code = "MODEL_NOT_FOUND"
    status_code = 404

    def __init__(self, model_id: str) -> None:
        self.model_id = model_id
        super().__init__(f"Model not found: {model_id}", {"modelId": model_id})


class StreamSessionNotFoundError(ModelCompareError):
    code = "STREAM_SESSION_NOT_FOUND"
    status_code = 404

    def __init__(self, message: str = "Stream session not found or expired") -> None:
        super().__init__(message)


class DebateSessionNotFoundError(ModelCompareError):
    code = "SESSION_NOT_FOUND"
    status_code = 404

    def __init__(self, session_id: str) -> None:
        super().__init__("Debate session not found", {"sessionId": session_id})


class ProviderError(ModelCompareError):
    """Raised when a provider call fails."""

    code = "PROVIDER_ERROR"
    status_code = 502

    def __init__(self, provider_name: str, message: str, context: dict[str, Any] | None = None) -> None:
        self.provider_name = provider_name
        merged = {"provider": provider_name}
        merged.update(context or {})
        super().__init__(f"[{provider_name}] {message}", merged)


class CircuitBreakerError(ModelCompareError):
    """Raised without calling the provider while its breaker is open."""

    code = "SERVICE_UNAVAILABLE"
    status_code = 503

    def __init__(self, provider_name: str, failure_count: int, retry_after: int = 30) -> None:
        self.provider_name = provider_name
        self.failure_count = failure_count
        self.retry_after = retry_after
        super().__init__(
            f"{provider_name} service temporarily unavailable",
            {"providerName": provider_name, "failureCount": failure_count, "retryAfter": retry_after},
        )


class StreamingDisabledError(ModelCompareError):
    code = "STREAMING_DISABLED"
    status_code = 503

    def __init__(self) -> None:
        super().__init__("Streaming is disabled by configuration")


class DatabaseError(ModelCompareError):
    code = "DATABASE_ERROR"
    status_code = 500


def format_error_response(exc: BaseException) -> dict[str, Any]:
    """Convert any exception into the public error body.

    Typed errors keep their code, message and (non-empty) context. Anything
    else collapses to INTERNAL_ERROR with a generic message so internals
    never reach the client.
    """
    if isinstance(exc, ModelCompareError):
        body: dict[str, Any] = {
            "error": exc.code,
            "message": exc.message,
            "statusCode": exc.status_code,
        }
        if exc.context:
            body["context"] = exc.context
        return body

    logger.debug("Unclassified error formatted as INTERNAL_ERROR: %r", exc)
    return {
        "error": "INTERNAL_ERROR",
        "message": "An unexpected error occurred",
        "statusCode": 500,
    }
