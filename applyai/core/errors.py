"""
Error taxonomy for ApplyAI.

Request-terminal errors derive from ApplyAIError and are rendered by a single
exception handler in main.py. Upstream (generation service) failures derive
from UpstreamFailure and are never shown to the end user: services catch them
and degrade to the basic (non-AI) path.
"""
from typing import Any, Dict, Optional


# Typed error codes returned to API clients
DAILY_LIMIT_REACHED = "DAILY_LIMIT_REACHED"
NO_CREDITS_REMAINING = "NO_CREDITS_REMAINING"
GENERATION_FAILED = "GENERATION_FAILED"
VALIDATION_ERROR = "VALIDATION_ERROR"
APPLICATION_NOT_FOUND = "APPLICATION_NOT_FOUND"
CV_NOT_FOUND = "CV_NOT_FOUND"
USER_NOT_FOUND = "USER_NOT_FOUND"
PREPARATION_IN_PROGRESS = "PREPARATION_IN_PROGRESS"


class ApplyAIError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        payload = {"error": self.code, "message": self.message}
        payload.update(self.details)
        return payload


class QuotaExceeded(ApplyAIError):
    """User ran out of daily calls or credits."""

    status_code = 429

    def __init__(self, reason: str, endpoint: str, limit: int, used: int, remaining: int):
        if reason == DAILY_LIMIT_REACHED:
            message = f"Daily limit of {limit} AI calls reached. Try again tomorrow."
        else:
            message = "No credits remaining for today. Upgrade your plan for more credits."
        super().__init__(
            message,
            code=reason,
            details={
                "endpoint": endpoint,
                "limit": limit,
                "used": used,
                "remaining": remaining,
            },
        )
        self.reason = reason


class ValidationFailure(ApplyAIError):
    """Malformed or incomplete input. No fallback is attempted."""

    status_code = 422
    code = VALIDATION_ERROR


class NotFound(ApplyAIError):
    status_code = 404


class PreparationInProgress(ApplyAIError):
    status_code = 409
    code = PREPARATION_IN_PROGRESS


class GenerationFailed(ApplyAIError):
    """A required step could not produce even a fallback result."""

    status_code = 422
    code = GENERATION_FAILED


class InvalidTransition(ValueError):
    """Preparation state machine rejected a transition."""


class UpstreamFailure(Exception):
    """The generation service could not produce a usable response."""


class GenerationUnavailable(UpstreamFailure):
    """No provider configured (e.g. OPENAI_API_KEY missing)."""


class GenerationTimeout(UpstreamFailure):
    """The provider did not answer within the configured timeout."""


class GenerationError(UpstreamFailure):
    """The provider raised or returned an empty response."""
