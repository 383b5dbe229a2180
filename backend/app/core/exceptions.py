"""
Domain errors raised by the chat pipeline and its collaborators.

Each error carries the HTTP status it maps to at the API boundary.
RetrievalError and SynthesisError are normally absorbed inside the
pipeline and only surface as degraded outcomes.
"""

from fastapi import status


class AppError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail: str = "Internal server error"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid request"


class NotFound(AppError):
    """Missing or not owned by the caller. The two cases are never distinguished."""

    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class RateLimitExceeded(AppError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_detail = "Too many requests. Please wait a moment before trying again."

    def __init__(self, reset_at: int, remaining: int = 0, detail: str | None = None):
        super().__init__(detail)
        self.reset_at = reset_at
        self.remaining = remaining


class StoreError(AppError):
    default_detail = "Failed to persist conversation"


class ServiceUnavailable(AppError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Model service unavailable"


class RetrievalError(AppError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Syllabus search failed"


class SynthesisError(AppError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "Answer generation failed"
