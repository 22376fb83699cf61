"""Application error taxonomy.

Every error carries an HTTP status, a stable machine-readable code and a
retriable flag. The API layer renders them as
{"error": str, "code": str, "request_id": str, "retriable": bool}.
"""

from typing import Any


class InsightStudioError(Exception):
    """Base exception for all application errors."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    retriable: bool = False

    def __init__(
        self,
        message: str,
        *,
        retriable: bool | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if retriable is not None:
            self.retriable = retriable
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Serializable body without the request id."""
        return {"error": self.message, "code": self.code, "retriable": self.retriable}


class ValidationError(InsightStudioError):
    """Bad user input: file type, size or count."""

    status_code = 422
    code = "VALIDATION_ERROR"


class AuthenticationError(InsightStudioError):
    """Missing or unknown user/session identity."""

    status_code = 401
    code = "AUTHENTICATION_ERROR"


class StorageUploadError(InsightStudioError):
    """Object storage rejected or failed an upload."""

    status_code = 502
    code = "STORAGE_UPLOAD_ERROR"
    retriable = True


class DatabaseError(InsightStudioError):
    """Database write or read failed."""

    status_code = 500
    code = "DATABASE_ERROR"
    retriable = True


class DocumentNotFoundError(InsightStudioError):
    """Document does not exist (or no longer exists)."""

    status_code = 404
    code = "DOCUMENT_NOT_FOUND"


class ProjectNotFoundError(InsightStudioError):
    """Project does not exist."""

    status_code = 404
    code = "PROJECT_NOT_FOUND"


class InsightNotFoundError(InsightStudioError):
    """Insight id is not part of the project's stored record."""

    status_code = 404
    code = "INSIGHT_NOT_FOUND"


class AnalysisError(InsightStudioError):
    """Remote analysis failed or returned nothing usable."""

    status_code = 502
    code = "ANALYSIS_ERROR"
    retriable = True


class AnalysisTimeoutError(AnalysisError):
    """Remote analysis exceeded its client-enforced timeout."""

    status_code = 504
    code = "ANALYSIS_TIMEOUT"


class RefinementError(AnalysisError):
    """Claude could not be reached to refine an insight."""

    code = "REFINEMENT_ERROR"
