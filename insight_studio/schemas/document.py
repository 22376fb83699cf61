"""Pydantic schemas for uploaded documents.

No Create schema: documents arrive as multipart/form-data.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class DocumentResponse(BaseModel):
    """Schema for a stored document."""

    id: str = Field(..., description="Server-assigned document UUID")
    project_id: str = Field(..., description="Parent project UUID")
    name: str = Field(..., description="Original filename as uploaded")
    size: int = Field(..., ge=0, description="File size in bytes")
    mime_type: str = Field(..., description="MIME type of the file")
    uploaded_by: str = Field(..., description="Uploading user id")
    uploaded_at: datetime = Field(..., description="Upload timestamp")
    priority: int = Field(..., ge=0, le=10, description="Filename keyword priority")
    url: str = Field(..., description="Storage URL")

    model_config = ConfigDict(from_attributes=True)


class DocumentList(BaseModel):
    """Documents ordered by priority, highest first."""

    items: list[DocumentResponse]
    total: int = Field(..., ge=0)


class RejectedFile(BaseModel):
    """A file refused by upload validation."""

    filename: str
    reason: str


class DocumentUploadResponse(BaseModel):
    """Outcome of a multi-file upload."""

    accepted: list[DocumentResponse] = Field(default_factory=list)
    rejected: list[RejectedFile] = Field(default_factory=list)
    local_only: bool = Field(
        default=False,
        description="True when storage or database was unavailable and records were simulated",
    )
