"""Pydantic schemas for Project validation.

Defines request/response models for Project API endpoints with validation rules.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from insight_studio.utils.url import InvalidWebsiteURLError, validate_website_url

VALID_PROJECT_STATUSES = frozenset({"draft", "in_progress", "completed"})

# Industries with dedicated fallback templates; any other value uses the generic one
KNOWN_INDUSTRIES = frozenset(
    {"retail", "finance", "banking", "technology", "entertainment", "other"}
)


def _normalize_website(v: str | None) -> str | None:
    if v is None or not v.strip():
        return None
    try:
        return validate_website_url(v)
    except InvalidWebsiteURLError as e:
        raise ValueError(str(e)) from e


class ProjectCreate(BaseModel):
    """Schema for creating a new project."""

    title: str = Field(..., min_length=1, max_length=255, description="Project title")
    client_name: str = Field(..., min_length=1, max_length=255, description="Client name")
    client_industry: str = Field(
        default="technology", max_length=100, description="Client industry"
    )
    client_website: str | None = Field(None, description="Client website URL")
    description: str | None = Field(None, description="Project description")

    @field_validator("title", "client_name")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Value cannot be empty or whitespace only")
        return v

    @field_validator("client_industry")
    @classmethod
    def normalize_industry(cls, v: str) -> str:
        return v.strip().lower() or "other"

    @field_validator("client_website")
    @classmethod
    def validate_website(cls, v: str | None) -> str | None:
        return _normalize_website(v)


class ProjectUpdate(BaseModel):
    """Schema for a partial project update."""

    title: str | None = Field(None, min_length=1, max_length=255)
    client_name: str | None = Field(None, min_length=1, max_length=255)
    client_industry: str | None = Field(None, max_length=100)
    client_website: str | None = None
    description: str | None = None
    status: str | None = None

    @field_validator("client_industry")
    @classmethod
    def normalize_industry(cls, v: str | None) -> str | None:
        return v.strip().lower() if v is not None else None

    @field_validator("client_website")
    @classmethod
    def validate_website(cls, v: str | None) -> str | None:
        return _normalize_website(v)

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: str | None) -> str | None:
        if v is not None and v not in VALID_PROJECT_STATUSES:
            raise ValueError(
                f"Invalid status '{v}'. Must be one of: {', '.join(sorted(VALID_PROJECT_STATUSES))}"
            )
        return v


class ProjectResponse(BaseModel):
    """Schema for project response."""

    id: str
    title: str
    client_name: str
    client_industry: str
    client_website: str | None
    description: str | None
    status: str
    owner_id: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProjectListResponse(BaseModel):
    """Schema for list of projects."""

    items: list[ProjectResponse]
    total: int = Field(..., ge=0)
