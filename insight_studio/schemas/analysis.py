"""Request/response schemas for the analysis endpoints.

WebsiteAnalysisRequest mirrors the analyze-website wire format used by the
browser client (websiteUrl, clientName, check_progress, test_mode, ...).
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from insight_studio.schemas.insight import AIProcessingStatus, ProcessingState


class DocumentAnalysisRequest(BaseModel):
    """Start a document analysis run."""

    document_ids: list[str] | None = Field(
        default=None, description="Documents to analyze; all project documents when omitted"
    )
    processing_mode: Literal["comprehensive", "quick"] = Field(
        default="comprehensive", description="Processing-mode hint forwarded to the prompt"
    )
    retry: bool = Field(
        default=False,
        description="Replace all stored document insights instead of accumulating",
    )


class WebsiteAnalysisRequest(BaseModel):
    """Start, poll or diagnose a website analysis run."""

    model_config = ConfigDict(populate_by_name=True)

    project_id: str | None = Field(default=None, alias="projectId")
    website_url: str | None = Field(default=None, alias="websiteUrl")
    client_name: str | None = Field(default=None, alias="clientName")
    client_industry: str | None = Field(default=None, alias="clientIndustry")
    max_pages: int | None = Field(default=None, ge=1, le=50, alias="maxPages")
    timeout: float | None = Field(default=None, gt=0, le=300)
    check_progress: bool = False
    test_mode: bool = False
    debug_mode: bool = Field(default=False, alias="debugMode")


class AnalysisStartResponse(BaseModel):
    """Returned when a run is accepted."""

    project_id: str
    source: str
    status: ProcessingState
    progress: int
    message: str


class ProgressCheckResponse(BaseModel):
    """Returned for check_progress polls."""

    progress: int
    status: ProcessingState
    message: str | None = None


class DiagnosticsResponse(BaseModel):
    """Returned for test_mode requests; the LLM is never called."""

    api_key_configured: bool
    api_key_valid: bool
    api_key_hint: str
    model: str
    website_url: str | None = None
    website_reachable: bool | None = None
    website_status_code: int | None = None
    debug: dict[str, str | int | float | bool | None] | None = None


class AnalysisStatusResponse(AIProcessingStatus):
    """Status of the latest run for one project and source."""

    project_id: str
    source: str
