"""Schemas layer - Pydantic models for API validation and domain records."""

from insight_studio.schemas.analysis import (
    AnalysisStartResponse,
    AnalysisStatusResponse,
    DiagnosticsResponse,
    DocumentAnalysisRequest,
    ProgressCheckResponse,
    WebsiteAnalysisRequest,
)
from insight_studio.schemas.document import (
    DocumentList,
    DocumentResponse,
    DocumentUploadResponse,
    RejectedFile,
)
from insight_studio.schemas.insight import (
    AIProcessingStatus,
    InsightCategory,
    InsightContent,
    InsightContentUpdate,
    InsightListResponse,
    InsightSource,
    InsightSourceRef,
    ProcessingState,
    ReviewStats,
    ReviewStatus,
    ReviewStatusMap,
    ReviewUpdate,
    StoredInsightRecord,
    StrategicInsight,
    WebsiteInsightCategory,
)
from insight_studio.schemas.presentation import PresentationOutline, PresentationSlide
from insight_studio.schemas.project import (
    ProjectCreate,
    ProjectListResponse,
    ProjectResponse,
    ProjectUpdate,
)

__all__ = [
    # Analysis
    "AnalysisStartResponse",
    "AnalysisStatusResponse",
    "DiagnosticsResponse",
    "DocumentAnalysisRequest",
    "ProgressCheckResponse",
    "WebsiteAnalysisRequest",
    # Documents
    "DocumentList",
    "DocumentResponse",
    "DocumentUploadResponse",
    "RejectedFile",
    # Insights
    "AIProcessingStatus",
    "InsightCategory",
    "InsightContent",
    "InsightContentUpdate",
    "InsightListResponse",
    "InsightSource",
    "InsightSourceRef",
    "ProcessingState",
    "ReviewStats",
    "ReviewStatus",
    "ReviewStatusMap",
    "ReviewUpdate",
    "StoredInsightRecord",
    "StrategicInsight",
    "WebsiteInsightCategory",
    # Presentation
    "PresentationOutline",
    "PresentationSlide",
    # Projects
    "ProjectCreate",
    "ProjectListResponse",
    "ProjectResponse",
    "ProjectUpdate",
]
