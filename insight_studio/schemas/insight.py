"""Pydantic schemas for strategic insights, reviews and analysis status.

Insight content is a closed record of the known template fields rather than
an open map: unknown keys are rejected, so callers building content from
LLM output must go through the insight parser, which drops them.

The stored record and insight payloads keep the camelCase wire names
(needsReview, dataPoints, projectId, ...) used by the browser client.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class InsightSource(str, Enum):
    """Where an insight came from; governs replace-vs-accumulate merging."""

    DOCUMENT = "document"
    WEBSITE = "website"


class InsightCategory(str, Enum):
    """Categories produced by document analysis."""

    BUSINESS_CHALLENGES = "business_challenges"
    AUDIENCE_GAPS = "audience_gaps"
    COMPETITIVE_THREATS = "competitive_threats"
    GAMING_OPPORTUNITIES = "gaming_opportunities"
    STRATEGIC_RECOMMENDATIONS = "strategic_recommendations"
    KEY_NARRATIVES = "key_narratives"


class WebsiteInsightCategory(str, Enum):
    """Additional categories produced by website analysis."""

    BUSINESS_IMPERATIVES = "business_imperatives"
    GAMING_AUDIENCE_OPPORTUNITY = "gaming_audience_opportunity"
    STRATEGIC_ACTIVATION_PATHWAYS = "strategic_activation_pathways"
    COMPANY_POSITIONING = "company_positioning"
    COMPETITIVE_LANDSCAPE = "competitive_landscape"
    KEY_PARTNERSHIPS = "key_partnerships"
    PUBLIC_ANNOUNCEMENTS = "public_announcements"
    CONSUMER_ENGAGEMENT = "consumer_engagement"
    PRODUCT_SERVICE_FIT = "product_service_fit"


AnyInsightCategory = InsightCategory | WebsiteInsightCategory


class ReviewStatus(str, Enum):
    """Human review decision for one insight."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class ProcessingState(str, Enum):
    """States of an analysis run."""

    IDLE = "idle"
    PROCESSING = "processing"
    FINALIZING = "finalizing"
    COMPLETED = "completed"
    ERROR = "error"


TERMINAL_STATES = frozenset({ProcessingState.COMPLETED, ProcessingState.ERROR})


class InsightSourceRef(BaseModel):
    """Reference from an insight to a document it was drawn from."""

    id: str
    name: str
    relevance: str | None = None


class InsightContent(BaseModel):
    """Known fields of an insight's content payload."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    title: str
    summary: str = ""
    details: str | None = None
    evidence: str | None = None
    impact: str | None = None
    recommendations: str | None = None
    data_points: list[str] = Field(default_factory=list, alias="dataPoints")
    sources: list[InsightSourceRef] = Field(default_factory=list)


class StrategicInsight(BaseModel):
    """A reviewable claim produced by analysis."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1)
    category: AnyInsightCategory
    source: InsightSource = InsightSource.DOCUMENT
    confidence: int = Field(default=75, ge=0, le=100)
    needs_review: bool = Field(default=True, alias="needsReview")
    content: InsightContent
    priority_level: int | None = Field(default=None, alias="priorityLevel")

    @property
    def title(self) -> str:
        return self.content.title


class InsightContentUpdate(BaseModel):
    """Partial update of an insight (manual refinement)."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    title: str | None = None
    summary: str | None = None
    details: str | None = None
    evidence: str | None = None
    impact: str | None = None
    recommendations: str | None = None
    data_points: list[str] | None = Field(default=None, alias="dataPoints")
    confidence: int | None = Field(default=None, ge=0, le=100)
    needs_review: bool | None = Field(default=None, alias="needsReview")


class StoredInsightRecord(BaseModel):
    """The single serialized record kept per project."""

    model_config = ConfigDict(populate_by_name=True)

    project_id: str = Field(..., alias="projectId")
    insights: list[StrategicInsight] = Field(default_factory=list)
    generation_timestamp: int = Field(..., alias="generationTimestamp")
    using_fallback_data: bool = Field(default=False, alias="usingFallbackData")
    using_fallback_insights: bool = Field(default=False, alias="usingFallbackInsights")
    timestamp: datetime


class InsightListResponse(BaseModel):
    """Insights of a project plus record metadata."""

    model_config = ConfigDict(populate_by_name=True)

    project_id: str = Field(..., alias="projectId")
    insights: list[StrategicInsight]
    total: int
    using_fallback_insights: bool = Field(default=False, alias="usingFallbackInsights")
    generation_timestamp: int | None = Field(default=None, alias="generationTimestamp")
    by_category: dict[str, list[StrategicInsight]] | None = Field(
        default=None, alias="byCategory"
    )


class ConversationRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class ConversationMessage(BaseModel):
    """One earlier turn of a refinement conversation."""

    role: ConversationRole
    content: str = Field(..., min_length=1)


class InsightRefineRequest(BaseModel):
    """Body for asking Claude to refine one insight."""

    prompt: str = Field(..., min_length=1, max_length=4000)
    conversation: list[ConversationMessage] = Field(default_factory=list)
    apply: bool = Field(default=False, description="Store the refined version")


class InsightRefineResponse(BaseModel):
    """Claude's reply and the refined content it proposes."""

    model_config = ConfigDict(populate_by_name=True)

    insight_id: str = Field(..., alias="insightId")
    response: str
    refined_content: InsightContent = Field(..., alias="refinedContent")
    changed_fields: list[str] = Field(default_factory=list, alias="changedFields")
    applied: bool = False
    insight: StrategicInsight


class ReviewUpdate(BaseModel):
    """Body for setting a review decision."""

    status: ReviewStatus


class ReviewStatusMap(BaseModel):
    """Review decisions keyed by insight id."""

    project_id: str
    statuses: dict[str, ReviewStatus]


class ReviewStats(BaseModel):
    """Aggregate review counts for the stats cards."""

    total: int = 0
    accepted: int = 0
    rejected: int = 0
    pending: int = 0
    needs_review: int = 0
    overall_confidence: int = 0
    average_confidence: int = 0
    category_breakdown: dict[str, int] = Field(default_factory=dict)


class AIProcessingStatus(BaseModel):
    """Transient status of an analysis run; never persisted."""

    status: ProcessingState = ProcessingState.IDLE
    progress: int = Field(default=0, ge=0, le=100)
    message: str = "Ready to analyze documents"
    error: str | None = None
    retriable: bool = False
    using_fallback: bool = False
    insight_count: int = 0
