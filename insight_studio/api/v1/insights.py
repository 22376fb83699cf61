"""Insights API router.

- GET /api/v1/projects/{project_id}/insights - Stored insights (optional source filter, grouping)
- PATCH /api/v1/projects/{project_id}/insights/{insight_id} - Edit one insight by hand
- POST /api/v1/projects/{project_id}/insights/{insight_id}/refine - Refine one insight with Claude
- DELETE /api/v1/projects/{project_id}/insights - Clear insights and review decisions
"""

from fastapi import APIRouter, Depends, Query, status

from insight_studio.api.v1.deps import get_insight_repository, get_project, get_review_service
from insight_studio.integrations.claude import ClaudeClient, get_claude
from insight_studio.models.project import Project
from insight_studio.schemas.insight import (
    InsightContentUpdate,
    InsightListResponse,
    InsightRefineRequest,
    InsightRefineResponse,
    InsightSource,
    StrategicInsight,
)
from insight_studio.services.insight_store import InsightRepository
from insight_studio.services.refinement import InsightRefiner
from insight_studio.services.review import ReviewService

router = APIRouter(prefix="/projects/{project_id}/insights", tags=["Insights"])


@router.get("", response_model=InsightListResponse)
async def list_insights(
    source: InsightSource | None = Query(default=None, description="Only this source"),
    group_by_category: bool = Query(default=False, description="Also group by category"),
    project: Project = Depends(get_project),
    repository: InsightRepository = Depends(get_insight_repository),
) -> InsightListResponse:
    record = await repository.load(project.id)
    insights = await repository.list_insights(project.id, source)

    by_category: dict[str, list[StrategicInsight]] | None = None
    if group_by_category:
        by_category = {}
        for insight in insights:
            by_category.setdefault(insight.category.value, []).append(insight)

    return InsightListResponse(
        project_id=project.id,
        insights=insights,
        total=len(insights),
        using_fallback_insights=record.using_fallback_insights if record else False,
        generation_timestamp=record.generation_timestamp if record else None,
        by_category=by_category,
    )


@router.patch("/{insight_id}", response_model=StrategicInsight)
async def update_insight(
    insight_id: str,
    data: InsightContentUpdate,
    project: Project = Depends(get_project),
    repository: InsightRepository = Depends(get_insight_repository),
) -> StrategicInsight:
    """Apply a manual refinement to one insight.

    Raises:
        InsightNotFoundError: 404 if the insight is not stored for the project.
    """
    return await repository.update_insight(project.id, insight_id, data)


@router.post("/{insight_id}/refine", response_model=InsightRefineResponse)
async def refine_insight(
    insight_id: str,
    data: InsightRefineRequest,
    project: Project = Depends(get_project),
    repository: InsightRepository = Depends(get_insight_repository),
    claude: ClaudeClient = Depends(get_claude),
) -> InsightRefineResponse:
    """Ask Claude to refine one insight, storing the result when apply is set.

    Raises:
        InsightNotFoundError: 404 if the insight is not stored for the project.
        RefinementError: 502 if Claude could not be reached.
    """
    result = await InsightRefiner(repository, claude).refine(
        project.id, insight_id, data.prompt, data.conversation, apply=data.apply
    )
    return InsightRefineResponse(
        insight_id=insight_id,
        response=result.response,
        refined_content=result.refined_content,
        changed_fields=result.changed_fields,
        applied=result.applied,
        insight=result.insight,
    )


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def clear_insights(
    project: Project = Depends(get_project),
    repository: InsightRepository = Depends(get_insight_repository),
    reviews: ReviewService = Depends(get_review_service),
) -> None:
    await repository.clear(project.id)
    await reviews.clear(project.id)
