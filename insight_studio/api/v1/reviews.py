"""Reviews API router.

- GET /api/v1/projects/{project_id}/reviews - Review decision per insight
- GET /api/v1/projects/{project_id}/reviews/stats - Aggregate counts and confidence
- PUT /api/v1/projects/{project_id}/reviews/{insight_id} - Accept, reject or reset one insight
"""

from fastapi import APIRouter, Depends

from insight_studio.api.v1.deps import get_project, get_review_service
from insight_studio.models.project import Project
from insight_studio.schemas.insight import ReviewStats, ReviewStatusMap, ReviewUpdate
from insight_studio.services.review import ReviewService

router = APIRouter(prefix="/projects/{project_id}/reviews", tags=["Reviews"])


@router.get("", response_model=ReviewStatusMap)
async def get_reviews(
    project: Project = Depends(get_project),
    reviews: ReviewService = Depends(get_review_service),
) -> ReviewStatusMap:
    statuses = await reviews.get_statuses(project.id)
    return ReviewStatusMap(project_id=project.id, statuses=statuses)


@router.get("/stats", response_model=ReviewStats)
async def get_review_stats(
    project: Project = Depends(get_project),
    reviews: ReviewService = Depends(get_review_service),
) -> ReviewStats:
    return await reviews.stats(project.id)


@router.put("/{insight_id}", response_model=ReviewStatusMap)
async def set_review(
    insight_id: str,
    data: ReviewUpdate,
    project: Project = Depends(get_project),
    reviews: ReviewService = Depends(get_review_service),
) -> ReviewStatusMap:
    """Record a review decision.

    Raises:
        InsightNotFoundError: 404 if the insight is not stored for the project.
    """
    statuses = await reviews.set_status(project.id, insight_id, data.status)
    return ReviewStatusMap(project_id=project.id, statuses=statuses)
