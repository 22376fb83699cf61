"""Presentation API router."""

from fastapi import APIRouter, Depends

from insight_studio.api.v1.deps import get_project, get_review_service
from insight_studio.models.project import Project
from insight_studio.schemas.presentation import PresentationOutline
from insight_studio.services.presentation import build_outline
from insight_studio.services.review import ReviewService

router = APIRouter(prefix="/projects/{project_id}/presentation", tags=["Presentation"])


@router.get("", response_model=PresentationOutline)
async def get_presentation(
    project: Project = Depends(get_project),
    reviews: ReviewService = Depends(get_review_service),
) -> PresentationOutline:
    """Slide outline built from the project's accepted insights."""
    accepted = await reviews.accepted_insights(project.id)
    return build_outline(project.id, project.title, accepted)
