"""API v1 router and endpoint organization."""

from fastapi import APIRouter, Depends

from insight_studio.api.v1 import analysis, documents, insights, presentation, projects, reviews
from insight_studio.core.auth import get_current_user

router = APIRouter(prefix="/api/v1", dependencies=[Depends(get_current_user)])

# Include domain-specific routers
router.include_router(projects.router)
router.include_router(documents.router)
router.include_router(analysis.router)
router.include_router(insights.router)
router.include_router(reviews.router)
router.include_router(presentation.router)
