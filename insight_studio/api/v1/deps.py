"""Shared FastAPI dependencies for the v1 routers."""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from insight_studio.core.auth import UserInfo, get_current_user
from insight_studio.core.database import get_session
from insight_studio.integrations.s3 import S3Client, get_s3
from insight_studio.models.project import Project
from insight_studio.services.document import DocumentService
from insight_studio.services.insight_store import (
    InsightRepository,
    InsightStore,
    get_insight_store,
)
from insight_studio.services.project import ProjectService
from insight_studio.services.review import ReviewService


def get_request_id(request: Request) -> str:
    """Get request_id from request state."""
    return getattr(request.state, "request_id", "unknown")


async def get_project(
    project_id: str,
    user: UserInfo = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> Project:
    """Resolve the caller's project from the path.

    Projects owned by another user are reported as missing.

    Raises:
        ProjectNotFoundError: 404 if the caller has no such project.
    """
    return await ProjectService.get_project(session, project_id, owner_id=user.id)


async def get_insight_repository(
    store: InsightStore = Depends(get_insight_store),
) -> InsightRepository:
    return InsightRepository(store)


async def get_review_service(
    store: InsightStore = Depends(get_insight_store),
) -> ReviewService:
    return ReviewService(store)


async def get_document_service(s3: S3Client = Depends(get_s3)) -> DocumentService:
    return DocumentService(s3)
