"""Projects API router.

Provides CRUD operations for projects:
- GET /api/v1/projects - List the caller's projects
- POST /api/v1/projects - Create a new project
- GET /api/v1/projects/{project_id} - Get one of the caller's projects by ID
- PATCH /api/v1/projects/{project_id} - Update a project
- DELETE /api/v1/projects/{project_id} - Delete a project with its documents and insights
"""

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from insight_studio.api.v1.deps import get_insight_repository, get_request_id, get_review_service
from insight_studio.core.auth import UserInfo, get_current_user
from insight_studio.core.database import get_session
from insight_studio.core.logging import get_logger
from insight_studio.integrations.s3 import S3Client, get_s3
from insight_studio.schemas.insight import InsightSource
from insight_studio.schemas.project import (
    ProjectCreate,
    ProjectListResponse,
    ProjectResponse,
    ProjectUpdate,
)
from insight_studio.services.analysis_session import AnalysisSessionManager, get_session_manager
from insight_studio.services.insight_store import InsightRepository
from insight_studio.services.project import ProjectService
from insight_studio.services.review import ReviewService

logger = get_logger(__name__)

router = APIRouter(prefix="/projects", tags=["Projects"])


@router.get("", response_model=ProjectListResponse, summary="List projects")
async def list_projects(
    user: UserInfo = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> ProjectListResponse:
    """List the caller's projects, most recently updated first."""
    projects = await ProjectService.list_projects(session, owner_id=user.id)
    return ProjectListResponse(
        items=[ProjectResponse.model_validate(p) for p in projects],
        total=len(projects),
    )


@router.post(
    "",
    response_model=ProjectResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a project",
)
async def create_project(
    request: Request,
    data: ProjectCreate,
    user: UserInfo = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> ProjectResponse:
    logger.debug(
        "Create project request",
        extra={"request_id": get_request_id(request), "title": data.title},
    )
    project = await ProjectService.create_project(session, data, owner_id=user.id)
    return ProjectResponse.model_validate(project)


@router.get("/{project_id}", response_model=ProjectResponse, summary="Get a project")
async def get_project(
    project_id: str,
    user: UserInfo = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> ProjectResponse:
    project = await ProjectService.get_project(session, project_id, owner_id=user.id)
    return ProjectResponse.model_validate(project)


@router.patch("/{project_id}", response_model=ProjectResponse, summary="Update a project")
async def update_project(
    project_id: str,
    data: ProjectUpdate,
    user: UserInfo = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> ProjectResponse:
    project = await ProjectService.update_project(session, project_id, data, owner_id=user.id)
    return ProjectResponse.model_validate(project)


@router.delete(
    "/{project_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a project",
)
async def delete_project(
    request: Request,
    project_id: str,
    user: UserInfo = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    s3: S3Client = Depends(get_s3),
    insights: InsightRepository = Depends(get_insight_repository),
    reviews: ReviewService = Depends(get_review_service),
    sessions: AnalysisSessionManager = Depends(get_session_manager),
) -> None:
    """Delete the project, its stored documents, insights, reviews and running analyses."""
    await ProjectService.delete_project(session, project_id, s3_client=s3, owner_id=user.id)

    for source in InsightSource:
        sessions.cancel(project_id, source)
    await insights.clear(project_id)
    await reviews.clear(project_id)

    logger.info(
        "Project deleted",
        extra={"request_id": get_request_id(request), "project_id": project_id},
    )
