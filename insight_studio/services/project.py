"""Project service with CRUD operations.

Provides business logic for Project entities, separating concerns from API routes.
Uses async SQLAlchemy 2.0 patterns.
"""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from insight_studio.core.errors import ProjectNotFoundError
from insight_studio.core.logging import get_logger
from insight_studio.integrations.s3 import S3Client, S3Error
from insight_studio.models.document import Document
from insight_studio.models.project import Project
from insight_studio.schemas.project import ProjectCreate, ProjectUpdate

# Documents stored while object storage was unavailable
LOCAL_URL_PREFIX = "local://"

logger = get_logger(__name__)


class ProjectService:
    """Service class for Project CRUD operations."""

    @staticmethod
    async def list_projects(db: AsyncSession, owner_id: str | None = None) -> list[Project]:
        """List projects ordered by updated_at descending.

        Args:
            db: AsyncSession for database operations.
            owner_id: Only return projects owned by this user when given.

        Returns:
            List of Project instances ordered by most recently updated.
        """
        stmt = select(Project).order_by(Project.updated_at.desc())
        if owner_id is not None:
            stmt = stmt.where(Project.owner_id == owner_id)
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def get_project(
        db: AsyncSession, project_id: str, owner_id: str | None = None
    ) -> Project:
        """Get a project by ID.

        Args:
            db: AsyncSession for database operations.
            project_id: Project to load.
            owner_id: When given, a project owned by someone else is treated
                as missing, matching list_projects.

        Raises:
            ProjectNotFoundError: If project not found.
        """
        stmt = select(Project).where(Project.id == project_id)
        if owner_id is not None:
            stmt = stmt.where(Project.owner_id == owner_id)
        result = await db.execute(stmt)
        project = result.scalar_one_or_none()

        if project is None:
            raise ProjectNotFoundError(f"Project with id '{project_id}' not found")

        return project

    @staticmethod
    async def create_project(db: AsyncSession, data: ProjectCreate, owner_id: str) -> Project:
        """Create a new project owned by owner_id."""
        project = Project(
            title=data.title,
            client_name=data.client_name,
            client_industry=data.client_industry,
            client_website=data.client_website,
            description=data.description,
            owner_id=owner_id,
        )

        db.add(project)
        await db.flush()
        await db.refresh(project)

        logger.info(
            "Project created",
            extra={"project_id": project.id, "client_industry": project.client_industry},
        )
        return project

    @staticmethod
    async def update_project(
        db: AsyncSession, project_id: str, data: ProjectUpdate, owner_id: str | None = None
    ) -> Project:
        """Update an existing project.

        Raises:
            ProjectNotFoundError: If project not found.
        """
        project = await ProjectService.get_project(db, project_id, owner_id)

        # Update only provided fields
        update_data = data.model_dump(exclude_unset=True)
        for field, value in update_data.items():
            if field in ("title", "client_name", "client_industry", "status") and value is None:
                continue
            setattr(project, field, value)

        await db.flush()
        await db.refresh(project)

        return project

    @staticmethod
    async def delete_project(
        db: AsyncSession,
        project_id: str,
        s3_client: S3Client | None = None,
        owner_id: str | None = None,
    ) -> None:
        """Delete a project by ID, including stored document objects.

        Storage failures are logged and do not block the deletion; the
        database cascade removes document rows.

        Raises:
            ProjectNotFoundError: If project not found.
        """
        project = await ProjectService.get_project(db, project_id, owner_id)

        if s3_client is not None and s3_client.available:
            stmt = select(Document.storage_key, Document.url).where(
                Document.project_id == project_id
            )
            rows = (await db.execute(stmt)).all()
            for key, url in rows:
                if url.startswith(LOCAL_URL_PREFIX):
                    continue
                try:
                    await s3_client.delete_file(key)
                except S3Error as e:
                    logger.warning(
                        "Failed to delete document object with project",
                        extra={"project_id": project_id, "s3_key": key, "error": str(e)},
                    )

        await db.delete(project)
        await db.flush()

    @staticmethod
    async def count_documents(db: AsyncSession, project_id: str) -> int:
        stmt = select(func.count()).where(Document.project_id == project_id)
        result = await db.execute(stmt)
        return int(result.scalar_one())
