"""Project model.

A project groups one client's documents, website and generated insights:
- Client information (name, industry, website)
- Workflow status (draft, in_progress, completed)
- Owner reference and timestamps
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import uuid4

from sqlalchemy import DateTime, String, Text, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from insight_studio.core.database import Base

if TYPE_CHECKING:
    from insight_studio.models.document import Document


class Project(Base):
    """Client project.

    Attributes:
        id: UUID primary key
        title: Project title
        client_name: Name of the client company
        client_industry: Industry key used to pick fallback templates
        client_website: Client website URL (optional)
        description: Free-text description
        status: 'draft', 'in_progress' or 'completed'
        owner_id: Id of the user who created the project
        created_at: Timestamp when project was created
        updated_at: Timestamp when project was last updated
    """

    __tablename__ = "projects"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
        server_default=text("gen_random_uuid()"),
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    client_name: Mapped[str] = mapped_column(String(255), nullable=False)

    client_industry: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        default="technology",
        server_default=text("'technology'"),
    )

    client_website: Mapped[str | None] = mapped_column(String(2048), nullable=True)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="draft",
        server_default=text("'draft'"),
        index=True,
    )

    owner_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        server_default=text("now()"),
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        server_default=text("now()"),
        onupdate=lambda: datetime.now(UTC),
    )

    documents: Mapped[list["Document"]] = relationship(
        "Document",
        back_populates="project",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Project(id={self.id!r}, title={self.title!r}, status={self.status!r})>"
