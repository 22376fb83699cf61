"""Document model for uploaded client documents.

- File metadata (name, mime type, size)
- Storage reference (S3 key and URL)
- Filename-derived priority used for display ordering
- Extracted text fed to analysis
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import uuid4

from sqlalchemy import BigInteger, DateTime, ForeignKey, Integer, String, Text, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from insight_studio.core.database import Base

if TYPE_CHECKING:
    from insight_studio.models.project import Project


class Document(Base):
    """Uploaded project document.

    Attributes:
        id: UUID primary key (server assigned)
        project_id: Foreign key to projects table (cascade delete)
        name: Original filename as uploaded
        size: Size of the file in bytes
        mime_type: MIME type of the file
        uploaded_by: Id of the uploading user
        uploaded_at: Upload timestamp
        priority: 0-10 score derived from filename keywords
        storage_key: Object storage key
        url: Storage URL of the object
        extracted_text: Text extracted for analysis (nullable)
    """

    __tablename__ = "documents"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
        server_default=text("gen_random_uuid()"),
    )

    project_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    size: Mapped[int] = mapped_column(BigInteger, nullable=False)

    mime_type: Mapped[str] = mapped_column(String(255), nullable=False)

    uploaded_by: Mapped[str] = mapped_column(String(255), nullable=False)

    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        server_default=text("now()"),
    )

    priority: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
    )

    storage_key: Mapped[str] = mapped_column(String(1024), nullable=False, unique=True)

    url: Mapped[str] = mapped_column(String(2048), nullable=False)

    extracted_text: Mapped[str | None] = mapped_column(Text, nullable=True)

    project: Mapped["Project"] = relationship("Project", back_populates="documents")

    def __repr__(self) -> str:
        return f"<Document(id={self.id!r}, name={self.name!r}, priority={self.priority!r})>"
