"""Document service for managing project document uploads.

Provides business logic for Document entities, coordinating:
- Batch validation (file count, size, extension)
- Filename priority scoring
- Text extraction for analysis
- S3 storage operations
- Database record management

Outside production, storage or database failures do not fail an upload:
the batch is reported back as local-only, with records that were never
persisted remotely.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from insight_studio.core.config import get_settings
from insight_studio.core.errors import DatabaseError, StorageUploadError
from insight_studio.core.logging import get_logger
from insight_studio.integrations.s3 import S3Client, S3Error, build_document_key
from insight_studio.models.document import Document
from insight_studio.services.priority import (
    calculate_document_priority,
    sort_documents_by_priority,
)
from insight_studio.services.project import LOCAL_URL_PREFIX, ProjectService
from insight_studio.services.upload_validation import UploadCandidate, validate_upload_batch
from insight_studio.utils.text_extraction import (
    TextExtractionError,
    UnsupportedFileTypeError,
    extract_text,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class IncomingFile:
    """A file received by the upload endpoint."""

    filename: str
    content_type: str
    data: bytes


@dataclass
class DocumentUploadResult:
    """Stored documents, refused files and whether storage was simulated."""

    accepted: list[Document] = field(default_factory=list)
    rejected: list[tuple[str, str]] = field(default_factory=list)
    local_only: bool = False


def _extract_text_best_effort(file: IncomingFile) -> str | None:
    try:
        extracted = extract_text(file.data, file.content_type, file.filename)
    except UnsupportedFileTypeError:
        logger.info(
            "File type does not support text extraction",
            extra={"file_name": file.filename, "content_type": file.content_type},
        )
        return None
    except TextExtractionError as e:
        logger.warning(
            "Text extraction failed for uploaded file",
            extra={"file_name": file.filename, "content_type": file.content_type, "error": str(e)},
        )
        return None

    if not extracted:
        logger.warning(
            "Text extraction returned empty result",
            extra={"file_name": file.filename, "content_type": file.content_type},
        )
        return None
    return extracted


class DocumentService:
    """Service class for Document operations."""

    def __init__(self, s3_client: S3Client) -> None:
        self._s3 = s3_client

    async def _store_object(self, key: str, file: IncomingFile) -> str | None:
        """Upload to S3 and return the object URL, or None when only kept locally.

        Raises:
            StorageUploadError: In production, when storage is missing or fails.
        """
        production = get_settings().is_production
        if not self._s3.available:
            if production:
                raise StorageUploadError("Object storage is not configured")
            return None

        try:
            await self._s3.upload_file(key, file.data, file.content_type)
        except S3Error as e:
            if production:
                raise StorageUploadError(
                    f"Failed to upload file to storage: {e}",
                    context={"filename": file.filename},
                ) from e
            logger.warning(
                "Storage upload failed, keeping document local-only",
                extra={"s3_key": key, "file_name": file.filename, "error": str(e)},
            )
            return None
        return self._s3.object_url(key)

    async def upload_documents(
        self,
        db: AsyncSession,
        project_id: str,
        files: list[IncomingFile],
        uploaded_by: str,
    ) -> DocumentUploadResult:
        """Validate, store and record a batch of files.

        Raises:
            ValidationError: If the batch would exceed the per-project file limit.
            StorageUploadError: Storage failure in production.
            DatabaseError: Database failure in production.
        """
        settings = get_settings()
        await ProjectService.get_project(db, project_id)
        current_count = await ProjectService.count_documents(db, project_id)

        candidates = [UploadCandidate(f.filename, len(f.data), f.content_type) for f in files]
        payloads = {id(c): f for c, f in zip(candidates, files, strict=True)}
        validation = validate_upload_batch(
            candidates,
            current_count=current_count,
            max_files=settings.upload_max_files,
            allowed_extensions=settings.upload_allowed_extensions,
            max_file_size_bytes=settings.upload_max_file_size_bytes,
        )

        result = DocumentUploadResult(
            rejected=[(c.filename, reason) for c, reason in validation.rejected]
        )
        for candidate in validation.accepted:
            file = payloads[id(candidate)]
            document_id = str(uuid4())
            key = build_document_key(project_id, document_id, file.filename)
            url = await self._store_object(key, file)
            if url is None:
                result.local_only = True
                url = f"{LOCAL_URL_PREFIX}{key}"

            result.accepted.append(
                Document(
                    id=document_id,
                    project_id=project_id,
                    name=file.filename,
                    size=len(file.data),
                    mime_type=file.content_type or "application/octet-stream",
                    uploaded_by=uploaded_by,
                    uploaded_at=datetime.now(UTC),
                    priority=calculate_document_priority(file.filename),
                    storage_key=key,
                    url=url,
                    extracted_text=_extract_text_best_effort(file),
                )
            )

        if not result.accepted:
            return result

        try:
            db.add_all(result.accepted)
            await db.flush()
        except SQLAlchemyError as e:
            if settings.is_production:
                raise DatabaseError(f"Failed to record uploaded documents: {e}") from e
            await db.rollback()
            logger.warning(
                "Database write failed, returning local-only documents",
                extra={"project_id": project_id, "document_count": len(result.accepted)},
            )
            result.local_only = True

        logger.info(
            "Documents uploaded",
            extra={
                "project_id": project_id,
                "accepted_count": len(result.accepted),
                "rejected_count": len(result.rejected),
                "local_only": result.local_only,
            },
        )
        return result

    async def list_documents(self, db: AsyncSession, project_id: str) -> list[Document]:
        """Documents of a project, highest priority first (ties by upload time)."""
        stmt = (
            select(Document)
            .where(Document.project_id == project_id)
            .order_by(Document.uploaded_at.asc())
        )
        result = await db.execute(stmt)
        return sort_documents_by_priority(list(result.scalars().all()))

    async def get_documents(
        self, db: AsyncSession, project_id: str, document_ids: list[str] | None = None
    ) -> list[Document]:
        """Selected documents of a project (all when document_ids is None)."""
        documents = await self.list_documents(db, project_id)
        if document_ids is None:
            return documents
        wanted = set(document_ids)
        return [d for d in documents if d.id in wanted]

    async def delete_document(self, db: AsyncSession, project_id: str, document_id: str) -> bool:
        """Delete a document and its stored object.

        A document that no longer exists counts as deleted.

        Returns:
            True if a record was removed, False if it was already gone.
        """
        stmt = select(Document).where(
            Document.id == document_id,
            Document.project_id == project_id,
        )
        document = (await db.execute(stmt)).scalar_one_or_none()
        if document is None:
            logger.info(
                "Document already removed",
                extra={"project_id": project_id, "document_id": document_id},
            )
            return False

        if self._s3.available and not document.url.startswith(LOCAL_URL_PREFIX):
            try:
                await self._s3.delete_file(document.storage_key)
            except S3Error as e:
                logger.warning(
                    "Failed to delete document object",
                    extra={"s3_key": document.storage_key, "error": str(e)},
                )

        await db.delete(document)
        await db.flush()
        return True
