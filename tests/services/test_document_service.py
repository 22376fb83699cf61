"""Tests for DocumentService.

Tests cover:
- Upload accepts, rejects and scores files
- Storage failures degrade to local-only outside production
- Per-project file limit across batches
- Listing order, selection and deletion
"""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from insight_studio.core.config import get_settings
from insight_studio.core.errors import ProjectNotFoundError, StorageUploadError, ValidationError
from insight_studio.models.project import Project
from insight_studio.schemas.project import ProjectCreate
from insight_studio.services.document import DocumentService, IncomingFile
from insight_studio.services.project import LOCAL_URL_PREFIX, ProjectService

PDF = "application/pdf"


def incoming(name: str, data: bytes = b"data", content_type: str = PDF) -> IncomingFile:
    return IncomingFile(filename=name, content_type=content_type, data=data)


@pytest.fixture
async def project(db_session: AsyncSession) -> Project:
    return await ProjectService.create_project(
        db_session,
        ProjectCreate(title="Launch", client_name="Acme", client_industry="retail"),
        owner_id="dev-user",
    )


@pytest.fixture
def service(mock_s3) -> DocumentService:
    return DocumentService(mock_s3)


# ---------------------------------------------------------------------------
# Upload
# ---------------------------------------------------------------------------


class TestUploadDocuments:
    """Tests for DocumentService.upload_documents."""

    async def test_accepted_files_stored_and_scored(
        self, db_session: AsyncSession, project: Project, service: DocumentService, mock_s3
    ) -> None:
        result = await service.upload_documents(
            db_session, project.id, [incoming("market-research.pdf")], uploaded_by="dev-user"
        )

        assert result.local_only is False
        assert result.rejected == []
        document = result.accepted[0]
        assert document.priority == 4
        assert document.uploaded_by == "dev-user"
        assert document.storage_key in mock_s3.objects
        assert document.url == mock_s3.object_url(document.storage_key)

    async def test_rejected_files_reported_with_reason(
        self, db_session: AsyncSession, project: Project, service: DocumentService
    ) -> None:
        result = await service.upload_documents(
            db_session,
            project.id,
            [incoming("brief.pdf"), incoming("logo.png", content_type="image/png")],
            uploaded_by="dev-user",
        )

        assert [d.name for d in result.accepted] == ["brief.pdf"]
        assert result.rejected[0][0] == "logo.png"
        assert result.rejected[0][1].startswith("File type not accepted")

    async def test_oversized_file_rejected(
        self, db_session: AsyncSession, project: Project, service: DocumentService
    ) -> None:
        big = b"x" * (get_settings().upload_max_file_size_bytes + 1)

        result = await service.upload_documents(
            db_session, project.id, [incoming("big.pdf", big)], uploaded_by="dev-user"
        )

        assert result.accepted == []
        assert result.rejected == [("big.pdf", "File exceeds maximum size of 20MB")]

    async def test_text_extracted_for_plain_files(
        self, db_session: AsyncSession, project: Project, service: DocumentService
    ) -> None:
        result = await service.upload_documents(
            db_session,
            project.id,
            [incoming("notes.txt", b"Customer churn is rising", "text/plain")],
            uploaded_by="dev-user",
        )

        assert result.accepted[0].extracted_text == "Customer churn is rising"

    async def test_unreadable_pdf_kept_without_text(
        self, db_session: AsyncSession, project: Project, service: DocumentService
    ) -> None:
        result = await service.upload_documents(
            db_session, project.id, [incoming("scan.pdf", b"not a pdf")], uploaded_by="dev-user"
        )

        assert len(result.accepted) == 1
        assert result.accepted[0].extracted_text is None

    async def test_unconfigured_storage_is_local_only(
        self, db_session: AsyncSession, project: Project, service: DocumentService, mock_s3
    ) -> None:
        mock_s3.available = False

        result = await service.upload_documents(
            db_session, project.id, [incoming("brief.pdf")], uploaded_by="dev-user"
        )

        assert result.local_only is True
        assert result.accepted[0].url.startswith(LOCAL_URL_PREFIX)
        assert mock_s3.objects == {}

    async def test_failed_storage_upload_is_local_only(
        self, db_session: AsyncSession, project: Project, service: DocumentService, mock_s3
    ) -> None:
        mock_s3.fail_uploads = True

        result = await service.upload_documents(
            db_session, project.id, [incoming("brief.pdf")], uploaded_by="dev-user"
        )

        assert result.local_only is True
        assert len(result.accepted) == 1

    async def test_storage_failure_raises_in_production(
        self,
        db_session: AsyncSession,
        project: Project,
        service: DocumentService,
        mock_s3,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setattr(get_settings(), "environment", "production")
        mock_s3.fail_uploads = True

        with pytest.raises(StorageUploadError) as exc_info:
            await service.upload_documents(
                db_session, project.id, [incoming("brief.pdf")], uploaded_by="dev-user"
            )

        assert exc_info.value.retriable is True

    async def test_project_file_limit_counts_existing_documents(
        self, db_session: AsyncSession, project: Project, service: DocumentService
    ) -> None:
        limit = get_settings().upload_max_files
        await service.upload_documents(
            db_session,
            project.id,
            [incoming(f"doc{i}.pdf") for i in range(limit - 1)],
            uploaded_by="dev-user",
        )

        with pytest.raises(ValidationError, match=f"maximum of {limit} files"):
            await service.upload_documents(
                db_session,
                project.id,
                [incoming("one.pdf"), incoming("two.pdf")],
                uploaded_by="dev-user",
            )

    async def test_unknown_project(self, db_session: AsyncSession, service: DocumentService) -> None:
        with pytest.raises(ProjectNotFoundError):
            await service.upload_documents(
                db_session, "missing", [incoming("brief.pdf")], uploaded_by="dev-user"
            )


# ---------------------------------------------------------------------------
# Listing and deletion
# ---------------------------------------------------------------------------


class TestListAndDelete:
    """Tests for list_documents, get_documents and delete_document."""

    async def test_list_highest_priority_first(
        self, db_session: AsyncSession, project: Project, service: DocumentService
    ) -> None:
        await service.upload_documents(
            db_session,
            project.id,
            [incoming("notes.pdf"), incoming("brand.pdf"), incoming("market-research.pdf")],
            uploaded_by="dev-user",
        )

        documents = await service.list_documents(db_session, project.id)

        assert [d.name for d in documents] == ["market-research.pdf", "brand.pdf", "notes.pdf"]

    async def test_get_documents_selection(
        self, db_session: AsyncSession, project: Project, service: DocumentService
    ) -> None:
        result = await service.upload_documents(
            db_session, project.id, [incoming("a.pdf"), incoming("b.pdf")], uploaded_by="dev-user"
        )
        wanted = result.accepted[1].id

        selected = await service.get_documents(db_session, project.id, [wanted, "unknown"])

        assert [d.id for d in selected] == [wanted]
        assert len(await service.get_documents(db_session, project.id)) == 2

    async def test_delete_removes_row_and_object(
        self, db_session: AsyncSession, project: Project, service: DocumentService, mock_s3
    ) -> None:
        result = await service.upload_documents(
            db_session, project.id, [incoming("a.pdf")], uploaded_by="dev-user"
        )
        document = result.accepted[0]

        assert await service.delete_document(db_session, project.id, document.id) is True

        assert document.storage_key not in mock_s3.objects
        assert await service.list_documents(db_session, project.id) == []

    async def test_delete_already_gone(
        self, db_session: AsyncSession, project: Project, service: DocumentService
    ) -> None:
        assert await service.delete_document(db_session, project.id, "missing") is False

    async def test_delete_local_only_document_skips_storage(
        self, db_session: AsyncSession, project: Project, service: DocumentService, mock_s3
    ) -> None:
        mock_s3.available = False
        result = await service.upload_documents(
            db_session, project.id, [incoming("a.pdf")], uploaded_by="dev-user"
        )
        mock_s3.available = True
        mock_s3.objects["sentinel"] = b""

        assert await service.delete_document(db_session, project.id, result.accepted[0].id)
        assert mock_s3.objects == {"sentinel": b""}
