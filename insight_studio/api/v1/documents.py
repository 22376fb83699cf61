"""Documents API router.

REST endpoints for managing project documents.
Supports multi-file multipart/form-data uploads; each file is validated for
type and size and the batch as a whole against the per-project file limit.
"""

from fastapi import APIRouter, Depends, File, Request, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from insight_studio.api.v1.deps import get_document_service, get_project, get_request_id
from insight_studio.core.auth import UserInfo, get_current_user
from insight_studio.core.database import get_session
from insight_studio.core.logging import get_logger
from insight_studio.models.project import Project
from insight_studio.schemas.document import (
    DocumentList,
    DocumentResponse,
    DocumentUploadResponse,
    RejectedFile,
)
from insight_studio.services.document import DocumentService, IncomingFile

logger = get_logger(__name__)

router = APIRouter(prefix="/projects/{project_id}/documents", tags=["Documents"])


@router.post("", response_model=DocumentUploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_documents(
    request: Request,
    files: list[UploadFile] = File(..., description="Files to upload"),
    project: Project = Depends(get_project),
    user: UserInfo = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    service: DocumentService = Depends(get_document_service),
) -> DocumentUploadResponse:
    """Upload documents to a project.

    Returns:
        Accepted documents, rejected files with reasons, and whether the
        documents were only kept locally.

    Raises:
        ValidationError: 422 if the batch exceeds the project's file limit.
    """
    incoming = [
        IncomingFile(
            filename=f.filename or "unnamed",
            content_type=f.content_type or "application/octet-stream",
            data=await f.read(),
        )
        for f in files
    ]
    logger.debug(
        "Upload documents request",
        extra={
            "request_id": get_request_id(request),
            "project_id": project.id,
            "file_count": len(incoming),
        },
    )

    result = await service.upload_documents(session, project.id, incoming, uploaded_by=user.id)

    return DocumentUploadResponse(
        accepted=[DocumentResponse.model_validate(d) for d in result.accepted],
        rejected=[RejectedFile(filename=name, reason=reason) for name, reason in result.rejected],
        local_only=result.local_only,
    )


@router.get("", response_model=DocumentList)
async def list_documents(
    project: Project = Depends(get_project),
    session: AsyncSession = Depends(get_session),
    service: DocumentService = Depends(get_document_service),
) -> DocumentList:
    """List a project's documents, highest priority first."""
    documents = await service.list_documents(session, project.id)
    return DocumentList(
        items=[DocumentResponse.model_validate(d) for d in documents],
        total=len(documents),
    )


@router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_document(
    document_id: str,
    project: Project = Depends(get_project),
    session: AsyncSession = Depends(get_session),
    service: DocumentService = Depends(get_document_service),
) -> None:
    """Delete a document. Deleting a document that is already gone succeeds."""
    await service.delete_document(session, project.id, document_id)
