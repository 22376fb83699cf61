"""Analysis API router.

- POST /api/v1/projects/{project_id}/analysis/documents - Start document analysis (202)
- GET /api/v1/projects/{project_id}/analysis/{source}/status - Poll a run
- DELETE /api/v1/projects/{project_id}/analysis/{source} - Cancel a run
- POST /api/v1/analyze-website - Start, poll or diagnose website analysis

Analysis failures never surface as HTTP errors: the run completes with
fallback insights and the status carries the error message.
"""

import dataclasses

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from insight_studio.api.v1.deps import get_document_service, get_project, get_request_id
from insight_studio.core.auth import UserInfo, get_current_user
from insight_studio.core.database import get_session
from insight_studio.core.errors import ValidationError
from insight_studio.core.logging import get_logger
from insight_studio.integrations.claude import ClaudeClient, get_claude
from insight_studio.integrations.website_fetcher import WebsiteFetcher, get_website_fetcher
from insight_studio.models.project import Project
from insight_studio.schemas.analysis import (
    AnalysisStartResponse,
    AnalysisStatusResponse,
    DiagnosticsResponse,
    DocumentAnalysisRequest,
    ProgressCheckResponse,
    WebsiteAnalysisRequest,
)
from insight_studio.schemas.insight import AIProcessingStatus, InsightSource
from insight_studio.services.analysis_session import (
    AnalysisSessionManager,
    ProjectSnapshot,
    get_session_manager,
)
from insight_studio.services.document import DocumentService
from insight_studio.services.project import ProjectService
from insight_studio.utils.url import InvalidWebsiteURLError, validate_website_url

logger = get_logger(__name__)

router = APIRouter(tags=["Analysis"])


def _start_response(
    project_id: str, source: InsightSource, state: AIProcessingStatus
) -> AnalysisStartResponse:
    return AnalysisStartResponse(
        project_id=project_id,
        source=source.value,
        status=state.status,
        progress=state.progress,
        message=state.message,
    )


@router.post(
    "/projects/{project_id}/analysis/documents",
    response_model=AnalysisStartResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def start_document_analysis(
    request: Request,
    data: DocumentAnalysisRequest,
    project: Project = Depends(get_project),
    session: AsyncSession = Depends(get_session),
    documents: DocumentService = Depends(get_document_service),
    sessions: AnalysisSessionManager = Depends(get_session_manager),
) -> AnalysisStartResponse:
    """Start analyzing the project's documents in the background.

    Raises:
        ValidationError: 422 if the project has no (matching) documents.
    """
    selected = await documents.get_documents(session, project.id, data.document_ids)
    if not selected:
        raise ValidationError("Upload at least one document before running analysis.")

    logger.info(
        "Document analysis requested",
        extra={
            "request_id": get_request_id(request),
            "project_id": project.id,
            "document_count": len(selected),
            "processing_mode": data.processing_mode,
            "retry": data.retry,
        },
    )
    state = await sessions.start_document_analysis(
        project, selected, processing_mode=data.processing_mode, retry=data.retry
    )
    return _start_response(project.id, InsightSource.DOCUMENT, state)


@router.get(
    "/projects/{project_id}/analysis/{source}/status",
    response_model=AnalysisStatusResponse,
)
async def get_analysis_status(
    source: InsightSource,
    project: Project = Depends(get_project),
    sessions: AnalysisSessionManager = Depends(get_session_manager),
) -> AnalysisStatusResponse:
    """Status of the latest run for this project and source (idle when none)."""
    state = sessions.status(project.id, source)
    return AnalysisStatusResponse(project_id=project.id, source=source.value, **state.model_dump())


@router.delete(
    "/projects/{project_id}/analysis/{source}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def cancel_analysis(
    source: InsightSource,
    project: Project = Depends(get_project),
    sessions: AnalysisSessionManager = Depends(get_session_manager),
) -> None:
    sessions.cancel(project.id, source)


async def _diagnostics(
    data: WebsiteAnalysisRequest, claude: ClaudeClient, fetcher: WebsiteFetcher
) -> DiagnosticsResponse:
    reachable: bool | None = None
    status_code: int | None = None
    website_url = data.website_url
    if website_url:
        try:
            website_url = validate_website_url(website_url)
        except InvalidWebsiteURLError:
            reachable = False
        else:
            reachable, status_code = await fetcher.probe(website_url)

    debug = None
    if data.debug_mode:
        debug = {
            "key_problem": claude.key_problem,
            "circuit_breaker": claude.circuit_breaker.state.value,
        }

    return DiagnosticsResponse(
        api_key_configured=claude.key_problem != "missing",
        api_key_valid=claude.available,
        api_key_hint=claude.api_key_hint,
        model=claude.model,
        website_url=website_url,
        website_reachable=reachable,
        website_status_code=status_code,
        debug=debug,
    )


@router.post(
    "/analyze-website",
    response_model=AnalysisStartResponse | ProgressCheckResponse | DiagnosticsResponse,
)
async def analyze_website(
    request: Request,
    response: Response,
    data: WebsiteAnalysisRequest,
    user: UserInfo = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    sessions: AnalysisSessionManager = Depends(get_session_manager),
    claude: ClaudeClient = Depends(get_claude),
    fetcher: WebsiteFetcher = Depends(get_website_fetcher),
) -> AnalysisStartResponse | ProgressCheckResponse | DiagnosticsResponse:
    """Website analysis entry point.

    - test_mode: key and connectivity diagnostics; the LLM is never called
    - check_progress: progress of the project's latest website run
    - otherwise: start a website run in the background (202)

    Raises:
        ValidationError: 422 for a missing project id or an invalid URL.
        ProjectNotFoundError: 404 if the project does not exist.
    """
    if data.test_mode:
        return await _diagnostics(data, claude, fetcher)

    if not data.project_id:
        raise ValidationError("projectId is required")

    if data.check_progress:
        state = sessions.status(data.project_id, InsightSource.WEBSITE)
        return ProgressCheckResponse(
            progress=state.progress, status=state.status, message=state.message
        )

    project = await ProjectService.get_project(session, data.project_id, owner_id=user.id)
    raw_url = data.website_url or project.client_website
    if not raw_url:
        raise ValidationError("websiteUrl is required")
    try:
        website_url = validate_website_url(raw_url)
    except InvalidWebsiteURLError as e:
        raise ValidationError(str(e)) from e

    snapshot = dataclasses.replace(
        ProjectSnapshot.of(project),
        client_name=data.client_name or project.client_name,
        client_industry=(data.client_industry or project.client_industry).strip().lower(),
    )
    logger.info(
        "Website analysis requested",
        extra={
            "request_id": get_request_id(request),
            "project_id": project.id,
            "website_url": website_url,
        },
    )
    state = await sessions.start_website_analysis(
        snapshot, website_url, max_pages=data.max_pages, timeout=data.timeout
    )
    response.status_code = status.HTTP_202_ACCEPTED
    return _start_response(project.id, InsightSource.WEBSITE, state)
