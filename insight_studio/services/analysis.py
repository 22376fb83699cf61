"""Analysis dispatch with deterministic fallback.

AnalysisDispatcher sends documents or a website to the analysis backend
under a client-enforced timeout and always returns an AnalysisOutcome:

- at least one usable insight -> the batch, tagged with its source
- zero insights, an error payload, an exception or a timeout -> the
  deterministic fallback batch, with a user-facing error and a retriable flag
- documents with too little content -> no insights and a message pointing
  at website analysis (websites still get the fallback batch)

The dispatcher never retries; transport retries belong to the Claude client.

Backend payloads are normalized the same way regardless of where they came
from: "insufficientContent" is a non-retriable failure, "error" is a
failure, "analysisResults" is converted to insights and "insights" is
coerced directly.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from insight_studio.core.config import get_settings
from insight_studio.core.errors import AnalysisError, AnalysisTimeoutError
from insight_studio.core.logging import analysis_logger, get_logger
from insight_studio.integrations.claude import ClaudeClient
from insight_studio.integrations.website_fetcher import WebsiteFetcher
from insight_studio.schemas.insight import InsightSource, StrategicInsight
from insight_studio.services.fallback_insights import (
    generate_document_fallback,
    generate_website_fallback,
)
from insight_studio.services.insight_parser import (
    InsightParseError,
    extract_json_payload,
    insights_from_analysis_results,
    insights_from_list,
    normalize_payload,
)
from insight_studio.services.priority import sort_documents_by_priority

logger = get_logger(__name__)

INSUFFICIENT_DOCUMENTS_MESSAGE = (
    "Not enough information in documents to generate meaningful insights. "
    "Consider uploading more detailed documents or try website analysis."
)
INSUFFICIENT_WEBSITE_MESSAGE = "Failed to extract sufficient content from website: {url}"
NO_INSIGHTS_MESSAGE = "No insights returned from Claude AI"
MIN_WEBSITE_CHARS = 100


class ProjectLike(Protocol):
    id: str
    title: str
    client_name: str
    client_industry: str
    client_website: str | None


class DocumentLike(Protocol):
    id: str
    name: str
    priority: int
    extracted_text: str | None


@dataclass
class AnalysisOutcome:
    """What a dispatch produced.

    Carries a usable batch except for documents with insufficient content.
    """

    insights: list[StrategicInsight]
    source: InsightSource
    using_fallback: bool = False
    error: str | None = None
    retriable: bool = False
    insufficient_content: bool = False
    duration_ms: float = 0.0


class AnalysisBackend(Protocol):
    """Remote analysis service. Returns a raw payload dict."""

    async def analyze_documents(
        self, project: ProjectLike, documents: Sequence[DocumentLike], processing_mode: str
    ) -> dict[str, Any]: ...

    async def analyze_website(
        self, project: ProjectLike, website_url: str, max_pages: int | None
    ) -> dict[str, Any]: ...


def normalize_response(payload: dict[str, Any], source: InsightSource) -> list[StrategicInsight]:
    """Turn a backend payload into insights tagged with source.

    Raises:
        AnalysisError: For error or insufficient-content payloads.
    """
    if payload.get("insufficientContent"):
        message = payload.get("error") or (
            INSUFFICIENT_DOCUMENTS_MESSAGE if source == InsightSource.DOCUMENT else NO_INSIGHTS_MESSAGE
        )
        raise AnalysisError(str(message), retriable=False, context={"insufficient_content": True})

    if payload.get("error"):
        raise AnalysisError(str(payload["error"]), retriable=bool(payload.get("retriable", True)))

    if "analysisResults" in payload:
        insights = insights_from_analysis_results(payload["analysisResults"])
    else:
        insights = insights_from_list(payload.get("insights"), source)
    return [i.model_copy(update={"source": source}) for i in insights]


class ClaudeAnalysisBackend:
    """AnalysisBackend that prompts Claude directly."""

    def __init__(self, claude: ClaudeClient, fetcher: WebsiteFetcher) -> None:
        self._claude = claude
        self._fetcher = fetcher

    @staticmethod
    def _payload_from_text(text: str | None) -> dict[str, Any]:
        try:
            return normalize_payload(extract_json_payload(text or ""))
        except InsightParseError as e:
            return {"error": str(e), "retriable": True}

    async def analyze_documents(
        self, project: ProjectLike, documents: Sequence[DocumentLike], processing_mode: str
    ) -> dict[str, Any]:
        contents = [
            {"name": d.name, "priority": d.priority, "content": d.extracted_text or ""}
            for d in sort_documents_by_priority(documents)
        ]
        if not any(c["content"].strip() for c in contents):
            return {"insufficientContent": True, "error": INSUFFICIENT_DOCUMENTS_MESSAGE}

        result = await self._claude.analyze_documents(
            contents,
            client_industry=project.client_industry,
            project_title=project.title,
            client_website=project.client_website,
            processing_mode=processing_mode,
        )
        if not result.success:
            return {"error": f"Claude AI error: {result.error}", "retriable": result.retriable}
        return self._payload_from_text(result.text)

    async def analyze_website(
        self, project: ProjectLike, website_url: str, max_pages: int | None
    ) -> dict[str, Any]:
        site = await self._fetcher.fetch_site(website_url, max_pages=max_pages)
        if site.text_length < MIN_WEBSITE_CHARS:
            return {
                "insufficientContent": True,
                "error": INSUFFICIENT_WEBSITE_MESSAGE.format(url=website_url),
            }

        result = await self._claude.analyze_website(
            site.to_prompt_text(get_settings().website_max_chars),
            website_url=website_url,
            client_name=project.client_name,
            client_industry=project.client_industry,
        )
        if not result.success:
            return {"error": f"Claude AI error: {result.error}", "retriable": result.retriable}
        return self._payload_from_text(result.text)


class AnalysisDispatcher:
    """Runs one analysis and guarantees a batch of insights back."""

    def __init__(
        self,
        backend: AnalysisBackend,
        claude_available: bool = True,
        document_timeout: float | None = None,
        website_timeout: float | None = None,
    ) -> None:
        settings = get_settings()
        self._backend = backend
        self._claude_available = claude_available
        self._document_timeout = document_timeout or settings.analysis_document_timeout
        self._website_timeout = website_timeout or settings.analysis_website_timeout

    async def _dispatch(
        self,
        project: ProjectLike,
        source: InsightSource,
        timeout: float,
        call: Awaitable[dict[str, Any]],
    ) -> list[StrategicInsight]:
        try:
            payload = await asyncio.wait_for(call, timeout=timeout)
        except TimeoutError as e:
            raise AnalysisTimeoutError(
                f"Analysis timed out after {timeout:g} seconds", context={"timeout": timeout}
            ) from e
        return normalize_response(payload, source)

    def _fallback(
        self,
        project: ProjectLike,
        source: InsightSource,
        reason: Exception,
        fallback: list[StrategicInsight],
        start: float,
    ) -> AnalysisOutcome:
        retriable = getattr(reason, "retriable", True)
        insufficient = isinstance(reason, AnalysisError) and bool(
            reason.context.get("insufficient_content")
        )
        analysis_logger.fallback_used(project.id, source.value, str(reason))
        return AnalysisOutcome(
            insights=fallback,
            source=source,
            using_fallback=True,
            error=str(reason),
            retriable=retriable,
            insufficient_content=insufficient,
            duration_ms=(time.monotonic() - start) * 1000,
        )

    def _insufficient(
        self, project: ProjectLike, source: InsightSource, reason: AnalysisError, start: float
    ) -> AnalysisOutcome:
        logger.info(
            "Not enough content for analysis",
            extra={"project_id": project.id, "source": source.value},
        )
        return AnalysisOutcome(
            insights=[],
            source=source,
            error=reason.message,
            retriable=False,
            insufficient_content=True,
            duration_ms=(time.monotonic() - start) * 1000,
        )

    async def _run(
        self,
        project: ProjectLike,
        source: InsightSource,
        timeout: float,
        call_factory: Callable[[], Awaitable[dict[str, Any]]],
        fallback_factory: Callable[[], list[StrategicInsight]],
    ) -> AnalysisOutcome:
        start = time.monotonic()
        if not self._claude_available:
            return self._fallback(
                project,
                source,
                AnalysisError("Anthropic API key is missing or invalid", retriable=False),
                fallback_factory(),
                start,
            )

        try:
            insights = await self._dispatch(project, source, timeout, call_factory())
        except AnalysisError as e:
            if source == InsightSource.DOCUMENT and e.context.get("insufficient_content"):
                return self._insufficient(project, source, e, start)
            return self._fallback(project, source, e, fallback_factory(), start)
        except Exception as e:
            logger.error(
                "Analysis backend raised",
                extra={
                    "project_id": project.id,
                    "source": source.value,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
                exc_info=True,
            )
            return self._fallback(
                project, source, AnalysisError(f"Claude AI error: {e}"), fallback_factory(), start
            )

        if not insights:
            return self._fallback(
                project, source, AnalysisError(NO_INSIGHTS_MESSAGE), fallback_factory(), start
            )

        return AnalysisOutcome(
            insights=insights,
            source=source,
            duration_ms=(time.monotonic() - start) * 1000,
        )

    async def analyze_documents(
        self,
        project: ProjectLike,
        documents: Sequence[DocumentLike],
        processing_mode: str = "comprehensive",
    ) -> AnalysisOutcome:
        """Analyze documents, falling back to template insights on any failure."""
        return await self._run(
            project,
            InsightSource.DOCUMENT,
            self._document_timeout,
            lambda: self._backend.analyze_documents(project, documents, processing_mode),
            lambda: generate_document_fallback(project.id, project.client_industry, documents),
        )

    async def analyze_website(
        self,
        project: ProjectLike,
        website_url: str,
        max_pages: int | None = None,
        timeout: float | None = None,
    ) -> AnalysisOutcome:
        """Analyze a website, falling back to template insights on any failure."""
        return await self._run(
            project,
            InsightSource.WEBSITE,
            timeout or self._website_timeout,
            lambda: self._backend.analyze_website(project, website_url, max_pages),
            lambda: generate_website_fallback(
                project.id, project.client_industry, project.client_name, website_url
            ),
        )
