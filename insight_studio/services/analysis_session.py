"""Background analysis sessions.

One session per (project, source). Starting a session launches a progress
tracker and a dispatch task; when the dispatch returns, the batch is
persisted and the tracker completes. Starting a new session for the same
key cancels the previous one. If the session's hard timeout fires before
the dispatch returns, the session ends in error and its batch is never
persisted. Once the dispatch returns the timers are stopped, and the batch
is written in a single store write.

Sessions hold snapshots of the project and documents so background work
never touches a closed database session.
"""

import asyncio
import random
import time
from collections.abc import Sequence
from dataclasses import dataclass, field

from insight_studio.core.config import get_settings
from insight_studio.core.logging import analysis_logger, get_logger
from insight_studio.schemas.insight import (
    AIProcessingStatus,
    InsightSource,
    ProcessingState,
)
from insight_studio.services.analysis import AnalysisDispatcher, AnalysisOutcome
from insight_studio.services.insight_store import InsightRepository
from insight_studio.services.progress import (
    DOCUMENT_PHASES,
    WEBSITE_START_MESSAGE,
    ProgressSink,
    ProgressTracker,
    make_document_simulation_step,
    website_simulation_step,
)

logger = get_logger(__name__)

IDLE_MESSAGES = {
    InsightSource.DOCUMENT: "Ready to analyze documents",
    InsightSource.WEBSITE: "Ready to analyze website",
}
COMPLETE_MESSAGE = "AI analysis complete!"
FALLBACK_COMPLETE_MESSAGE = "Analysis complete (using sample data)"
INSUFFICIENT_COMPLETE_MESSAGE = "Not enough information in documents. Try website analysis instead."
# Finished sessions are kept this long for status polling
SESSION_RETENTION_SECONDS = 3600.0


@dataclass(frozen=True)
class ProjectSnapshot:
    id: str
    title: str
    client_name: str
    client_industry: str
    client_website: str | None = None

    @classmethod
    def of(cls, project: object) -> "ProjectSnapshot":
        return cls(
            id=str(getattr(project, "id")),
            title=getattr(project, "title", "") or "",
            client_name=getattr(project, "client_name", "") or "",
            client_industry=getattr(project, "client_industry", None) or "technology",
            client_website=getattr(project, "client_website", None),
        )


@dataclass(frozen=True)
class DocumentSnapshot:
    id: str
    name: str
    priority: int = 0
    extracted_text: str | None = None

    @classmethod
    def of(cls, document: object) -> "DocumentSnapshot":
        return cls(
            id=str(getattr(document, "id")),
            name=getattr(document, "name"),
            priority=getattr(document, "priority", 0) or 0,
            extracted_text=getattr(document, "extracted_text", None),
        )


@dataclass
class AnalysisSession:
    """State of one tracked analysis run."""

    project_id: str
    source: InsightSource
    sink: ProgressSink
    tracker: ProgressTracker
    started_at: float = field(default_factory=time.monotonic)
    finished_at: float | None = None
    outcome: AnalysisOutcome | None = None


class AnalysisSessionManager:
    """Starts, tracks and cancels analysis sessions."""

    def __init__(self, dispatcher: AnalysisDispatcher, repository: InsightRepository) -> None:
        self._dispatcher = dispatcher
        self._repository = repository
        self._sessions: dict[tuple[str, InsightSource], AnalysisSession] = {}

    @property
    def repository(self) -> InsightRepository:
        return self._repository

    @property
    def dispatcher(self) -> AnalysisDispatcher:
        return self._dispatcher

    def get_session(self, project_id: str, source: InsightSource) -> AnalysisSession | None:
        return self._sessions.get((project_id, source))

    def status(self, project_id: str, source: InsightSource) -> AIProcessingStatus:
        """Status of the latest session, or idle when there is none."""
        session = self._sessions.get((project_id, source))
        if session is None:
            return AIProcessingStatus(message=IDLE_MESSAGES[source])
        return session.sink.snapshot()

    def _replace_session(self, session: AnalysisSession) -> None:
        self.prune()
        key = (session.project_id, session.source)
        previous = self._sessions.get(key)
        if previous is not None:
            logger.info(
                "Cancelling previous analysis session",
                extra={"project_id": session.project_id, "source": session.source.value},
            )
            previous.sink.close()
        self._sessions[key] = session

    def _new_session(
        self,
        project_id: str,
        source: InsightSource,
        tracker_kwargs: dict,
    ) -> AnalysisSession:
        settings = get_settings()
        sink = ProgressSink(
            project_id,
            source.value,
            completion_delay=settings.progress_completion_delay,
        )
        tracker = ProgressTracker(
            sink,
            poll_interval=settings.progress_poll_interval,
            timeout=settings.analysis_session_timeout,
            **tracker_kwargs,
        )
        return AnalysisSession(project_id=project_id, source=source, sink=sink, tracker=tracker)

    async def start_document_analysis(
        self,
        project: object,
        documents: Sequence[object],
        processing_mode: str = "comprehensive",
        retry: bool = False,
    ) -> AIProcessingStatus:
        """Start a background document analysis and return its initial status."""
        snapshot = ProjectSnapshot.of(project)
        docs = [DocumentSnapshot.of(d) for d in documents]
        settings = get_settings()
        session = self._new_session(
            snapshot.id,
            InsightSource.DOCUMENT,
            {
                "step": make_document_simulation_step(random.Random(snapshot.id)),
                "simulation_interval": settings.progress_document_interval,
                "start_message": DOCUMENT_PHASES[0][1],
            },
        )
        self._replace_session(session)
        analysis_logger.session_start(snapshot.id, "document", len(docs))

        session.tracker.start()
        session.sink.add_task(
            asyncio.create_task(self._run_documents(session, snapshot, docs, processing_mode, retry))
        )
        return session.sink.snapshot()

    async def start_website_analysis(
        self,
        project: object,
        website_url: str,
        max_pages: int | None = None,
        timeout: float | None = None,
    ) -> AIProcessingStatus:
        """Start a background website analysis and return its initial status."""
        snapshot = ProjectSnapshot.of(project)
        settings = get_settings()
        session = self._new_session(
            snapshot.id,
            InsightSource.WEBSITE,
            {
                "step": website_simulation_step,
                "simulation_interval": settings.progress_simulation_interval,
                "start_message": WEBSITE_START_MESSAGE,
                "finalize_on_poll": True,
            },
        )
        self._replace_session(session)
        analysis_logger.session_start(snapshot.id, "website", 1)

        session.tracker.start()
        session.sink.add_task(
            asyncio.create_task(self._run_website(session, snapshot, website_url, max_pages, timeout))
        )
        return session.sink.snapshot()

    async def _run_documents(
        self,
        session: AnalysisSession,
        project: ProjectSnapshot,
        documents: list[DocumentSnapshot],
        processing_mode: str,
        retry: bool,
    ) -> None:
        sink = session.sink
        try:
            outcome = await self._dispatcher.analyze_documents(project, documents, processing_mode)
            if sink.is_terminal:
                return
            session.outcome = outcome

            sink.stop_timers()
            # Nothing to store when the documents had too little content
            if retry and not outcome.insufficient_content:
                await self._repository.replace_document_insights(
                    project.id, outcome.insights, outcome.using_fallback
                )
            elif outcome.insights:
                await self._repository.add_insights(
                    project.id, outcome.insights, outcome.using_fallback
                )
            self._finish(session, outcome)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            analysis_logger.session_error(project.id, "document", e)
            sink.fail(f"Analysis failed: {e}", retriable=True)

    async def _run_website(
        self,
        session: AnalysisSession,
        project: ProjectSnapshot,
        website_url: str,
        max_pages: int | None,
        timeout: float | None,
    ) -> None:
        sink = session.sink
        try:
            outcome = await self._dispatcher.analyze_website(
                project, website_url, max_pages=max_pages, timeout=timeout
            )
            if sink.is_terminal:
                return
            session.outcome = outcome

            sink.finalize()
            await self._repository.add_insights(project.id, outcome.insights, outcome.using_fallback)
            self._finish(session, outcome)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            analysis_logger.session_error(project.id, "website", e)
            sink.fail(f"Analysis failed: {e}", retriable=True)

    def _finish(self, session: AnalysisSession, outcome: AnalysisOutcome) -> None:
        sink = session.sink
        session.finished_at = time.monotonic()
        sink.set_result(outcome.insights, outcome.using_fallback)
        if outcome.error:
            sink.set_error_message(outcome.error, outcome.retriable)
        if outcome.insufficient_content:
            message = INSUFFICIENT_COMPLETE_MESSAGE
        elif outcome.using_fallback:
            message = FALLBACK_COMPLETE_MESSAGE
        else:
            message = COMPLETE_MESSAGE
        sink.complete(message)
        analysis_logger.session_complete(
            session.project_id,
            session.source.value,
            len(outcome.insights),
            outcome.using_fallback,
            (time.monotonic() - session.started_at) * 1000,
        )

    async def wait(self, project_id: str, source: InsightSource) -> AIProcessingStatus:
        """Wait until the session is terminal (used by synchronous callers and tests)."""
        session = self._sessions.get((project_id, source))
        if session is None:
            return self.status(project_id, source)
        while not session.sink.is_terminal:
            await asyncio.sleep(0.01)
        return session.sink.snapshot()

    def cancel(self, project_id: str, source: InsightSource) -> bool:
        session = self._sessions.pop((project_id, source), None)
        if session is None:
            return False
        session.sink.close()
        return True

    def prune(self, max_age: float = SESSION_RETENTION_SECONDS) -> int:
        """Drop finished sessions older than max_age; returns how many were dropped."""
        now = time.monotonic()
        stale = [
            key
            for key, s in self._sessions.items()
            if s.sink.state in (ProcessingState.COMPLETED, ProcessingState.ERROR)
            and now - (s.finished_at or s.started_at) > max_age
        ]
        for key in stale:
            self._sessions.pop(key).sink.close()
        return len(stale)

    async def shutdown(self) -> None:
        """Cancel every session (application shutdown)."""
        for session in self._sessions.values():
            session.sink.close()
        self._sessions.clear()
        await asyncio.sleep(0)


# Global session manager instance
session_manager: AnalysisSessionManager | None = None


def init_session_manager(
    dispatcher: AnalysisDispatcher, repository: InsightRepository
) -> AnalysisSessionManager:
    """Initialize the global session manager."""
    global session_manager
    if session_manager is None:
        session_manager = AnalysisSessionManager(dispatcher, repository)
    return session_manager


async def close_session_manager() -> None:
    global session_manager
    if session_manager is not None:
        await session_manager.shutdown()
        session_manager = None


async def get_session_manager() -> AnalysisSessionManager:
    """Dependency for getting the session manager.

    Raises:
        RuntimeError: If the application has not initialized it.
    """
    if session_manager is None:
        raise RuntimeError("Analysis session manager not initialized")
    return session_manager
