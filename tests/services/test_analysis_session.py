"""Tests for background analysis sessions.

Tests cover:
- Document and website runs persist their batch and complete
- Fallback runs complete with the sample-data message
- Retry keeps website insights and replaces document insights
- A newer run for the same project/source replaces the older one
- Session timeout ends in error without persisting
- Slow store writes are not cut short by the session timeout
"""

import asyncio
from types import SimpleNamespace

import pytest

from insight_studio.schemas.insight import (
    InsightCategory,
    InsightContent,
    InsightSource,
    ProcessingState,
    StoredInsightRecord,
    StrategicInsight,
)
from insight_studio.services.analysis import AnalysisDispatcher
from insight_studio.services.analysis_session import (
    COMPLETE_MESSAGE,
    FALLBACK_COMPLETE_MESSAGE,
    INSUFFICIENT_COMPLETE_MESSAGE,
    AnalysisSessionManager,
    DocumentSnapshot,
    ProjectSnapshot,
    get_session_manager,
)
from insight_studio.services.insight_store import InMemoryInsightStore, InsightRepository
from insight_studio.services.progress import TIMEOUT_MESSAGE, WEBSITE_FINALIZING_MESSAGE

PROJECT = SimpleNamespace(
    id="p1",
    title="Launch",
    client_name="Acme",
    client_industry="retail",
    client_website="https://acme.com",
)
DOCUMENTS = [
    SimpleNamespace(id="d1", name="brief.pdf", priority=2, extracted_text="text"),
]


class TestSnapshots:
    """Tests for ProjectSnapshot and DocumentSnapshot."""

    def test_project_snapshot_defaults_industry(self) -> None:
        project = SimpleNamespace(id="p", title="T", client_name="C", client_industry=None)

        snapshot = ProjectSnapshot.of(project)

        assert snapshot.client_industry == "technology"
        assert snapshot.client_website is None

    def test_document_snapshot_copies_fields(self) -> None:
        snapshot = DocumentSnapshot.of(DOCUMENTS[0])
        assert (snapshot.id, snapshot.name, snapshot.priority) == ("d1", "brief.pdf", 2)


class TestDocumentSessions:
    """Tests for document analysis sessions."""

    async def test_idle_status_without_session(self, session_manager: AnalysisSessionManager) -> None:
        status = session_manager.status("p1", InsightSource.DOCUMENT)

        assert status.status == ProcessingState.IDLE
        assert status.message == "Ready to analyze documents"

    async def test_run_persists_and_completes(
        self,
        session_manager: AnalysisSessionManager,
        insight_repository: InsightRepository,
    ) -> None:
        initial = await session_manager.start_document_analysis(PROJECT, DOCUMENTS)
        assert initial.status == ProcessingState.PROCESSING

        final = await session_manager.wait("p1", InsightSource.DOCUMENT)

        assert final.status == ProcessingState.COMPLETED
        assert final.progress == 100
        assert final.message == COMPLETE_MESSAGE
        assert final.insight_count == 3
        assert len(await insight_repository.list_insights("p1")) == 3

    async def test_fallback_run_reports_sample_data(
        self,
        session_manager: AnalysisSessionManager,
        insight_repository: InsightRepository,
        fake_backend,
    ) -> None:
        fake_backend.error = RuntimeError("Claude down")

        await session_manager.start_document_analysis(PROJECT, DOCUMENTS)
        final = await session_manager.wait("p1", InsightSource.DOCUMENT)

        assert final.status == ProcessingState.COMPLETED
        assert final.message == FALLBACK_COMPLETE_MESSAGE
        assert final.using_fallback is True
        assert "Claude down" in (final.error or "")
        record = await insight_repository.load("p1")
        assert record is not None
        assert record.using_fallback_insights is True

    async def test_backend_receives_snapshots(
        self, session_manager: AnalysisSessionManager, fake_backend
    ) -> None:
        await session_manager.start_document_analysis(PROJECT, DOCUMENTS, processing_mode="quick")
        await session_manager.wait("p1", InsightSource.DOCUMENT)

        project, documents, mode = fake_backend.document_calls[0]
        assert isinstance(project, ProjectSnapshot)
        assert all(isinstance(d, DocumentSnapshot) for d in documents)
        assert mode == "quick"

    async def test_retry_replaces_document_insights_only(
        self,
        session_manager: AnalysisSessionManager,
        insight_repository: InsightRepository,
        fake_backend,
    ) -> None:
        await session_manager.start_website_analysis(PROJECT, "https://acme.com")
        await session_manager.wait("p1", InsightSource.WEBSITE)
        await session_manager.start_document_analysis(PROJECT, DOCUMENTS)
        await session_manager.wait("p1", InsightSource.DOCUMENT)

        fake_backend.document_payload = {
            "insights": [
                {"id": "new_1", "category": "key_narratives", "content": {"title": "Fresh"}}
            ]
        }
        await session_manager.start_document_analysis(PROJECT, DOCUMENTS, retry=True)
        await session_manager.wait("p1", InsightSource.DOCUMENT)

        documents = await insight_repository.list_insights("p1", InsightSource.DOCUMENT)
        websites = await insight_repository.list_insights("p1", InsightSource.WEBSITE)
        assert [i.id for i in documents] == ["new_1"]
        assert len(websites) == 2

    async def test_new_run_replaces_previous(
        self, session_manager: AnalysisSessionManager, fake_backend
    ) -> None:
        fake_backend.delay = 0.2
        await session_manager.start_document_analysis(PROJECT, DOCUMENTS)
        first = session_manager.get_session("p1", InsightSource.DOCUMENT)

        await session_manager.start_document_analysis(PROJECT, DOCUMENTS)
        second = session_manager.get_session("p1", InsightSource.DOCUMENT)

        assert first is not second
        await session_manager.wait("p1", InsightSource.DOCUMENT)
        assert second is not None
        assert second.sink.state == ProcessingState.COMPLETED

    async def test_cancel_removes_session(
        self, session_manager: AnalysisSessionManager, fake_backend
    ) -> None:
        fake_backend.delay = 1.0
        await session_manager.start_document_analysis(PROJECT, DOCUMENTS)

        assert session_manager.cancel("p1", InsightSource.DOCUMENT) is True
        assert session_manager.cancel("p1", InsightSource.DOCUMENT) is False
        assert session_manager.status("p1", InsightSource.DOCUMENT).status == ProcessingState.IDLE


class TestWebsiteSessions:
    """Tests for website analysis sessions."""

    async def test_run_completes_with_website_insights(
        self,
        session_manager: AnalysisSessionManager,
        insight_repository: InsightRepository,
        fake_backend,
    ) -> None:
        await session_manager.start_website_analysis(PROJECT, "https://acme.com", max_pages=3)
        final = await session_manager.wait("p1", InsightSource.WEBSITE)

        assert final.status == ProcessingState.COMPLETED
        assert final.progress == 100
        stored = await insight_repository.list_insights("p1", InsightSource.WEBSITE)
        assert len(stored) == 2
        assert fake_backend.website_calls[0][1:] == ("https://acme.com", 3)

    async def test_second_website_run_replaces_website_insights(
        self,
        session_manager: AnalysisSessionManager,
        insight_repository: InsightRepository,
        fake_backend,
    ) -> None:
        await session_manager.start_website_analysis(PROJECT, "https://acme.com")
        await session_manager.wait("p1", InsightSource.WEBSITE)

        fake_backend.website_payload = {
            "insights": [{"id": "only", "category": "key_partnerships", "title": "Only one"}]
        }
        await session_manager.start_website_analysis(PROJECT, "https://acme.com")
        await session_manager.wait("p1", InsightSource.WEBSITE)

        stored = await insight_repository.list_insights("p1", InsightSource.WEBSITE)
        assert [i.id for i in stored] == ["only"]


class TestSessionTimeout:
    """The session's hard timeout ends the run in error and drops its batch."""

    async def test_timeout_does_not_persist(
        self,
        dispatcher: AnalysisDispatcher,
        insight_repository: InsightRepository,
        fake_backend,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        from insight_studio.core.config import get_settings

        monkeypatch.setattr(get_settings(), "analysis_session_timeout", 0.05)
        fake_backend.delay = 0.5
        manager = AnalysisSessionManager(dispatcher, insight_repository)

        try:
            await manager.start_document_analysis(PROJECT, DOCUMENTS)
            final = await manager.wait("p1", InsightSource.DOCUMENT)
            await asyncio.sleep(0.6)
        finally:
            await manager.shutdown()

        assert final.status == ProcessingState.ERROR
        assert final.message == TIMEOUT_MESSAGE
        assert final.retriable is True
        assert await insight_repository.list_insights("p1") == []


class TestGlobalSessionManager:
    """Tests for the module-level dependency."""

    async def test_get_session_manager_requires_init(self, monkeypatch: pytest.MonkeyPatch) -> None:
        import insight_studio.services.analysis_session as module

        monkeypatch.setattr(module, "session_manager", None)

        with pytest.raises(RuntimeError):
            await get_session_manager()


class SlowInsightStore(InMemoryInsightStore):
    """In-memory store whose record writes take `delay` seconds."""

    def __init__(self) -> None:
        super().__init__()
        self.delay = 0.0

    async def set_record(self, record: StoredInsightRecord) -> None:
        await asyncio.sleep(self.delay)
        await super().set_record(record)


def _stored_document_insights(count: int) -> list[StrategicInsight]:
    return [
        StrategicInsight(
            id=f"old_{n}",
            category=InsightCategory.BUSINESS_CHALLENGES,
            content=InsightContent(title=f"Earlier {n}"),
        )
        for n in range(1, count + 1)
    ]


class TestSlowStoreWrites:
    """Writes that outlast the session timeout still land in full."""

    async def test_retry_with_slow_store_replaces_documents_once(
        self,
        dispatcher: AnalysisDispatcher,
        fake_backend,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        from insight_studio.core.config import get_settings

        store = SlowInsightStore()
        repository = InsightRepository(store)
        await repository.persist("p1", _stored_document_insights(3))
        monkeypatch.setattr(get_settings(), "analysis_session_timeout", 0.2)
        store.delay = 0.4
        fake_backend.document_payload = {
            "insights": [{"id": "new_1", "category": "key_narratives", "title": "Fresh"}]
        }
        manager = AnalysisSessionManager(dispatcher, repository)

        try:
            await manager.start_document_analysis(PROJECT, DOCUMENTS, retry=True)
            final = await manager.wait("p1", InsightSource.DOCUMENT)
        finally:
            await manager.shutdown()

        assert final.status == ProcessingState.COMPLETED
        documents = await repository.list_insights("p1", InsightSource.DOCUMENT)
        assert [i.id for i in documents] == ["new_1"]

    async def test_retry_timing_out_keeps_earlier_documents(
        self,
        dispatcher: AnalysisDispatcher,
        fake_backend,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        from insight_studio.core.config import get_settings

        store = SlowInsightStore()
        repository = InsightRepository(store)
        await repository.persist("p1", _stored_document_insights(3))
        monkeypatch.setattr(get_settings(), "analysis_session_timeout", 0.05)
        fake_backend.delay = 0.3
        manager = AnalysisSessionManager(dispatcher, repository)

        try:
            await manager.start_document_analysis(PROJECT, DOCUMENTS, retry=True)
            final = await manager.wait("p1", InsightSource.DOCUMENT)
            await asyncio.sleep(0.4)
        finally:
            await manager.shutdown()

        assert final.status == ProcessingState.ERROR
        documents = await repository.list_insights("p1", InsightSource.DOCUMENT)
        assert [i.id for i in documents] == ["old_1", "old_2", "old_3"]

    async def test_website_session_reports_finalizing_while_writing(
        self, dispatcher: AnalysisDispatcher
    ) -> None:
        store = SlowInsightStore()
        store.delay = 0.3
        manager = AnalysisSessionManager(dispatcher, InsightRepository(store))

        try:
            await manager.start_website_analysis(PROJECT, "https://acme.com")
            state = manager.status("p1", InsightSource.WEBSITE)
            for _ in range(100):
                if state.status != ProcessingState.PROCESSING:
                    break
                await asyncio.sleep(0.01)
                state = manager.status("p1", InsightSource.WEBSITE)

            assert state.status == ProcessingState.FINALIZING
            assert state.progress == 100
            assert state.message == WEBSITE_FINALIZING_MESSAGE

            final = await manager.wait("p1", InsightSource.WEBSITE)
        finally:
            await manager.shutdown()

        assert final.status == ProcessingState.COMPLETED


class TestInsufficientContent:
    """Documents without enough content store nothing and point at website analysis."""

    async def test_run_completes_without_insights(
        self,
        session_manager: AnalysisSessionManager,
        insight_repository: InsightRepository,
        fake_backend,
    ) -> None:
        fake_backend.document_payload = {"insufficientContent": True}

        await session_manager.start_document_analysis(PROJECT, DOCUMENTS)
        final = await session_manager.wait("p1", InsightSource.DOCUMENT)

        assert final.status == ProcessingState.COMPLETED
        assert final.message == INSUFFICIENT_COMPLETE_MESSAGE
        assert final.insight_count == 0
        assert final.using_fallback is False
        assert final.retriable is False
        assert await insight_repository.load("p1") is None

    async def test_retry_keeps_earlier_documents(
        self,
        session_manager: AnalysisSessionManager,
        insight_repository: InsightRepository,
        fake_backend,
    ) -> None:
        await insight_repository.persist("p1", _stored_document_insights(2))
        fake_backend.document_payload = {"insufficientContent": True}

        await session_manager.start_document_analysis(PROJECT, DOCUMENTS, retry=True)
        await session_manager.wait("p1", InsightSource.DOCUMENT)

        stored = await insight_repository.list_insights("p1", InsightSource.DOCUMENT)
        assert [i.id for i in stored] == ["old_1", "old_2"]
