"""Pytest configuration and fixtures.

Provides fixtures for:
- Database with SQLite in-memory
- Redis mocking
- S3 and analysis backend fakes
- FastAPI test client with dependency overrides
- Settings tuned for fast progress timers
"""

import os

# Settings are read once and cached; set the test environment before any import
os.environ.update(
    {
        "ENVIRONMENT": "test",
        "LOG_FORMAT": "text",
        "LOG_LEVEL": "WARNING",
        "AUTH_REQUIRED": "false",
        "PROGRESS_SIMULATION_INTERVAL": "0.01",
        "PROGRESS_DOCUMENT_INTERVAL": "0.01",
        "PROGRESS_POLL_INTERVAL": "0.01",
        "PROGRESS_COMPLETION_DELAY": "0",
        "ANALYSIS_SESSION_TIMEOUT": "5",
        "ANALYSIS_DOCUMENT_TIMEOUT": "2",
        "ANALYSIS_WEBSITE_TIMEOUT": "2",
    }
)
for _name in ("ANTHROPIC_API_KEY", "REDIS_URL", "S3_BUCKET", "S3_ACCESS_KEY", "S3_SECRET_KEY"):
    os.environ.pop(_name, None)

from collections.abc import AsyncGenerator, Generator  # noqa: E402
from typing import Any  # noqa: E402
from unittest.mock import MagicMock  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.dialects.postgresql import UUID  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlalchemy.types import String  # noqa: E402

from insight_studio.core.circuit_breaker import CircuitBreaker, CircuitBreakerConfig  # noqa: E402
from insight_studio.core.config import get_settings  # noqa: E402
from insight_studio.core.database import Base, DatabaseManager, db_manager  # noqa: E402
from insight_studio.core.redis import RedisManager  # noqa: E402
from insight_studio.integrations.claude import ClaudeClient, get_claude  # noqa: E402
from insight_studio.integrations.s3 import S3Error, get_s3  # noqa: E402
from insight_studio.integrations.website_fetcher import get_website_fetcher  # noqa: E402
from insight_studio.services.analysis import AnalysisDispatcher  # noqa: E402
from insight_studio.services.analysis_session import (  # noqa: E402
    AnalysisSessionManager,
    get_session_manager,
)
from insight_studio.services.insight_store import (  # noqa: E402
    InMemoryInsightStore,
    InsightRepository,
    get_insight_store,
)

get_settings.cache_clear()

# ---------------------------------------------------------------------------
# SQLite Type Compatibility
# ---------------------------------------------------------------------------


def _adapt_postgres_types_for_sqlite() -> None:
    """Adapt PostgreSQL-specific column types and defaults to work with SQLite."""
    for table in Base.metadata.tables.values():
        for column in table.columns:
            if isinstance(column.type, UUID):
                column.type = String(36)

            if column.server_default is not None:
                default_text = str(getattr(column.server_default, "arg", column.server_default))
                if any(pg in default_text for pg in ("gen_random_uuid()", "now()")):
                    column.server_default = None


# ---------------------------------------------------------------------------
# Database Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
async def async_engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite engine, fresh for every test.

    StaticPool keeps the single in-memory connection alive across sessions.
    """
    _adapt_postgres_types_for_sqlite()

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection: Any, _record: Any) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def async_session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db_session(
    async_session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Database session for service-level tests."""
    async with async_session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def mock_db_manager(
    async_engine: AsyncEngine,
    async_session_factory: async_sessionmaker[AsyncSession],
) -> Generator[DatabaseManager, None, None]:
    """Point the global database manager at the test engine."""
    original_engine = db_manager._engine
    original_factory = db_manager._session_factory

    db_manager._engine = async_engine
    db_manager._session_factory = async_session_factory

    yield db_manager

    db_manager._engine = original_engine
    db_manager._session_factory = original_factory


# ---------------------------------------------------------------------------
# Redis Fixtures
# ---------------------------------------------------------------------------


class MockRedis:
    """In-memory stand-in for the redis.asyncio client."""

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}
        self._ttls: dict[str, int] = {}
        self.fail = False

    def _check(self) -> None:
        if self.fail:
            from redis.exceptions import ConnectionError as RedisConnectionError

            raise RedisConnectionError("mock redis down")

    async def get(self, key: str) -> bytes | None:
        self._check()
        value = self._data.get(key)
        if value is None:
            return None
        return value if isinstance(value, bytes) else str(value).encode()

    async def set(self, key: str, value: str | bytes, ex: int | None = None) -> bool:
        self._check()
        self._data[key] = value
        if ex:
            self._ttls[key] = ex
        return True

    async def delete(self, *keys: str) -> int:
        self._check()
        count = 0
        for key in keys:
            if key in self._data:
                del self._data[key]
                count += 1
            self._ttls.pop(key, None)
        return count

    async def ping(self) -> bool:
        self._check()
        return True

    async def aclose(self) -> None:
        self._data.clear()
        self._ttls.clear()


@pytest.fixture
def mock_redis() -> MockRedis:
    return MockRedis()


@pytest.fixture
def mock_redis_manager(mock_redis: MockRedis) -> Generator[RedisManager, None, None]:
    """Mock the global Redis manager for testing."""
    from insight_studio.core.redis import redis_manager

    original_pool = redis_manager._pool
    original_client = redis_manager._client
    original_circuit = redis_manager._circuit_breaker
    original_available = redis_manager._available

    redis_manager._pool = MagicMock()
    redis_manager._client = mock_redis  # type: ignore[assignment]
    redis_manager._circuit_breaker = CircuitBreaker(
        CircuitBreakerConfig(failure_threshold=5, recovery_timeout=30.0), name="redis"
    )
    redis_manager._available = True

    yield redis_manager

    redis_manager._pool = original_pool
    redis_manager._client = original_client
    redis_manager._circuit_breaker = original_circuit
    redis_manager._available = original_available


# ---------------------------------------------------------------------------
# S3 Fixtures
# ---------------------------------------------------------------------------


class MockS3:
    """In-memory object storage with the S3Client surface used by services."""

    def __init__(self, available: bool = True) -> None:
        self.objects: dict[str, bytes] = {}
        self.available = available
        self.bucket = "test-bucket"
        self.fail_uploads = False
        self.circuit_breaker = CircuitBreaker(
            CircuitBreakerConfig(failure_threshold=5, recovery_timeout=60.0), name="s3"
        )

    def object_url(self, key: str) -> str:
        return f"https://{self.bucket}.s3.amazonaws.com/{key}"

    async def upload_file(
        self, key: str, data: bytes, content_type: str = "application/octet-stream"
    ) -> str:
        if self.fail_uploads:
            raise S3Error("upload refused", "upload_file", key)
        self.objects[key] = data
        return key

    async def delete_file(self, key: str) -> bool:
        self.objects.pop(key, None)
        return True

    async def check_health(self) -> bool:
        return self.available


@pytest.fixture
def mock_s3() -> MockS3:
    return MockS3()


# ---------------------------------------------------------------------------
# Analysis Fixtures
# ---------------------------------------------------------------------------


def make_raw_insight(index: int, category: str = "business_challenges", **overrides: Any) -> dict:
    """Insight dict shaped like an LLM response item."""
    raw = {
        "id": f"ai_{index}",
        "category": category,
        "confidence": 80,
        "needsReview": False,
        "content": {
            "title": f"Insight {index}",
            "summary": f"Summary {index}",
            "details": "Details",
        },
    }
    raw.update(overrides)
    return raw


class FakeAnalysisBackend:
    """AnalysisBackend returning canned payloads (or raising) and recording calls."""

    def __init__(self) -> None:
        self.document_payload: dict[str, Any] = {
            "insights": [make_raw_insight(i) for i in range(1, 4)]
        }
        self.website_payload: dict[str, Any] = {
            "insights": [
                make_raw_insight(i, "company_positioning", id=f"web_{i}") for i in range(1, 3)
            ]
        }
        self.error: Exception | None = None
        self.delay: float = 0.0
        self.document_calls: list[tuple[Any, list[Any], str]] = []
        self.website_calls: list[tuple[Any, str, int | None]] = []

    async def _maybe_wait(self) -> None:
        if self.delay:
            import asyncio

            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error

    async def analyze_documents(
        self, project: Any, documents: Any, processing_mode: str
    ) -> dict[str, Any]:
        self.document_calls.append((project, list(documents), processing_mode))
        await self._maybe_wait()
        return self.document_payload

    async def analyze_website(
        self, project: Any, website_url: str, max_pages: int | None
    ) -> dict[str, Any]:
        self.website_calls.append((project, website_url, max_pages))
        await self._maybe_wait()
        return self.website_payload


@pytest.fixture
def fake_backend() -> FakeAnalysisBackend:
    return FakeAnalysisBackend()


@pytest.fixture
def insight_store() -> InMemoryInsightStore:
    return InMemoryInsightStore()


@pytest.fixture
def insight_repository(insight_store: InMemoryInsightStore) -> InsightRepository:
    return InsightRepository(insight_store)


@pytest.fixture
def dispatcher(fake_backend: FakeAnalysisBackend) -> AnalysisDispatcher:
    return AnalysisDispatcher(fake_backend, claude_available=True)


@pytest.fixture
async def session_manager(
    dispatcher: AnalysisDispatcher, insight_repository: InsightRepository
) -> AsyncGenerator[AnalysisSessionManager, None]:
    manager = AnalysisSessionManager(dispatcher, insight_repository)
    yield manager
    await manager.shutdown()


class FakeFetcher:
    """Website fetcher double for the diagnostics endpoint."""

    def __init__(self) -> None:
        self.probed: list[str] = []

    async def probe(self, url: str) -> tuple[bool, int | None]:
        self.probed.append(url)
        return True, 200


# ---------------------------------------------------------------------------
# FastAPI Test Client Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def app():
    """Create FastAPI app for testing."""
    from insight_studio.main import create_app

    return create_app()


@pytest.fixture
async def async_client(
    app,
    mock_db_manager: DatabaseManager,
    mock_s3: MockS3,
    insight_store: InMemoryInsightStore,
    session_manager: AnalysisSessionManager,
) -> AsyncGenerator[AsyncClient, None]:
    """Async test client with database, storage, store and analysis overridden."""
    fetcher = FakeFetcher()
    claude = ClaudeClient(api_key=None)

    async def _s3() -> MockS3:
        return mock_s3

    async def _store() -> InMemoryInsightStore:
        return insight_store

    async def _sessions() -> AnalysisSessionManager:
        return session_manager

    async def _claude() -> ClaudeClient:
        return claude

    async def _fetcher() -> FakeFetcher:
        return fetcher

    app.dependency_overrides[get_s3] = _s3
    app.dependency_overrides[get_insight_store] = _store
    app.dependency_overrides[get_session_manager] = _sessions
    app.dependency_overrides[get_claude] = _claude
    app.dependency_overrides[get_website_fetcher] = _fetcher

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
