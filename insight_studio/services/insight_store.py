"""Insight persistence and merge.

Each project has one serialized insight record (key project_insights_{id})
and one review map (key project_reviews_{id}). InsightStore is the storage
port; InsightRepository owns the merge rules:

- Website batches replace every stored website insight
- Document batches accumulate, skipping empty or already-stored titles
- An incoming id that collides with a stored insight from the other source
  is stored as "{id}_{source}" so both survive

Writes are read-modify-write without optimistic concurrency; concurrent
writers for the same project may lose updates.
"""

import time
from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import UTC, datetime

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from insight_studio.core.errors import InsightNotFoundError
from insight_studio.core.logging import analysis_logger, get_logger
from insight_studio.core.redis import RedisManager
from insight_studio.schemas.insight import (
    InsightContentUpdate,
    InsightSource,
    ReviewStatus,
    StoredInsightRecord,
    StrategicInsight,
)

logger = get_logger(__name__)

_REVIEW_MAP = TypeAdapter(dict[str, ReviewStatus])


def insight_record_key(project_id: str) -> str:
    return f"project_insights_{project_id}"


def review_map_key(project_id: str) -> str:
    return f"project_reviews_{project_id}"


def _serialize_record(record: StoredInsightRecord) -> str:
    return record.model_dump_json(by_alias=True)


def _deserialize_record(project_id: str, raw: str | bytes) -> StoredInsightRecord | None:
    try:
        return StoredInsightRecord.model_validate_json(raw)
    except PydanticValidationError as e:
        logger.error(
            "Discarding unreadable insight record",
            extra={"project_id": project_id, "error_count": e.error_count()},
        )
        return None


class InsightStore(ABC):
    """Storage port for insight records and review maps."""

    @abstractmethod
    async def get_record(self, project_id: str) -> StoredInsightRecord | None: ...

    @abstractmethod
    async def set_record(self, record: StoredInsightRecord) -> None: ...

    @abstractmethod
    async def delete_record(self, project_id: str) -> None: ...

    @abstractmethod
    async def get_reviews(self, project_id: str) -> dict[str, ReviewStatus]: ...

    @abstractmethod
    async def set_reviews(self, project_id: str, statuses: dict[str, ReviewStatus]) -> None: ...

    @abstractmethod
    async def delete_reviews(self, project_id: str) -> None: ...


class InMemoryInsightStore(InsightStore):
    """Process-local store; values are kept serialized like in Redis."""

    def __init__(self) -> None:
        self._values: dict[str, str] = {}

    async def get_record(self, project_id: str) -> StoredInsightRecord | None:
        raw = self._values.get(insight_record_key(project_id))
        return _deserialize_record(project_id, raw) if raw else None

    async def set_record(self, record: StoredInsightRecord) -> None:
        self._values[insight_record_key(record.project_id)] = _serialize_record(record)

    async def delete_record(self, project_id: str) -> None:
        self._values.pop(insight_record_key(project_id), None)

    async def get_reviews(self, project_id: str) -> dict[str, ReviewStatus]:
        raw = self._values.get(review_map_key(project_id))
        return _parse_reviews(raw) if raw else {}

    async def set_reviews(self, project_id: str, statuses: dict[str, ReviewStatus]) -> None:
        self._values[review_map_key(project_id)] = _dump_reviews(statuses)

    async def delete_reviews(self, project_id: str) -> None:
        self._values.pop(review_map_key(project_id), None)


def _dump_reviews(statuses: dict[str, ReviewStatus]) -> str:
    return _REVIEW_MAP.dump_json(statuses).decode()


def _parse_reviews(raw: str | bytes) -> dict[str, ReviewStatus]:
    try:
        return _REVIEW_MAP.validate_json(raw)
    except PydanticValidationError:
        logger.error("Discarding unreadable review map")
        return {}


class RedisInsightStore(InsightStore):
    """Redis-backed store that degrades to an in-process copy.

    Every write also lands in the local copy, after the Redis write returns.
    Reads prefer Redis and use the local copy when Redis is unavailable or
    has no value.
    """

    def __init__(self, redis: RedisManager) -> None:
        self._redis = redis
        self._local = InMemoryInsightStore()

    async def get_record(self, project_id: str) -> StoredInsightRecord | None:
        raw = await self._redis.get(insight_record_key(project_id))
        if raw is not None:
            record = _deserialize_record(project_id, raw)
            if record is not None:
                return record
        return await self._local.get_record(project_id)

    async def set_record(self, record: StoredInsightRecord) -> None:
        stored = await self._redis.set(insight_record_key(record.project_id), _serialize_record(record))
        await self._local.set_record(record)
        if not stored:
            logger.warning(
                "Insight record kept in process only",
                extra={"project_id": record.project_id},
            )

    async def delete_record(self, project_id: str) -> None:
        await self._local.delete_record(project_id)
        await self._redis.delete(insight_record_key(project_id))

    async def get_reviews(self, project_id: str) -> dict[str, ReviewStatus]:
        raw = await self._redis.get(review_map_key(project_id))
        if raw is not None:
            return _parse_reviews(raw)
        return await self._local.get_reviews(project_id)

    async def set_reviews(self, project_id: str, statuses: dict[str, ReviewStatus]) -> None:
        await self._redis.set(review_map_key(project_id), _dump_reviews(statuses))
        await self._local.set_reviews(project_id, statuses)

    async def delete_reviews(self, project_id: str) -> None:
        await self._local.delete_reviews(project_id)
        await self._redis.delete(review_map_key(project_id))


def merge_insights(
    existing: Iterable[StrategicInsight], incoming: Iterable[StrategicInsight]
) -> list[StrategicInsight]:
    """Merge incoming into existing by id, keeping existing order.

    New ids are appended. A same-source id overwrites in place. An id held
    by the other source is rewritten to "{id}_{source}" first.
    """
    merged: dict[str, StrategicInsight] = {insight.id: insight for insight in existing}
    for insight in incoming:
        current = merged.get(insight.id)
        if current is not None and current.source != insight.source:
            insight = insight.model_copy(update={"id": f"{insight.id}_{insight.source.value}"})
        merged[insight.id] = insight
    return list(merged.values())


def _new_titles(
    stored: Iterable[StrategicInsight], incoming: Iterable[StrategicInsight]
) -> list[StrategicInsight]:
    """Incoming insights with a non-empty title not already stored."""
    known_titles = {i.title for i in stored}
    return [i for i in incoming if i.title.strip() and i.title not in known_titles]


class InsightRepository:
    """Reads and writes a project's insight record through an InsightStore."""

    def __init__(self, store: InsightStore) -> None:
        self._store = store

    @property
    def store(self) -> InsightStore:
        return self._store

    async def load(self, project_id: str) -> StoredInsightRecord | None:
        return await self._store.get_record(project_id)

    async def list_insights(
        self, project_id: str, source: InsightSource | None = None
    ) -> list[StrategicInsight]:
        """Stored insights, optionally only those from one source."""
        record = await self._store.get_record(project_id)
        if record is None:
            return []
        if source is None:
            return list(record.insights)
        return [i for i in record.insights if i.source == source]

    async def _write(
        self,
        project_id: str,
        insights: list[StrategicInsight],
        using_fallback: bool,
        incoming_count: int,
        replaced: bool,
    ) -> StoredInsightRecord:
        record = StoredInsightRecord(
            project_id=project_id,
            insights=insights,
            generation_timestamp=int(time.time() * 1000),
            using_fallback_data=using_fallback,
            using_fallback_insights=using_fallback,
            timestamp=datetime.now(UTC),
        )
        await self._store.set_record(record)
        analysis_logger.insights_persisted(project_id, len(insights), incoming_count, replaced)
        return record

    async def persist(
        self,
        project_id: str,
        insights: list[StrategicInsight],
        using_fallback: bool = False,
        replace_existing: bool = False,
    ) -> StoredInsightRecord:
        """Write insights, either replacing the record or merging into it."""
        if replace_existing:
            return await self._write(project_id, list(insights), using_fallback, len(insights), True)

        record = await self._store.get_record(project_id)
        existing = record.insights if record else []
        merged = merge_insights(existing, insights)
        return await self._write(project_id, merged, using_fallback, len(insights), False)

    async def add_insights(
        self,
        project_id: str,
        insights: list[StrategicInsight],
        using_fallback: bool = False,
    ) -> list[StrategicInsight]:
        """Add a batch with source-aware rules and return the stored list.

        A batch containing any website insight first removes every stored
        website insight. Document batches drop insights whose title is empty
        or already stored; if nothing remains the record is left untouched.
        """
        record = await self._store.get_record(project_id)
        stored = list(record.insights) if record else []

        if any(i.source == InsightSource.WEBSITE for i in insights):
            base = [i for i in stored if i.source != InsightSource.WEBSITE]
            written = await self._write(
                project_id, merge_insights(base, insights), using_fallback, len(insights), False
            )
            return written.insights

        fresh = _new_titles(stored, insights)
        if not fresh:
            logger.info(
                "No new document insights to store",
                extra={"project_id": project_id, "incoming_count": len(insights)},
            )
            return stored

        written = await self._write(
            project_id, merge_insights(stored, fresh), using_fallback, len(insights), False
        )
        return written.insights

    async def replace_document_insights(
        self,
        project_id: str,
        insights: list[StrategicInsight],
        using_fallback: bool = False,
    ) -> list[StrategicInsight]:
        """Swap every stored document insight for a new batch in one write.

        Website insights are kept. The combined record is built first and
        written once, so an interrupted call leaves the old record intact.
        """
        kept = await self.list_insights(project_id, InsightSource.WEBSITE)
        combined = merge_insights(kept, _new_titles(kept, insights))
        record = await self.persist(project_id, combined, using_fallback, replace_existing=True)
        return record.insights

    async def get_insight(self, project_id: str, insight_id: str) -> StrategicInsight:
        """One stored insight.

        Raises:
            InsightNotFoundError: If the insight is not in the record.
        """
        for insight in await self.list_insights(project_id):
            if insight.id == insight_id:
                return insight
        raise InsightNotFoundError(f"Insight not found: {insight_id}")

    async def update_insight(
        self, project_id: str, insight_id: str, update: InsightContentUpdate
    ) -> StrategicInsight:
        """Apply a partial content update to one stored insight.

        Raises:
            InsightNotFoundError: If the insight is not in the record.
        """
        record = await self._store.get_record(project_id)
        if record is None:
            raise InsightNotFoundError(f"Insight not found: {insight_id}")

        changes = {
            key: value
            for key, value in update.model_dump(exclude_unset=True).items()
            if value is not None
        }
        top_level = {
            key: changes.pop(key) for key in ("confidence", "needs_review") if key in changes
        }
        updated: StrategicInsight | None = None
        insights = []
        for insight in record.insights:
            if insight.id == insight_id:
                content = insight.content.model_copy(update=changes)
                insight = insight.model_copy(update={**top_level, "content": content})
                updated = insight
            insights.append(insight)

        if updated is None:
            raise InsightNotFoundError(f"Insight not found: {insight_id}")

        await self._store.set_record(record.model_copy(update={"insights": insights}))
        logger.info(
            "Insight updated",
            extra={"project_id": project_id, "insight_id": insight_id, "fields": sorted(changes)},
        )
        return updated

    async def clear(self, project_id: str) -> None:
        """Remove the project's insight record."""
        await self._store.delete_record(project_id)
        logger.info("Insight record cleared", extra={"project_id": project_id})


# Global insight store instance
insight_store: InsightStore | None = None


def init_insight_store(redis: RedisManager | None = None) -> InsightStore:
    """Initialize the global store: Redis-backed when a manager is given."""
    global insight_store
    if insight_store is None:
        insight_store = RedisInsightStore(redis) if redis is not None else InMemoryInsightStore()
        logger.info(
            "Insight store initialized",
            extra={"backend": type(insight_store).__name__},
        )
    return insight_store


def close_insight_store() -> None:
    global insight_store
    insight_store = None


async def get_insight_store() -> InsightStore:
    """Dependency for getting the insight store."""
    if insight_store is None:
        return init_insight_store()
    return insight_store
