"""Review status reconciliation and aggregate statistics.

Review decisions live in a per-project map of insight id -> status. The map
is re-derived whenever the insight list changes: known decisions are kept,
unseen ids start as pending, and ids that no longer have an insight are
left in place.
"""

from collections import Counter
from collections.abc import Iterable, Mapping

from insight_studio.core.errors import InsightNotFoundError
from insight_studio.core.logging import get_logger
from insight_studio.schemas.insight import ReviewStats, ReviewStatus, StrategicInsight
from insight_studio.services.insight_store import InsightRepository, InsightStore

logger = get_logger(__name__)


def reconcile_review_statuses(
    insights: Iterable[StrategicInsight],
    previous: Mapping[str, ReviewStatus],
) -> dict[str, ReviewStatus]:
    """Review map covering every insight, keeping earlier decisions."""
    statuses = dict(previous)
    for insight in insights:
        statuses.setdefault(insight.id, ReviewStatus.PENDING)
    return statuses


def set_review_status(
    statuses: Mapping[str, ReviewStatus], insight_id: str, status: ReviewStatus
) -> dict[str, ReviewStatus]:
    """Copy of statuses with one decision overwritten."""
    return {**statuses, insight_id: status}


def compute_review_stats(
    insights: list[StrategicInsight], statuses: Mapping[str, ReviewStatus]
) -> ReviewStats:
    """Counts and confidence figures for the review screen.

    Anything not explicitly accepted or rejected counts as pending.
    overall_confidence averages accepted insights only (0 when none);
    average_confidence covers every insight.
    """
    accepted = [i for i in insights if statuses.get(i.id) == ReviewStatus.ACCEPTED]
    rejected = sum(1 for i in insights if statuses.get(i.id) == ReviewStatus.REJECTED)

    overall = int(sum(i.confidence for i in accepted) / len(accepted)) if accepted else 0
    average = int(sum(i.confidence for i in insights) / len(insights)) if insights else 0

    return ReviewStats(
        total=len(insights),
        accepted=len(accepted),
        rejected=rejected,
        pending=len(insights) - len(accepted) - rejected,
        needs_review=sum(1 for i in insights if i.needs_review),
        overall_confidence=overall,
        average_confidence=average,
        category_breakdown=dict(Counter(i.category.value for i in insights)),
    )


class ReviewService:
    """Keeps a project's review map in step with its insights."""

    def __init__(self, store: InsightStore) -> None:
        self._store = store
        self._insights = InsightRepository(store)

    async def get_statuses(self, project_id: str) -> dict[str, ReviewStatus]:
        """Stored map reconciled against the current insights (and saved if it changed)."""
        insights = await self._insights.list_insights(project_id)
        previous = await self._store.get_reviews(project_id)
        statuses = reconcile_review_statuses(insights, previous)
        if statuses != previous:
            await self._store.set_reviews(project_id, statuses)
        return statuses

    async def set_status(
        self, project_id: str, insight_id: str, status: ReviewStatus
    ) -> dict[str, ReviewStatus]:
        """Record a decision for an existing insight.

        Raises:
            InsightNotFoundError: If the project has no insight with that id.
        """
        insights = await self._insights.list_insights(project_id)
        if not any(i.id == insight_id for i in insights):
            raise InsightNotFoundError(f"Insight not found: {insight_id}")

        previous = reconcile_review_statuses(insights, await self._store.get_reviews(project_id))
        statuses = set_review_status(previous, insight_id, status)
        await self._store.set_reviews(project_id, statuses)
        logger.info(
            "Review status set",
            extra={"project_id": project_id, "insight_id": insight_id, "status": status.value},
        )
        return statuses

    async def stats(self, project_id: str) -> ReviewStats:
        insights = await self._insights.list_insights(project_id)
        return compute_review_stats(insights, await self.get_statuses(project_id))

    async def accepted_insights(self, project_id: str) -> list[StrategicInsight]:
        insights = await self._insights.list_insights(project_id)
        statuses = await self.get_statuses(project_id)
        return [i for i in insights if statuses.get(i.id) == ReviewStatus.ACCEPTED]

    async def clear(self, project_id: str) -> None:
        await self._store.delete_reviews(project_id)
