"""Fixtures shared by the API tests."""

from collections.abc import Awaitable, Callable

import pytest
from httpx import AsyncClient

from insight_studio.schemas.insight import (
    InsightCategory,
    InsightContent,
    InsightSource,
    StrategicInsight,
)
from insight_studio.services.insight_store import InMemoryInsightStore, InsightRepository


@pytest.fixture
async def project_id(async_client: AsyncClient) -> str:
    response = await async_client.post(
        "/api/v1/projects",
        json={
            "title": "Launch",
            "client_name": "Acme",
            "client_industry": "retail",
            "client_website": "acme.com",
        },
    )
    assert response.status_code == 201
    return response.json()["id"]


@pytest.fixture
def seed_insights(
    insight_store: InMemoryInsightStore,
) -> Callable[..., Awaitable[list[StrategicInsight]]]:
    """Store insights for a project directly, bypassing analysis."""

    async def _seed(
        project_id: str, count: int = 3, source: InsightSource = InsightSource.DOCUMENT
    ) -> list[StrategicInsight]:
        insights = [
            StrategicInsight(
                id=f"i{n}",
                category=InsightCategory.BUSINESS_CHALLENGES
                if n % 2
                else InsightCategory.KEY_NARRATIVES,
                source=source,
                confidence=60 + 10 * n,
                needs_review=n == 1,
                content=InsightContent(title=f"Insight {n}", summary=f"Summary {n}"),
            )
            for n in range(1, count + 1)
        ]
        await InsightRepository(insight_store).persist(project_id, insights)
        return insights

    return _seed
