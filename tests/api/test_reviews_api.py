"""Tests for the reviews API."""

from httpx import AsyncClient


class TestReviewsApi:
    """Review decisions and statistics."""

    async def test_statuses_default_to_pending(
        self, async_client: AsyncClient, project_id: str, seed_insights
    ) -> None:
        await seed_insights(project_id, count=2)

        response = await async_client.get(f"/api/v1/projects/{project_id}/reviews")

        assert response.status_code == 200
        assert response.json()["statuses"] == {"i1": "pending", "i2": "pending"}

    async def test_set_status(
        self, async_client: AsyncClient, project_id: str, seed_insights
    ) -> None:
        await seed_insights(project_id, count=2)

        response = await async_client.put(
            f"/api/v1/projects/{project_id}/reviews/i2", json={"status": "rejected"}
        )

        assert response.status_code == 200
        assert response.json()["statuses"] == {"i1": "pending", "i2": "rejected"}

    async def test_set_status_unknown_insight(
        self, async_client: AsyncClient, project_id: str, seed_insights
    ) -> None:
        await seed_insights(project_id, count=1)

        response = await async_client.put(
            f"/api/v1/projects/{project_id}/reviews/nope", json={"status": "accepted"}
        )

        assert response.status_code == 404

    async def test_invalid_status_value(
        self, async_client: AsyncClient, project_id: str, seed_insights
    ) -> None:
        await seed_insights(project_id, count=1)

        response = await async_client.put(
            f"/api/v1/projects/{project_id}/reviews/i1", json={"status": "maybe"}
        )

        assert response.status_code == 422

    async def test_stats(
        self, async_client: AsyncClient, project_id: str, seed_insights
    ) -> None:
        # confidences: i1=70, i2=80, i3=90
        await seed_insights(project_id, count=3)
        for insight_id, status in (("i1", "accepted"), ("i3", "accepted"), ("i2", "rejected")):
            await async_client.put(
                f"/api/v1/projects/{project_id}/reviews/{insight_id}", json={"status": status}
            )

        response = await async_client.get(f"/api/v1/projects/{project_id}/reviews/stats")

        assert response.status_code == 200
        assert response.json() == {
            "total": 3,
            "accepted": 2,
            "rejected": 1,
            "pending": 0,
            "needs_review": 1,
            "overall_confidence": 80,
            "average_confidence": 80,
            "category_breakdown": {"business_challenges": 2, "key_narratives": 1},
        }

    async def test_stats_without_insights(
        self, async_client: AsyncClient, project_id: str
    ) -> None:
        response = await async_client.get(f"/api/v1/projects/{project_id}/reviews/stats")

        assert response.json()["total"] == 0
        assert response.json()["overall_confidence"] == 0
