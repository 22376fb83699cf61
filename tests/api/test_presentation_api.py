"""Tests for the presentation outline API."""

from httpx import AsyncClient


class TestPresentationApi:
    """GET /projects/{id}/presentation."""

    async def test_only_accepted_insights(
        self, async_client: AsyncClient, project_id: str, seed_insights
    ) -> None:
        await seed_insights(project_id, count=3)
        await async_client.put(
            f"/api/v1/projects/{project_id}/reviews/i2", json={"status": "accepted"}
        )
        await async_client.put(
            f"/api/v1/projects/{project_id}/reviews/i3", json={"status": "accepted"}
        )

        response = await async_client.get(f"/api/v1/projects/{project_id}/presentation")

        assert response.status_code == 200
        body = response.json()
        assert body["title"] == "Launch"
        assert body["insight_count"] == 2
        assert [s["category"] for s in body["slides"]] == ["key_narratives", "business_challenges"]
        assert body["slides"][0]["bullets"] == ["Insight 2"]

    async def test_empty_outline(self, async_client: AsyncClient, project_id: str) -> None:
        response = await async_client.get(f"/api/v1/projects/{project_id}/presentation")

        assert response.json()["slides"] == []

    async def test_missing_project(self, async_client: AsyncClient) -> None:
        response = await async_client.get("/api/v1/projects/missing/presentation")
        assert response.status_code == 404
