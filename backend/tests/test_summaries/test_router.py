import pytest
from httpx import AsyncClient

from feedback_hub.feedback.service import insert_feedback
from feedback_hub.summaries.service import insert_aggregated_summary, insert_source_summary


@pytest.mark.asyncio
async def test_list_summaries_empty(client: AsyncClient):
    response = await client.get("/api/summaries")
    assert response.status_code == 200
    assert response.json() == {"success": True, "summaries": []}


@pytest.mark.asyncio
async def test_list_summaries_newest_first_with_limit(client: AsyncClient, db):
    for i in range(3):
        await insert_source_summary(db, "github", f"s{i}", 10, 20, i + 1)

    response = await client.get("/api/summaries", params={"limit": 2})
    data = response.json()
    assert [s["summary"] for s in data["summaries"]] == ["s2", "s1"]
    assert data["summaries"][0]["feedback_count"] == 3


@pytest.mark.asyncio
async def test_summaries_for_source(client: AsyncClient, db):
    await insert_source_summary(db, "github", "gh", 10, 20, 1)
    await insert_source_summary(db, "discord", "dc", 10, 20, 2)

    response = await client.get("/api/summaries/discord")
    assert response.status_code == 200
    data = response.json()
    assert data["source"] == "discord"
    assert [s["summary"] for s in data["summaries"]] == ["dc"]


@pytest.mark.asyncio
async def test_aggregated_limit(client: AsyncClient, db):
    for i in range(3):
        await insert_aggregated_summary(db, f"a{i}", 0, 100, 1, i)

    response = await client.get("/api/aggregated", params={"limit": 1})
    data = response.json()
    assert len(data["summaries"]) == 1
    assert data["summaries"][0]["summary"] == "a2"


@pytest.mark.asyncio
async def test_stats(client: AsyncClient, db):
    await insert_feedback(db, "github", "a")
    await insert_feedback(db, "github", "b")
    await insert_feedback(db, "email", "c")
    await insert_source_summary(db, "github", "gh", 10, 20, 2)
    await insert_aggregated_summary(db, "old", 0, 100, 1, 2)
    await insert_aggregated_summary(db, "new", 0, 100, 1, 2)

    response = await client.get("/api/stats")
    assert response.status_code == 200
    data = response.json()
    assert data["feedback_counts_by_source"] == {"email": 1, "github": 2}
    assert data["latest_aggregated_summary"]["summary"] == "new"
    assert len(data["recent_source_summaries"]) == 1


@pytest.mark.asyncio
async def test_stats_empty(client: AsyncClient):
    data = (await client.get("/api/stats")).json()
    assert data["feedback_counts_by_source"] == {}
    assert data["latest_aggregated_summary"] is None
    assert data["recent_source_summaries"] == []
