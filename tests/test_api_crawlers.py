import pytest


CRAWLER = {"name": "Listings", "url": "https://example.com/listings", "description": "Nightly listing crawl"}


@pytest.mark.asyncio
async def test_crawler_crud_roundtrip(client, register_user):
    headers = await register_user("crawler-owner@example.com")

    created = await client.post("/api/crawlers", json=CRAWLER, headers=headers)
    assert created.status_code == 201
    crawler = created.json()["crawler"]
    assert crawler["status"] == "todo"
    assert created.json()["message"] == "Crawler created successfully"

    fetched = await client.get(f"/api/crawlers/{crawler['id']}", headers=headers)
    assert fetched.json()["name"] == "Listings"

    updated = await client.put(f"/api/crawlers/{crawler['id']}", json={"status": "completed"}, headers=headers)
    assert updated.status_code == 200
    assert updated.json()["crawler"]["status"] == "completed"

    deleted = await client.delete(f"/api/crawlers/{crawler['id']}", headers=headers)
    assert deleted.json() == {"message": "Crawler deleted successfully"}
    missing = await client.get(f"/api/crawlers/{crawler['id']}", headers=headers)
    assert missing.status_code == 404
    assert missing.json() == {"message": "Crawler not found"}


@pytest.mark.asyncio
async def test_create_crawler_reports_all_validation_errors(client, register_user):
    headers = await register_user("validator@example.com")
    resp = await client.post("/api/crawlers", json={"name": " ", "url": "ftp://example.com"}, headers=headers)
    assert resp.status_code == 400
    assert resp.json() == {
        "message": "Validation failed",
        "errors": ["Crawler name is required", "Valid URL is required", "Description is required"],
    }


@pytest.mark.asyncio
async def test_rejected_update_leaves_crawler_unchanged(client, register_user):
    headers = await register_user("atomic@example.com")
    crawler = (await client.post("/api/crawlers", json=CRAWLER, headers=headers)).json()["crawler"]

    resp = await client.put(
        f"/api/crawlers/{crawler['id']}", json={"name": "Renamed", "url": "not a url"}, headers=headers
    )
    assert resp.status_code == 400
    assert resp.json() == {"message": "Invalid URL format"}
    assert (await client.get(f"/api/crawlers/{crawler['id']}", headers=headers)).json()["name"] == "Listings"


@pytest.mark.asyncio
async def test_other_users_crawlers_are_invisible(client, register_user):
    owner = await register_user("owner@example.com")
    other = await register_user("other@example.com")
    crawler = (await client.post("/api/crawlers", json=CRAWLER, headers=owner)).json()["crawler"]

    assert (await client.get(f"/api/crawlers/{crawler['id']}", headers=other)).status_code == 404
    assert (await client.delete(f"/api/crawlers/{crawler['id']}", headers=other)).status_code == 404
    assert (await client.get("/api/crawlers", headers=other)).json()["total"] == 0


@pytest.mark.asyncio
async def test_list_filters_searches_sorts_and_paginates(client, register_user):
    headers = await register_user("lister@example.com")
    for name, status in (("alpha", "todo"), ("beta", "failed"), ("gamma", "todo")):
        payload = {**CRAWLER, "name": name, "status": status}
        assert (await client.post("/api/crawlers", json=payload, headers=headers)).status_code == 201

    todo = (await client.get("/api/crawlers", params={"status": "todo"}, headers=headers)).json()
    assert todo["total"] == 2

    found = (await client.get("/api/crawlers", params={"search": "BET"}, headers=headers)).json()
    assert [c["name"] for c in found["crawlers"]] == ["beta"]

    page = (
        await client.get(
            "/api/crawlers",
            params={"sortBy": "name", "sortOrder": "asc", "limit": 2, "page": 2},
            headers=headers,
        )
    ).json()
    assert page["total"] == 3
    assert page["page"] == 2
    assert [c["name"] for c in page["crawlers"]] == ["gamma"]


@pytest.mark.asyncio
async def test_crawler_stats_count_every_status(client, register_user):
    headers = await register_user("stats@example.com")
    await client.post("/api/crawlers", json={**CRAWLER, "status": "in_progress"}, headers=headers)
    await client.post("/api/crawlers", json=CRAWLER, headers=headers)

    stats = (await client.get("/api/crawlers/stats", headers=headers)).json()
    assert stats["total"] == 2
    assert stats["by_status"] == {
        "todo": 1,
        "in_progress": 1,
        "ready_for_qa": 0,
        "completed": 0,
        "failed": 0,
    }
