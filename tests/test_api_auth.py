import pytest

from aiscraper.store import DEMO_USER_EMAIL, DEMO_USER_ID


@pytest.mark.asyncio
async def test_ping_and_healthz(client):
    resp = await client.get("/api/ping")
    assert resp.status_code == 200
    assert resp.json() == {"message": "pong"}
    assert (await client.get("/healthz")).json() == {"ok": True}


@pytest.mark.asyncio
async def test_unknown_api_route_returns_message_envelope(client):
    resp = await client.get("/api/nope")
    assert resp.status_code == 404
    assert resp.json() == {"message": "API endpoint not found"}


@pytest.mark.asyncio
async def test_demo_user_can_log_in_and_verify(client, demo_headers):
    resp = await client.get("/api/auth/verify", headers=demo_headers)
    assert resp.status_code == 200
    assert resp.json() == {"id": DEMO_USER_ID, "name": "Demo User", "email": DEMO_USER_EMAIL}

    profile = await client.get("/api/auth/profile", headers=demo_headers)
    assert profile.json()["createdAt"].startswith("2024-01-01")


@pytest.mark.asyncio
async def test_login_rejects_bad_credentials(client):
    resp = await client.post("/api/auth/login", json={"email": DEMO_USER_EMAIL, "password": "wrong"})
    assert resp.status_code == 401
    assert resp.json() == {"message": "Invalid email or password"}

    resp = await client.post("/api/auth/login", json={"email": ""})
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_register_validates_and_enforces_unique_email(client):
    short = await client.post("/api/auth/register", json={"name": "A", "email": "a@example.com", "password": "short"})
    assert short.status_code == 400
    assert "at least 8" in short.json()["message"]

    ok = await client.post(
        "/api/auth/register", json={"name": " Alice ", "email": "Alice@Example.com", "password": "password123"}
    )
    assert ok.status_code == 201
    body = ok.json()
    assert body["user"]["name"] == "Alice"
    assert body["user"]["email"] == "alice@example.com"
    assert body["token"]

    dup = await client.post(
        "/api/auth/register", json={"name": "B", "email": "ALICE@example.com", "password": "password123"}
    )
    assert dup.status_code == 400
    assert dup.json()["message"] == "User with this email already exists"


@pytest.mark.asyncio
async def test_verify_distinguishes_missing_and_invalid_tokens(client):
    missing = await client.get("/api/auth/verify")
    assert missing.status_code == 401
    assert missing.json() == {"message": "No token provided"}

    invalid = await client.get("/api/auth/verify", headers={"Authorization": "Bearer not-a-jwt"})
    assert invalid.status_code == 401
    assert invalid.json() == {"message": "Invalid token"}


@pytest.mark.asyncio
async def test_protected_routes_require_auth(client):
    for path in ("/api/crawlers", "/api/properties", "/api/account/stats"):
        resp = await client.get(path)
        assert resp.status_code == 401
        assert resp.json() == {"message": "Unauthorized"}


@pytest.mark.asyncio
async def test_malformed_body_is_a_400_with_errors(client):
    resp = await client.post(
        "/api/auth/login",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )
    assert resp.status_code == 400
    body = resp.json()
    assert body["message"] == "Request body must be valid JSON"
    assert body["errors"]
