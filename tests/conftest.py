from __future__ import annotations

from typing import Callable

import httpx
import pytest
import pytest_asyncio

from aiscraper.config import AppConfig
from aiscraper.store import DEMO_USER_EMAIL, DEMO_USER_PASSWORD


class FakeTimer:
    def __init__(self, due: float, callback: Callable[[], None]) -> None:
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Manually advanced clock standing in for `loop.call_later`."""

    def __init__(self) -> None:
        self.now = 0.0
        self.timers: list[FakeTimer] = []

    def __call__(self, delay_seconds: float, callback: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(self.now + delay_seconds, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> list[FakeTimer]:
        return [t for t in self.timers if not t.cancelled]

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = sorted((t for t in self.timers if not t.cancelled and t.due <= target), key=lambda t: t.due)
            if not due:
                break
            timer = due[0]
            self.timers.remove(timer)
            self.now = timer.due
            timer.callback()
        self.now = target


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def config() -> AppConfig:
    return AppConfig(
        port=8000,
        jwt_secret="test-secret",
        jwt_expires_seconds=3600,
        seed_demo_data=True,
        request_timeout_ms=1000,
        retry_max_attempts=3,
        retry_base_delay_ms=1,
    )


@pytest.fixture(autouse=True)
def _app_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("JWT_SECRET", "test-secret")
    monkeypatch.setenv("SEED_DEMO_DATA", "1")


@pytest_asyncio.fixture
async def client():
    from aiscraper.app import app, lifespan

    async with lifespan(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
            yield c


@pytest_asyncio.fixture
async def demo_headers(client: httpx.AsyncClient) -> dict[str, str]:
    resp = await client.post("/api/auth/login", json={"email": DEMO_USER_EMAIL, "password": DEMO_USER_PASSWORD})
    assert resp.status_code == 200
    return {"Authorization": f"Bearer {resp.json()['token']}"}


@pytest.fixture
def register_user(client: httpx.AsyncClient):
    async def _register(email: str, password: str = "password123") -> dict[str, str]:
        resp = await client.post("/api/auth/register", json={"name": "Tester", "email": email, "password": password})
        assert resp.status_code == 201, resp.text
        return {"Authorization": f"Bearer {resp.json()['token']}"}

    return _register
