import logging

import pytest

from aiscraper.config import DEFAULT_JWT_SECRET, AppConfig


def test_from_env_defaults(monkeypatch: pytest.MonkeyPatch):
    for name in ("PORT", "JWT_SECRET", "JWT_EXPIRES_SECONDS", "SEED_DEMO_DATA", "REQUEST_TIMEOUT_MS"):
        monkeypatch.delenv(name, raising=False)
    config = AppConfig.from_env()
    assert config.port == 8000
    assert config.jwt_secret == DEFAULT_JWT_SECRET
    assert config.jwt_expires_seconds == 7 * 24 * 3600
    assert config.seed_demo_data is True
    assert config.request_timeout_ms == 15000


def test_from_env_overrides(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("PORT", "9001")
    monkeypatch.setenv("SEED_DEMO_DATA", "false")
    monkeypatch.setenv("RETRY_MAX_ATTEMPTS", "5")
    config = AppConfig.from_env()
    assert config.port == 9001
    assert config.seed_demo_data is False
    assert config.retry_max_attempts == 5


def test_request_options_follow_config(config: AppConfig):
    options = config.request_options()
    assert options.timeout_ms == 1000
    assert options.retries == 3
    assert options.retry_delay_base_ms == 1


@pytest.mark.asyncio
async def test_seeding_can_be_disabled(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("SEED_DEMO_DATA", "0")
    from aiscraper.app import app, lifespan

    async with lifespan(app):
        assert app.state.state.store.users == []
        assert app.state.state.store.properties == []


@pytest.mark.asyncio
async def test_startup_warns_when_jwt_secret_is_unset(monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture):
    monkeypatch.delenv("JWT_SECRET", raising=False)
    from aiscraper.app import app, lifespan

    with caplog.at_level(logging.WARNING, logger="aiscraper"):
        async with lifespan(app):
            pass
    assert any("JWT_SECRET is not set" in r.getMessage() for r in caplog.records)


@pytest.mark.asyncio
async def test_startup_is_quiet_with_configured_secret(caplog: pytest.LogCaptureFixture):
    from aiscraper.app import app, lifespan

    with caplog.at_level(logging.WARNING, logger="aiscraper"):
        async with lifespan(app):
            pass
    assert not any("JWT_SECRET" in r.getMessage() for r in caplog.records)
