import asyncio
import json
import random

import httpx
import pytest

from aiscraper.api_client import ApiClient, ApiResult, InMemoryTokenStore, RequestOptions, RetryPolicy
from aiscraper.errors import ApiClientError, HttpFailure, NetworkFailure, TimeoutFailure, describe_error


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds * 1000)


def _client(handler, *, options: RequestOptions | None = None, token: str | None = None, sleep=None) -> ApiClient:
    return ApiClient(
        base_url="http://api.test",
        token_store=InMemoryTokenStore(token),
        options=options or RequestOptions(retry_delay_base_ms=10),
        transport=httpx.MockTransport(handler),
        sleep=sleep or RecordingSleep(),
        rng=random.Random(7),
    )


@pytest.mark.asyncio
async def test_success_returns_parsed_json_on_first_attempt():
    async def handler(request: httpx.Request) -> httpx.Response:
        assert str(request.url) == "http://api.test/api/ping"
        return httpx.Response(200, json={"message": "pong"})

    client = _client(handler)
    try:
        result = await client.get("/api/ping")
        assert result.ok is True
        assert result.status_code == 200
        assert result.value == {"message": "pong"}
        assert result.attempts == 1
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_non_json_body_is_returned_as_text():
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="plain body", headers={"Content-Type": "text/plain"})

    client = _client(handler)
    try:
        result = await client.get("/text")
        assert result.value == "plain body"
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_server_errors_are_retried_exactly_n_times_with_backoff():
    calls = {"n": 0}
    sleep = RecordingSleep()

    async def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        return httpx.Response(503, json={"message": "unavailable"})

    client = _client(handler, options=RequestOptions(retries=3, retry_delay_base_ms=100), sleep=sleep)
    try:
        result = await client.get("/flaky")
        assert calls["n"] == 3
        assert result.ok is False
        assert result.attempts == 3
        assert isinstance(result.error, HttpFailure)
        assert result.error.status_code == 503
        assert result.error.message == "unavailable"
        # Two sleeps between three attempts: base*2^(a-1) plus jitter under one second.
        assert len(sleep.delays) == 2
        assert 100 <= sleep.delays[0] < 1100
        assert 200 <= sleep.delays[1] < 1200
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_recovers_after_transient_failure():
    calls = {"n": 0}

    async def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        if calls["n"] == 1:
            return httpx.Response(500)
        return httpx.Response(200, json={"ok": True})

    client = _client(handler)
    try:
        result = await client.get("/recovering")
        assert result.ok is True
        assert result.attempts == 2
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_two_unavailable_responses_then_success_backs_off_exponentially():
    calls = {"n": 0}
    sleep = RecordingSleep()

    async def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        if calls["n"] <= 2:
            return httpx.Response(503)
        return httpx.Response(200, json={"ok": True})

    client = _client(handler, options=RequestOptions(retries=3, retry_delay_base_ms=1000), sleep=sleep)
    try:
        result = await client.get("/flaky-then-ok")
        assert result.ok is True
        assert result.attempts == 3
        assert len(sleep.delays) == 2
        assert 1000 <= sleep.delays[0] < 2000
        assert 2000 <= sleep.delays[1] < 3000
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_client_errors_are_not_retried():
    calls = {"n": 0}

    async def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        return httpx.Response(404, json={"message": "Crawler not found"})

    client = _client(handler)
    try:
        result = await client.get("/api/crawlers/missing")
        assert calls["n"] == 1
        assert result.status_code == 404
        assert describe_error(result.error) == "Crawler not found"
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_timeout_is_classified_and_retried():
    calls = {"n": 0}

    async def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        await asyncio.sleep(1.0)
        return httpx.Response(200, json={})

    client = _client(handler, options=RequestOptions(timeout_ms=20, retries=2, retry_delay_base_ms=0))
    try:
        result = await client.get("/slow")
        assert calls["n"] == 2
        assert isinstance(result.error, TimeoutFailure)
        assert result.error.timeout_ms == 20
        assert describe_error(result.error) == "Request timed out. Please try again."
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_network_failure_is_classified():
    async def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(handler, options=RequestOptions(retries=2, retry_delay_base_ms=0))
    try:
        result = await client.get("/down")
        assert result.attempts == 2
        assert isinstance(result.error, NetworkFailure)
        assert result.status_code is None
        assert describe_error(result.error) == "Network error. Please check your connection."
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_post_is_not_retried_by_default():
    calls = {"n": 0}

    async def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        return httpx.Response(502)

    client = _client(handler)
    try:
        result = await client.post("/api/crawlers", {"name": "x"})
        assert calls["n"] == 1
        assert result.ok is False
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_post_with_idempotency_key_is_retried():
    calls = {"n": 0}

    async def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        return httpx.Response(502)

    client = _client(handler)
    try:
        await client.post("/api/crawlers", {"name": "x"}, headers={"Idempotency-Key": "k-1"})
        assert calls["n"] == 3
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_custom_retry_condition_controls_retries():
    calls = {"n": 0}

    async def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        return httpx.Response(429)

    options = RequestOptions(
        retries=4,
        retry_delay_base_ms=0,
        retry_condition=lambda error, attempt: isinstance(error, HttpFailure) and error.status_code == 429,
    )
    client = _client(handler, options=options)
    try:
        result = await client.get("/limited")
        assert calls["n"] == 4
        assert result.attempts == 4
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_auth_requests_carry_bearer_token_only_when_present():
    seen: list[str | None] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.headers.get("authorization"))
        return httpx.Response(200, json={})

    store = InMemoryTokenStore("abc")
    client = ApiClient(base_url="http://api.test", token_store=store, transport=httpx.MockTransport(handler))
    try:
        await client.auth_get("/api/auth/verify")
        store.clear()
        await client.auth_get("/api/auth/verify")
        await client.get("/api/ping")
        assert seen == ["Bearer abc", None, None]
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_json_verbs_send_body_and_content_type():
    async def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "PUT"
        assert request.headers["content-type"] == "application/json"
        assert json.loads(request.content) == {"status": "completed"}
        return httpx.Response(200, json={"updated": True})

    client = _client(handler)
    try:
        result = await client.put("/api/crawlers/1", {"status": "completed"})
        assert result.value == {"updated": True}
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_unwrap_raises_classified_error():
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"message": "Unauthorized"})

    client = _client(handler)
    try:
        result = await client.get("/api/crawlers")
        with pytest.raises(ApiClientError) as exc:
            result.unwrap()
        assert exc.value.kind == "http"
        assert exc.value.status_code == 401
    finally:
        await client.close()


def test_backoff_grows_exponentially_with_bounded_jitter():
    policy = RetryPolicy(max_attempts=4, base_delay_ms=1000)
    assert policy.backoff_ms(1, 0.0) == 1000
    assert policy.backoff_ms(2, 0.0) == 2000
    assert policy.backoff_ms(3, 0.5) == 4500
    assert policy.backoff_ms(3, 0.999) < 5000


def test_invalid_options_are_rejected():
    with pytest.raises(ValueError):
        RequestOptions(retries=0)
    with pytest.raises(ValueError):
        RequestOptions(timeout_ms=0)


def test_unwrap_of_unclassified_failure_raises_runtime_error():
    with pytest.raises(RuntimeError):
        ApiResult(ok=False, status_code=500).unwrap()
