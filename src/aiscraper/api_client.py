from __future__ import annotations

import asyncio
import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Protocol

import httpx

from aiscraper.errors import (
    ApiClientError,
    ClassifiedError,
    HttpFailure,
    NetworkFailure,
    TimeoutFailure,
    UnexpectedFailure,
    http_failure_message,
)


logger = logging.getLogger("aiscraper.api_client")

RetryCondition = Callable[[ClassifiedError, int], bool]

IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "PUT", "DELETE"})
MAX_JITTER_MS = 1000.0


def default_retry_condition(error: ClassifiedError, attempt: int) -> bool:
    if isinstance(error, (TimeoutFailure, NetworkFailure)):
        return True
    if isinstance(error, HttpFailure):
        return error.status_code >= 500
    return False


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay_ms: float = 1000.0
    is_retryable: RetryCondition = default_retry_condition

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay_ms < 0:
            raise ValueError("base_delay_ms must be >= 0")

    def backoff_ms(self, attempt: int, jitter: float) -> float:
        # Exponential backoff plus up to one second of jitter; jitter is in [0, 1).
        return self.base_delay_ms * (2 ** (attempt - 1)) + jitter * MAX_JITTER_MS


@dataclass(frozen=True)
class RequestOptions:
    timeout_ms: float = 15000.0
    retries: int = 3
    retry_delay_base_ms: float = 1000.0
    retry_condition: RetryCondition | None = None
    retry_unsafe_methods: bool = False

    def __post_init__(self) -> None:
        if self.retries < 1:
            raise ValueError("retries must be >= 1")
        if self.timeout_ms <= 0:
            raise ValueError("timeout_ms must be > 0")
        if self.retry_delay_base_ms < 0:
            raise ValueError("retry_delay_base_ms must be >= 0")

    def policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.retries,
            base_delay_ms=self.retry_delay_base_ms,
            is_retryable=self.retry_condition or default_retry_condition,
        )


@dataclass(frozen=True)
class RequestAttempt:
    attempt_number: int
    started_at: float
    deadline: float


@dataclass(frozen=True)
class ApiResult:
    ok: bool
    status_code: int | None = None
    value: Any = None
    error: ClassifiedError | None = None
    attempts: int = 1

    def unwrap(self) -> Any:
        if self.ok:
            return self.value
        if self.error is None:
            raise RuntimeError("failed result carries no classified error")
        raise ApiClientError(self.error, attempts=self.attempts)


class TokenStore(Protocol):
    def get_token(self) -> str | None: ...


class InMemoryTokenStore:
    def __init__(self, token: str | None = None) -> None:
        self._token = token

    def get_token(self) -> str | None:
        return self._token

    def set_token(self, token: str | None) -> None:
        self._token = token or None

    def clear(self) -> None:
        self._token = None


def _parse_body(resp: httpx.Response) -> Any:
    content_type = resp.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            return resp.json()
        except ValueError:
            return resp.text
    return resp.text


class ApiClient:
    """Issues requests with a per-attempt timeout and bounded, backoff-delayed retries.

    Attempts for one call are strictly sequential. Failures are returned as an
    `ApiResult` carrying exactly one classified error; nothing is raised for
    transport or HTTP failures.
    """

    def __init__(
        self,
        *,
        base_url: str = "",
        token_store: TokenStore | None = None,
        options: RequestOptions | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._token_store = token_store
        self._options = options or RequestOptions()
        self._transport = transport
        self._sleep = sleep or asyncio.sleep
        self._rng = rng or random.Random()
        self._client: httpx.AsyncClient | None = None

    @property
    def options(self) -> RequestOptions:
        return self._options

    @property
    def token_store(self) -> TokenStore | None:
        return self._token_store

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client:
            return self._client
        # Per-attempt deadlines are enforced by asyncio; httpx gets no timeout of its own.
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=None,
            transport=self._transport,
        )
        return self._client

    def _url_for(self, url: str) -> str:
        if url.startswith(("http://", "https://")) or not self._base_url:
            return url
        return f"{self._base_url}/{url.lstrip('/')}"

    async def execute(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        json_body: Any | None = None,
        content: str | bytes | None = None,
        options: RequestOptions | None = None,
    ) -> ApiResult:
        opts = options or self._options
        policy = opts.policy()
        method = method.upper()
        request_headers = dict(headers or {})
        full_url = self._url_for(url)
        retry_allowed = self._retry_allowed(method=method, headers=request_headers, options=opts)
        client = self._get_client()

        error: ClassifiedError | None = None
        for attempt in range(1, policy.max_attempts + 1):
            started_at = time.monotonic()
            record = RequestAttempt(
                attempt_number=attempt,
                started_at=started_at,
                deadline=started_at + opts.timeout_ms / 1000.0,
            )
            try:
                resp = await asyncio.wait_for(
                    client.request(method, url, headers=request_headers, json=json_body, content=content),
                    timeout=opts.timeout_ms / 1000.0,
                )
            except (asyncio.TimeoutError, httpx.TimeoutException):
                error = TimeoutFailure(url=full_url, timeout_ms=int(opts.timeout_ms))
            except httpx.TransportError as exc:
                error = NetworkFailure(url=full_url, detail=str(exc))
            except Exception as exc:
                error = UnexpectedFailure(cause=exc)
            else:
                body = _parse_body(resp)
                if resp.is_success:
                    return ApiResult(ok=True, status_code=resp.status_code, value=body, attempts=attempt)
                error = HttpFailure(
                    status_code=resp.status_code,
                    body=body,
                    message=http_failure_message(
                        status_code=resp.status_code, reason=resp.reason_phrase, body=body
                    ),
                )

            if attempt < policy.max_attempts and retry_allowed and policy.is_retryable(error, attempt):
                delay_ms = policy.backoff_ms(attempt, self._rng.random())
                logger.warning(
                    "request failed (attempt %d/%d): %s %s -> %s; retrying in %.0fms",
                    record.attempt_number,
                    policy.max_attempts,
                    method,
                    full_url,
                    error.message,
                    delay_ms,
                )
                await self._sleep(delay_ms / 1000.0)
                continue

            return ApiResult(
                ok=False,
                status_code=error.status_code if isinstance(error, HttpFailure) else None,
                error=error,
                attempts=attempt,
            )

        # Unreachable: the final attempt always returns above.
        raise RuntimeError("retry loop exited without a result")

    @staticmethod
    def _retry_allowed(*, method: str, headers: dict[str, str], options: RequestOptions) -> bool:
        # An explicit condition is the caller's decision for every verb.
        if options.retry_condition is not None or options.retry_unsafe_methods:
            return True
        if method in IDEMPOTENT_METHODS:
            return True
        return any(key.lower() == "idempotency-key" for key in headers)

    async def get(self, url: str, **kwargs: Any) -> ApiResult:
        return await self.execute("GET", url, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> ApiResult:
        return await self.execute("DELETE", url, **kwargs)

    async def post(self, url: str, data: Any | None = None, **kwargs: Any) -> ApiResult:
        return await self._send_json("POST", url, data, **kwargs)

    async def put(self, url: str, data: Any | None = None, **kwargs: Any) -> ApiResult:
        return await self._send_json("PUT", url, data, **kwargs)

    async def patch(self, url: str, data: Any | None = None, **kwargs: Any) -> ApiResult:
        return await self._send_json("PATCH", url, data, **kwargs)

    async def _send_json(
        self,
        method: str,
        url: str,
        data: Any | None,
        *,
        headers: dict[str, str] | None = None,
        options: RequestOptions | None = None,
    ) -> ApiResult:
        merged = {"Content-Type": "application/json", **(headers or {})}
        return await self.execute(method, url, headers=merged, json_body=data, options=options)

    def auth_headers(self) -> dict[str, str]:
        token = self._token_store.get_token() if self._token_store else None
        return {"Authorization": f"Bearer {token}"} if token else {}

    async def auth_request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> ApiResult:
        # Caller-supplied headers win over the stored credential.
        merged = {**self.auth_headers(), **(headers or {})}
        return await self.execute(method, url, headers=merged, **kwargs)

    async def auth_get(self, url: str, **kwargs: Any) -> ApiResult:
        return await self.auth_request("GET", url, **kwargs)

    async def auth_delete(self, url: str, **kwargs: Any) -> ApiResult:
        return await self.auth_request("DELETE", url, **kwargs)

    async def auth_post(self, url: str, data: Any | None = None, **kwargs: Any) -> ApiResult:
        return await self._auth_send_json("POST", url, data, **kwargs)

    async def auth_put(self, url: str, data: Any | None = None, **kwargs: Any) -> ApiResult:
        return await self._auth_send_json("PUT", url, data, **kwargs)

    async def auth_patch(self, url: str, data: Any | None = None, **kwargs: Any) -> ApiResult:
        return await self._auth_send_json("PATCH", url, data, **kwargs)

    async def _auth_send_json(
        self,
        method: str,
        url: str,
        data: Any | None,
        *,
        headers: dict[str, str] | None = None,
        options: RequestOptions | None = None,
    ) -> ApiResult:
        merged = {"Content-Type": "application/json", **self.auth_headers(), **(headers or {})}
        return await self.execute(method, url, headers=merged, json_body=data, options=options)
