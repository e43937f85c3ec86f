from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Sequence

from aiscraper.api_client import ApiClient, RequestOptions
from aiscraper.errors import describe_error


logger = logging.getLogger("aiscraper.health")

DEFAULT_ENDPOINTS = ("/api/ping", "/api/auth/verify", "/api/crawlers", "/api/properties")
DEGRADED_AFTER_MS = 2000.0


@dataclass(frozen=True)
class HealthCheckResult:
    endpoint: str
    status: str
    response_time_ms: float
    error: str | None = None


@dataclass(frozen=True)
class SystemHealth:
    overall: str
    checks: tuple[HealthCheckResult, ...]
    checked_at: datetime

    @property
    def healthy(self) -> bool:
        return self.overall == "healthy"


async def check_endpoint(client: ApiClient, path: str, *, timeout_ms: float = 5000) -> HealthCheckResult:
    """Probe one endpoint with a single attempt.

    Authenticated endpoints answering 401 still prove the server is up, so
    only transport failures and 5xx count as unhealthy.
    """
    started = time.monotonic()
    result = await client.auth_get(path, options=RequestOptions(timeout_ms=timeout_ms, retries=1))
    elapsed_ms = (time.monotonic() - started) * 1000

    if result.ok or (result.status_code is not None and result.status_code < 500):
        status = "degraded" if elapsed_ms > DEGRADED_AFTER_MS else "healthy"
        return HealthCheckResult(endpoint=path, status=status, response_time_ms=elapsed_ms)

    return HealthCheckResult(
        endpoint=path,
        status="unhealthy",
        response_time_ms=elapsed_ms,
        error=describe_error(result.error) if result.error is not None else "Unknown error",
    )


def overall_status(checks: Sequence[HealthCheckResult]) -> str:
    statuses = {c.status for c in checks}
    if "unhealthy" in statuses:
        return "unhealthy"
    if "degraded" in statuses:
        return "degraded"
    return "healthy"


async def run_health_check(client: ApiClient, endpoints: Sequence[str] = DEFAULT_ENDPOINTS) -> SystemHealth:
    checks = await asyncio.gather(*(check_endpoint(client, path) for path in endpoints))
    health = SystemHealth(
        overall=overall_status(checks),
        checks=tuple(checks),
        checked_at=datetime.now(timezone.utc),
    )
    if not health.healthy:
        logger.warning(
            "system health %s: %s",
            health.overall,
            ", ".join(f"{c.endpoint}={c.status}" for c in checks),
        )
    return health
