from __future__ import annotations

from dataclasses import dataclass

import os

from aiscraper.api_client import RequestOptions


DEFAULT_JWT_SECRET = "your-super-secret-jwt-key-change-in-production"


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None or not value.strip():
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class AppConfig:
    port: int
    jwt_secret: str
    jwt_expires_seconds: int
    seed_demo_data: bool
    request_timeout_ms: int
    retry_max_attempts: int
    retry_base_delay_ms: int

    @staticmethod
    def from_env() -> "AppConfig":
        return AppConfig(
            port=int(os.getenv("PORT", "8000")),
            jwt_secret=os.getenv("JWT_SECRET") or DEFAULT_JWT_SECRET,
            jwt_expires_seconds=int(os.getenv("JWT_EXPIRES_SECONDS", str(7 * 24 * 3600))),
            seed_demo_data=_env_bool(os.getenv("SEED_DEMO_DATA"), True),
            request_timeout_ms=int(os.getenv("REQUEST_TIMEOUT_MS", "15000")),
            retry_max_attempts=int(os.getenv("RETRY_MAX_ATTEMPTS", "3")),
            retry_base_delay_ms=int(os.getenv("RETRY_BASE_DELAY_MS", "1000")),
        )

    def request_options(self) -> RequestOptions:
        return RequestOptions(
            timeout_ms=self.request_timeout_ms,
            retries=self.retry_max_attempts,
            retry_delay_base_ms=self.retry_base_delay_ms,
        )
