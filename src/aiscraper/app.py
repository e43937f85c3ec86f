from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Callable

from fastapi import FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from aiscraper.config import DEFAULT_JWT_SECRET, AppConfig
from aiscraper.routes.account import router as account_router
from aiscraper.routes.auth import router as auth_router
from aiscraper.routes.common import ServiceError
from aiscraper.routes.crawlers import router as crawlers_router
from aiscraper.routes.properties import router as properties_router
from aiscraper.schemas import HealthResponse, PingResponse
from aiscraper.security import hash_password
from aiscraper.store import DEMO_USER_PASSWORD, MemoryStore, seed_demo_data


@dataclass
class AppState:
    config: AppConfig
    store: MemoryStore


logger = logging.getLogger("aiscraper")


@asynccontextmanager
async def lifespan(app: FastAPI):
    config = AppConfig.from_env()
    if config.jwt_secret == DEFAULT_JWT_SECRET:
        logger.warning("JWT_SECRET is not set; signing tokens with the built-in development secret")
    store = MemoryStore()
    if config.seed_demo_data:
        seed_demo_data(store, password_hash=hash_password(DEMO_USER_PASSWORD))
        logger.info("seeded demo user and %d demo properties", len(store.properties))

    app.state.state = AppState(config=config, store=store)
    try:
        yield
    finally:
        logger.info("shutting down; in-memory data discarded")


app = FastAPI(
    title="AiScraper",
    version="0.1.0",
    description=(
        "# AiScraper API\n\n"
        "Metadata dashboard backend for web crawlers and rental properties.\n\n"
        "## Auth\n"
        "Obtain a token from `POST /api/auth/login` or `POST /api/auth/register` and send it as\n"
        "`Authorization: Bearer <token>`. Missing or invalid tokens get **401** `{ \"message\": \"Unauthorized\" }`.\n\n"
        "## Errors\n"
        "All error bodies are `{ \"message\": str, \"errors\"?: [str] }`.\n\n"
        "- **400** validation failed\n"
        "- **401** unauthorized\n"
        "- **404** record not found, or unknown `/api/*` route\n"
        "- **500** internal error\n\n"
        "Storage is in process memory and is lost on restart.\n"
    ),
    lifespan=lifespan,
)

app.include_router(auth_router)
app.include_router(crawlers_router)
app.include_router(properties_router)
app.include_router(account_router)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    return JSONResponse(exc.body(), status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors: list[str] = []
    message = "Validation failed"
    for err in exc.errors():
        if err.get("type") == "json_invalid":
            message = "Request body must be valid JSON"
        loc = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        text = str(err.get("msg", "invalid value"))
        errors.append(f"{loc}: {text}" if loc else text)
    return JSONResponse({"message": message, "errors": errors}, status_code=status.HTTP_400_BAD_REQUEST)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = str(exc.detail) if exc.detail else "Error"
    if exc.status_code == status.HTTP_404_NOT_FOUND and request.url.path.startswith("/api/"):
        message = "API endpoint not found"
    return JSONResponse({"message": message}, status_code=exc.status_code, headers=getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse({"message": "Internal server error"}, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


@app.middleware("http")
async def access_log(request: Request, call_next: Callable[[Request], Response]):
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s -> %s (%.1fms)",
        request.method,
        request.url.path,
        response.status_code,
        duration_ms,
    )
    return response


@app.get(
    "/healthz",
    summary="Liveness check",
    description="Returns `ok=true` if the process is alive.",
    response_model=HealthResponse,
    tags=["meta"],
)
async def healthz() -> HealthResponse:
    return {"ok": True}


@app.get("/api/ping", response_model=PingResponse, tags=["meta"])
async def ping() -> PingResponse:
    return PingResponse(message="pong")
