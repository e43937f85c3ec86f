from __future__ import annotations

from typing import Any

from fastapi import Request

from aiscraper.store import ListQuery, MemoryStore


class ServiceError(Exception):
    def __init__(self, *, status_code: int, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.errors = errors

    def body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"message": self.message}
        if self.errors:
            body["errors"] = list(self.errors)
        return body


def bad_request(message: str, errors: list[str] | None = None) -> ServiceError:
    return ServiceError(status_code=400, message=message, errors=errors)


def not_found(message: str) -> ServiceError:
    return ServiceError(status_code=404, message=message)


def get_store(request: Request) -> MemoryStore:
    return request.app.state.state.store


def _positive_int(value: str | None, default: int) -> int:
    # Lenient like the dashboard's query parsing: junk falls back to the default.
    try:
        parsed = int(value) if value is not None else default
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def list_query(
    page: str | None = None,
    limit: str | None = None,
    search: str | None = None,
    sortBy: str | None = None,
    sortOrder: str | None = None,
) -> ListQuery:
    return ListQuery(
        page=_positive_int(page, 1),
        limit=min(_positive_int(limit, 20), 100),
        search=search.strip() if search and search.strip() else None,
        sort_by=sortBy or "created_at",
        sort_order="asc" if (sortOrder or "").lower() == "asc" else "desc",
    )


def require_text(value: str | None) -> bool:
    return isinstance(value, str) and bool(value.strip())
