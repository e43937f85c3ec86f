from __future__ import annotations

import logging
from urllib.parse import urlparse

from fastapi import APIRouter, Depends, Query, status

from aiscraper.routes.common import bad_request, get_store, list_query, not_found, require_text
from aiscraper.schemas import (
    CrawlerCreate,
    CrawlerEnvelope,
    CrawlerOut,
    CrawlersListResponse,
    CrawlerStats,
    CrawlerUpdate,
    MessageResponse,
)
from aiscraper.security import AuthContext, require_auth
from aiscraper.store import Crawler, CrawlerStatus, ListQuery, MemoryStore, new_id, paginate_records, utcnow


router = APIRouter(prefix="/api/crawlers", tags=["crawlers"])
logger = logging.getLogger("aiscraper.routes.crawlers")

SORTABLE_FIELDS = ("name", "url", "status", "created_at", "updated_at")
SEARCH_FIELDS = ("name", "description", "url")


def is_valid_url(value: str | None) -> bool:
    if not require_text(value):
        return False
    parsed = urlparse(value.strip())
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


def validate_crawler_data(payload: CrawlerCreate) -> list[str]:
    errors: list[str] = []
    if not require_text(payload.name):
        errors.append("Crawler name is required")
    if not is_valid_url(payload.url):
        errors.append("Valid URL is required")
    if not require_text(payload.description):
        errors.append("Description is required")
    return errors


@router.get("", response_model=CrawlersListResponse)
async def list_crawlers(
    status_filter: CrawlerStatus | None = Query(default=None, alias="status"),
    query: ListQuery = Depends(list_query),
    auth: AuthContext = Depends(require_auth),
    store: MemoryStore = Depends(get_store),
) -> CrawlersListResponse:
    filters = [lambda c: c.status is status_filter] if status_filter else []
    items, total = paginate_records(
        store.crawlers_for(auth.user_id),
        query=query,
        search_fields=SEARCH_FIELDS,
        sortable=SORTABLE_FIELDS,
        filters=filters,
    )
    return CrawlersListResponse(
        crawlers=[CrawlerOut.from_record(c) for c in items],
        total=total,
        page=query.page,
        limit=query.limit,
    )


@router.get("/stats", response_model=CrawlerStats)
async def crawler_stats(
    auth: AuthContext = Depends(require_auth),
    store: MemoryStore = Depends(get_store),
) -> CrawlerStats:
    crawlers = store.crawlers_for(auth.user_id)
    by_status = {s.value: 0 for s in CrawlerStatus}
    for crawler in crawlers:
        by_status[crawler.status.value] += 1
    return CrawlerStats(total=len(crawlers), by_status=by_status)


@router.get("/{crawler_id}", response_model=CrawlerOut)
async def get_crawler(
    crawler_id: str,
    auth: AuthContext = Depends(require_auth),
    store: MemoryStore = Depends(get_store),
) -> CrawlerOut:
    crawler = store.get_crawler(crawler_id, owner_id=auth.user_id)
    if crawler is None:
        raise not_found("Crawler not found")
    return CrawlerOut.from_record(crawler)


@router.post("", status_code=status.HTTP_201_CREATED, response_model=CrawlerEnvelope)
async def create_crawler(
    payload: CrawlerCreate,
    auth: AuthContext = Depends(require_auth),
    store: MemoryStore = Depends(get_store),
) -> CrawlerEnvelope:
    errors = validate_crawler_data(payload)
    if errors:
        raise bad_request("Validation failed", errors)

    now = utcnow()
    crawler = store.add_crawler(
        Crawler(
            id=new_id(),
            name=payload.name.strip(),
            url=payload.url.strip(),
            description=payload.description.strip(),
            status=payload.status or CrawlerStatus.TODO,
            created_by=auth.user_id,
            created_at=now,
            updated_at=now,
        )
    )
    logger.info("crawler %s created by %s", crawler.id, auth.user_id)
    return CrawlerEnvelope(crawler=CrawlerOut.from_record(crawler), message="Crawler created successfully")


@router.put("/{crawler_id}", response_model=CrawlerEnvelope)
async def update_crawler(
    crawler_id: str,
    payload: CrawlerUpdate,
    auth: AuthContext = Depends(require_auth),
    store: MemoryStore = Depends(get_store),
) -> CrawlerEnvelope:
    crawler = store.get_crawler(crawler_id, owner_id=auth.user_id)
    if crawler is None:
        raise not_found("Crawler not found")

    # Validate everything before touching the record so a rejected update changes nothing.
    if payload.name is not None and not require_text(payload.name):
        raise bad_request("Name cannot be empty")
    if payload.url is not None and not is_valid_url(payload.url):
        raise bad_request("Invalid URL format")
    if payload.description is not None and not require_text(payload.description):
        raise bad_request("Description cannot be empty")

    if payload.name is not None:
        crawler.name = payload.name.strip()
    if payload.url is not None:
        crawler.url = payload.url.strip()
    if payload.description is not None:
        crawler.description = payload.description.strip()
    if payload.status is not None:
        crawler.status = payload.status
    crawler.updated_at = utcnow()

    return CrawlerEnvelope(crawler=CrawlerOut.from_record(crawler), message="Crawler updated successfully")


@router.delete("/{crawler_id}", response_model=MessageResponse)
async def delete_crawler(
    crawler_id: str,
    auth: AuthContext = Depends(require_auth),
    store: MemoryStore = Depends(get_store),
) -> MessageResponse:
    if not store.delete_crawler(crawler_id, owner_id=auth.user_id):
        raise not_found("Crawler not found")
    logger.info("crawler %s deleted by %s", crawler_id, auth.user_id)
    return MessageResponse(message="Crawler deleted successfully")
