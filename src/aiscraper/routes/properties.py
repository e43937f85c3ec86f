from __future__ import annotations

import logging
import re

from fastapi import APIRouter, Depends, Query, status

from aiscraper.routes.common import bad_request, get_store, list_query, not_found, require_text
from aiscraper.schemas import (
    MessageResponse,
    PropertiesListResponse,
    PropertyCreate,
    PropertyEnvelope,
    PropertyOut,
    PropertyStats,
    PropertyUpdate,
)
from aiscraper.security import AuthContext, require_auth
from aiscraper.store import (
    ListQuery,
    MemoryStore,
    Property,
    PropertyCategory,
    PropertyStatus,
    new_id,
    paginate_records,
    utcnow,
)


router = APIRouter(prefix="/api/properties", tags=["properties"])
logger = logging.getLogger("aiscraper.routes.properties")

SORTABLE_FIELDS = ("title", "price", "area", "bedrooms", "bathrooms", "status", "category", "created_at", "updated_at")
SEARCH_FIELDS = ("title", "description", "address")

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_valid_email(value: str | None) -> bool:
    return isinstance(value, str) and bool(_EMAIL_RE.match(value.strip()))


def validate_property_data(payload: PropertyCreate) -> list[str]:
    errors: list[str] = []
    if not require_text(payload.title):
        errors.append("Property title is required")
    if payload.category is None:
        errors.append("Valid category is required")
    if not require_text(payload.address):
        errors.append("Property address is required")
    if payload.price is None or payload.price <= 0:
        errors.append("Valid price is required")
    # Studios have zero bedrooms.
    if payload.bedrooms is None or payload.bedrooms < 0:
        errors.append("Valid number of bedrooms is required")
    if payload.bathrooms is None or payload.bathrooms < 0:
        errors.append("Valid number of bathrooms is required")
    if payload.area is None or payload.area <= 0:
        errors.append("Valid area is required")
    if not is_valid_email(payload.contactEmail):
        errors.append("Valid contact email is required")
    if not require_text(payload.contactPhone):
        errors.append("Contact phone is required")
    return errors


def _validate_update(payload: PropertyUpdate) -> None:
    if payload.title is not None and not require_text(payload.title):
        raise bad_request("Title cannot be empty")
    if payload.address is not None and not require_text(payload.address):
        raise bad_request("Address cannot be empty")
    if payload.price is not None and payload.price <= 0:
        raise bad_request("Valid price is required")
    if payload.bedrooms is not None and payload.bedrooms < 0:
        raise bad_request("Valid number of bedrooms is required")
    if payload.bathrooms is not None and payload.bathrooms < 0:
        raise bad_request("Valid number of bathrooms is required")
    if payload.area is not None and payload.area <= 0:
        raise bad_request("Valid area is required")
    if payload.contactEmail is not None and not is_valid_email(payload.contactEmail):
        raise bad_request("Valid contact email is required")


@router.get("", response_model=PropertiesListResponse)
async def list_properties(
    category: PropertyCategory | None = None,
    status_filter: PropertyStatus | None = Query(default=None, alias="status"),
    query: ListQuery = Depends(list_query),
    auth: AuthContext = Depends(require_auth),
    store: MemoryStore = Depends(get_store),
) -> PropertiesListResponse:
    filters = []
    if category:
        filters.append(lambda p: p.category is category)
    if status_filter:
        filters.append(lambda p: p.status is status_filter)
    items, total = paginate_records(
        store.properties_for(auth.user_id),
        query=query,
        search_fields=SEARCH_FIELDS,
        sortable=SORTABLE_FIELDS,
        filters=filters,
    )
    return PropertiesListResponse(
        properties=[PropertyOut.from_record(p) for p in items],
        total=total,
        page=query.page,
        limit=query.limit,
    )


@router.get("/stats", response_model=PropertyStats)
async def property_stats(
    auth: AuthContext = Depends(require_auth),
    store: MemoryStore = Depends(get_store),
) -> PropertyStats:
    props = store.properties_for(auth.user_id)
    by_category = {c.value: 0 for c in PropertyCategory}
    by_status = {s.value: 0 for s in PropertyStatus}
    for prop in props:
        by_category[prop.category.value] += 1
        by_status[prop.status.value] += 1
    return PropertyStats(
        total=len(props),
        by_category=by_category,
        by_status=by_status,
        average_price=sum(p.price for p in props) / len(props) if props else 0.0,
        total_area=sum(p.area for p in props),
    )


@router.get("/{property_id}", response_model=PropertyOut)
async def get_property(
    property_id: str,
    auth: AuthContext = Depends(require_auth),
    store: MemoryStore = Depends(get_store),
) -> PropertyOut:
    prop = store.get_property(property_id, owner_id=auth.user_id)
    if prop is None:
        raise not_found("Property not found")
    return PropertyOut.from_record(prop)


@router.post("", status_code=status.HTTP_201_CREATED, response_model=PropertyEnvelope)
async def create_property(
    payload: PropertyCreate,
    auth: AuthContext = Depends(require_auth),
    store: MemoryStore = Depends(get_store),
) -> PropertyEnvelope:
    errors = validate_property_data(payload)
    if errors:
        raise bad_request("Validation failed", errors)

    now = utcnow()
    prop = store.add_property(
        Property(
            id=new_id(),
            title=payload.title.strip(),
            description=(payload.description or "").strip(),
            category=payload.category,
            status=payload.status or PropertyStatus.AVAILABLE,
            address=payload.address.strip(),
            price=float(payload.price),
            currency=payload.currency or "USD",
            bedrooms=payload.bedrooms,
            bathrooms=payload.bathrooms,
            area=float(payload.area),
            furnished=True if payload.furnished is None else payload.furnished,
            amenities=list(payload.amenities or []),
            images=list(payload.images or []),
            contact_email=payload.contactEmail.strip(),
            contact_phone=payload.contactPhone.strip(),
            created_by=auth.user_id,
            created_at=now,
            updated_at=now,
        )
    )
    logger.info("property %s created by %s", prop.id, auth.user_id)
    return PropertyEnvelope(property=PropertyOut.from_record(prop), message="Property created successfully")


@router.put("/{property_id}", response_model=PropertyEnvelope)
async def update_property(
    property_id: str,
    payload: PropertyUpdate,
    auth: AuthContext = Depends(require_auth),
    store: MemoryStore = Depends(get_store),
) -> PropertyEnvelope:
    prop = store.get_property(property_id, owner_id=auth.user_id)
    if prop is None:
        raise not_found("Property not found")
    _validate_update(payload)

    changes = payload.model_dump(exclude_none=True)
    for name in ("title", "description", "address"):
        if name in changes:
            setattr(prop, name, changes[name].strip())
    for name in ("category", "status", "currency", "bedrooms", "bathrooms", "furnished"):
        if name in changes:
            setattr(prop, name, getattr(payload, name))
    if "price" in changes:
        prop.price = float(payload.price)
    if "area" in changes:
        prop.area = float(payload.area)
    if "amenities" in changes:
        prop.amenities = list(payload.amenities)
    if "images" in changes:
        prop.images = list(payload.images)
    if "contactEmail" in changes:
        prop.contact_email = payload.contactEmail.strip()
    if "contactPhone" in changes:
        prop.contact_phone = payload.contactPhone.strip()
    prop.updated_at = utcnow()

    return PropertyEnvelope(property=PropertyOut.from_record(prop), message="Property updated successfully")


@router.delete("/{property_id}", response_model=MessageResponse)
async def delete_property(
    property_id: str,
    auth: AuthContext = Depends(require_auth),
    store: MemoryStore = Depends(get_store),
) -> MessageResponse:
    if not store.delete_property(property_id, owner_id=auth.user_id):
        raise not_found("Property not found")
    logger.info("property %s deleted by %s", property_id, auth.user_id)
    return MessageResponse(message="Property deleted successfully")
