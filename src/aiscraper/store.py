from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Iterable, Sequence, TypeVar


DEMO_USER_ID = "demo-user-123"
DEMO_USER_EMAIL = "demo@aiscraper.com"
DEMO_USER_PASSWORD = "demo123"


class CrawlerStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    READY_FOR_QA = "ready_for_qa"
    COMPLETED = "completed"
    FAILED = "failed"


class PropertyCategory(str, Enum):
    FURNISHED_APARTMENT = "furnished_apartment"
    FURNISHED_HOUSE = "furnished_house"
    SERVICED_APARTMENT = "serviced_apartment"


class PropertyStatus(str, Enum):
    AVAILABLE = "available"
    RENTED = "rented"
    MAINTENANCE = "maintenance"
    RESERVED = "reserved"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


@dataclass
class User:
    id: str
    name: str
    email: str
    password_hash: str
    created_at: datetime
    last_login_at: datetime | None = None


@dataclass
class Crawler:
    id: str
    name: str
    url: str
    description: str
    status: CrawlerStatus
    created_by: str
    created_at: datetime
    updated_at: datetime


@dataclass
class Property:
    id: str
    title: str
    description: str
    category: PropertyCategory
    status: PropertyStatus
    address: str
    price: float
    currency: str
    bedrooms: int
    bathrooms: int
    area: float
    furnished: bool
    contact_email: str
    contact_phone: str
    created_by: str
    created_at: datetime
    updated_at: datetime
    amenities: list[str] = field(default_factory=list)
    images: list[str] = field(default_factory=list)


T = TypeVar("T")


@dataclass(frozen=True)
class ListQuery:
    page: int = 1
    limit: int = 20
    search: str | None = None
    sort_by: str = "created_at"
    sort_order: str = "desc"


def paginate_records(
    records: Iterable[T],
    *,
    query: ListQuery,
    search_fields: Sequence[str],
    sortable: Sequence[str],
    filters: Sequence[Callable[[T], bool]] = (),
) -> tuple[list[T], int]:
    """Filter, search, sort and slice `records`. Returns (page_items, total)."""
    items = [r for r in records if all(f(r) for f in filters)]

    if query.search:
        needle = query.search.lower()
        items = [r for r in items if any(needle in str(getattr(r, name)).lower() for name in search_fields)]

    sort_by = query.sort_by if query.sort_by in sortable else "created_at"

    def _key(record: T) -> Any:
        value = getattr(record, sort_by)
        if isinstance(value, Enum):
            return value.value
        if isinstance(value, str):
            return value.lower()
        return value

    items.sort(key=_key, reverse=query.sort_order != "asc")

    total = len(items)
    start = (query.page - 1) * query.limit
    return items[start : start + query.limit], total


class MemoryStore:
    """Process-memory storage for users, crawlers and properties.

    Nothing survives a restart. Ownership is by `created_by` matching a user id.
    """

    def __init__(self) -> None:
        self.users: list[User] = []
        self.crawlers: list[Crawler] = []
        self.properties: list[Property] = []

    # users

    def find_user_by_email(self, email: str) -> User | None:
        email_norm = email.strip().lower()
        for user in self.users:
            if user.email.lower() == email_norm:
                return user
        return None

    def get_user(self, user_id: str) -> User | None:
        for user in self.users:
            if user.id == user_id:
                return user
        return None

    def add_user(self, user: User) -> User:
        self.users.append(user)
        return user

    def delete_user(self, user_id: str) -> bool:
        before = len(self.users)
        self.users = [u for u in self.users if u.id != user_id]
        if len(self.users) == before:
            return False
        self.crawlers = [c for c in self.crawlers if c.created_by != user_id]
        self.properties = [p for p in self.properties if p.created_by != user_id]
        return True

    # crawlers

    def crawlers_for(self, user_id: str) -> list[Crawler]:
        return [c for c in self.crawlers if c.created_by == user_id]

    def get_crawler(self, crawler_id: str, *, owner_id: str) -> Crawler | None:
        for crawler in self.crawlers:
            if crawler.id == crawler_id and crawler.created_by == owner_id:
                return crawler
        return None

    def add_crawler(self, crawler: Crawler) -> Crawler:
        self.crawlers.append(crawler)
        return crawler

    def delete_crawler(self, crawler_id: str, *, owner_id: str) -> bool:
        crawler = self.get_crawler(crawler_id, owner_id=owner_id)
        if crawler is None:
            return False
        self.crawlers.remove(crawler)
        return True

    # properties

    def properties_for(self, user_id: str) -> list[Property]:
        return [p for p in self.properties if p.created_by == user_id]

    def get_property(self, property_id: str, *, owner_id: str) -> Property | None:
        for prop in self.properties:
            if prop.id == property_id and prop.created_by == owner_id:
                return prop
        return None

    def add_property(self, prop: Property) -> Property:
        self.properties.append(prop)
        return prop

    def delete_property(self, property_id: str, *, owner_id: str) -> bool:
        prop = self.get_property(property_id, owner_id=owner_id)
        if prop is None:
            return False
        self.properties.remove(prop)
        return True


def _day(value: str) -> datetime:
    return datetime.fromisoformat(value).replace(tzinfo=timezone.utc)


def seed_demo_data(store: MemoryStore, *, password_hash: str) -> None:
    if store.get_user(DEMO_USER_ID) is None and store.find_user_by_email(DEMO_USER_EMAIL) is None:
        store.add_user(
            User(
                id=DEMO_USER_ID,
                name="Demo User",
                email=DEMO_USER_EMAIL,
                password_hash=password_hash,
                created_at=_day("2024-01-01"),
            )
        )

    demo = [
        ("prop-1", "Luxury Downtown Apartment",
         "Beautiful 2-bedroom apartment in the heart of downtown with stunning city views. "
         "Fully furnished with modern amenities.",
         PropertyCategory.FURNISHED_APARTMENT, PropertyStatus.AVAILABLE, "123 City Center Plaza, Downtown",
         2500, 2, 2, 85, ["WiFi", "Air Conditioning", "Gym", "Pool", "Concierge"],
         "contact@luxuryapts.com", "+1-555-0123", "2024-01-15", "2024-01-20"),
        ("prop-2", "Spacious Family House",
         "A wonderful 4-bedroom family house with a large garden. Perfect for families looking for space and comfort.",
         PropertyCategory.FURNISHED_HOUSE, PropertyStatus.RENTED, "456 Maple Street, Suburbia",
         3200, 4, 3, 180, ["Garden", "Garage", "Fireplace", "Modern Kitchen"],
         "rental@familyhomes.com", "+1-555-0456", "2024-01-18", "2024-01-21"),
        ("prop-3", "Executive Serviced Apartment",
         "Premium serviced apartment with daily housekeeping and business center access. "
         "Ideal for business travelers.",
         PropertyCategory.SERVICED_APARTMENT, PropertyStatus.AVAILABLE, "789 Business District, Corporate Zone",
         4000, 1, 1, 65, ["Daily Housekeeping", "Business Center", "Laundry Service", "24/7 Front Desk"],
         "reservations@executivesuites.com", "+1-555-0789", "2024-01-19", "2024-01-19"),
        ("prop-4", "Modern Studio Apartment",
         "Stylish studio apartment with contemporary design. Perfect for young professionals or students.",
         PropertyCategory.FURNISHED_APARTMENT, PropertyStatus.RESERVED, "321 University Avenue, Student Quarter",
         1800, 1, 1, 45, ["WiFi", "Study Area", "Communal Kitchen"],
         "info@modernstudios.com", "+1-555-0321", "2024-01-20", "2024-01-20"),
        ("prop-5", "Luxury Villa with Pool",
         "Stunning 5-bedroom villa with private pool and garden. Ultimate luxury living experience.",
         PropertyCategory.FURNISHED_HOUSE, PropertyStatus.MAINTENANCE, "555 Exclusive Hills, Premium District",
         8000, 5, 4, 350, ["Private Pool", "Garden", "Wine Cellar", "Home Theater", "Chef Kitchen"],
         "luxury@premiumvillas.com", "+1-555-0555", "2024-01-21", "2024-01-21"),
    ]
    existing = {p.id for p in store.properties}
    for (pid, title, description, category, status, address, price, bedrooms, bathrooms, area,
         amenities, email, phone, created, updated) in demo:
        if pid in existing:
            continue
        store.add_property(
            Property(
                id=pid,
                title=title,
                description=description,
                category=category,
                status=status,
                address=address,
                price=float(price),
                currency="USD",
                bedrooms=bedrooms,
                bathrooms=bathrooms,
                area=float(area),
                furnished=True,
                amenities=list(amenities),
                images=[],
                contact_email=email,
                contact_phone=phone,
                created_by=DEMO_USER_ID,
                created_at=_day(created),
                updated_at=_day(updated),
            )
        )
