from __future__ import annotations

from pydantic import BaseModel, Field

from aiscraper.store import Crawler, CrawlerStatus, Property, PropertyCategory, PropertyStatus, User


class HealthResponse(BaseModel):
    ok: bool = Field(..., description="Process is alive.")


class PingResponse(BaseModel):
    message: str


class MessageResponse(BaseModel):
    message: str = Field(..., description="Human-readable outcome.")


class ErrorResponse(BaseModel):
    message: str = Field(..., description="Human-readable error message.")
    errors: list[str] | None = Field(default=None, description="Validation failures, when applicable.")


# -- auth / account ---------------------------------------------------------


class RegisterRequest(BaseModel):
    name: str | None = None
    email: str | None = None
    password: str | None = None


class LoginRequest(BaseModel):
    email: str | None = None
    password: str | None = None


class UserOut(BaseModel):
    id: str
    name: str
    email: str

    @staticmethod
    def from_record(user: User) -> "UserOut":
        return UserOut(id=user.id, name=user.name, email=user.email)


class ProfileOut(UserOut):
    createdAt: str

    @staticmethod
    def from_record(user: User) -> "ProfileOut":
        return ProfileOut(id=user.id, name=user.name, email=user.email, createdAt=user.created_at.isoformat())


class AuthResponse(BaseModel):
    user: UserOut
    token: str
    message: str


class ProfileUpdateRequest(BaseModel):
    name: str | None = None
    email: str | None = None


class ProfileUpdateResponse(BaseModel):
    user: UserOut
    message: str


class PasswordChangeRequest(BaseModel):
    currentPassword: str | None = None
    newPassword: str | None = None


class AccountStats(BaseModel):
    accountCreated: str
    totalCrawlers: int
    totalProperties: int
    lastLogin: str | None = Field(default=None, description="Most recent successful login, if any.")
    storageUsed: str = "0 MB"


# -- crawlers ---------------------------------------------------------------


class CrawlerCreate(BaseModel):
    name: str | None = None
    url: str | None = None
    description: str | None = None
    status: CrawlerStatus | None = None


class CrawlerUpdate(BaseModel):
    name: str | None = None
    url: str | None = None
    description: str | None = None
    status: CrawlerStatus | None = None


class CrawlerOut(BaseModel):
    id: str
    name: str
    url: str
    description: str
    status: CrawlerStatus
    created_by: str
    created_at: str
    updated_at: str

    @staticmethod
    def from_record(crawler: Crawler) -> "CrawlerOut":
        return CrawlerOut(
            id=crawler.id,
            name=crawler.name,
            url=crawler.url,
            description=crawler.description,
            status=crawler.status,
            created_by=crawler.created_by,
            created_at=crawler.created_at.isoformat(),
            updated_at=crawler.updated_at.isoformat(),
        )


class CrawlerEnvelope(BaseModel):
    crawler: CrawlerOut
    message: str


class CrawlersListResponse(BaseModel):
    crawlers: list[CrawlerOut]
    total: int
    page: int
    limit: int


class CrawlerStats(BaseModel):
    total: int
    by_status: dict[str, int]


# -- properties -------------------------------------------------------------


class PropertyCreate(BaseModel):
    title: str | None = None
    description: str | None = None
    category: PropertyCategory | None = None
    status: PropertyStatus | None = None
    address: str | None = None
    price: float | None = None
    currency: str | None = None
    bedrooms: int | None = None
    bathrooms: int | None = None
    area: float | None = None
    furnished: bool | None = None
    amenities: list[str] | None = None
    images: list[str] | None = None
    contactEmail: str | None = None
    contactPhone: str | None = None


class PropertyUpdate(PropertyCreate):
    pass


class PropertyOut(BaseModel):
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
    amenities: list[str]
    images: list[str]
    contactEmail: str
    contactPhone: str
    created_by: str
    created_at: str
    updated_at: str

    @staticmethod
    def from_record(prop: Property) -> "PropertyOut":
        return PropertyOut(
            id=prop.id,
            title=prop.title,
            description=prop.description,
            category=prop.category,
            status=prop.status,
            address=prop.address,
            price=prop.price,
            currency=prop.currency,
            bedrooms=prop.bedrooms,
            bathrooms=prop.bathrooms,
            area=prop.area,
            furnished=prop.furnished,
            amenities=list(prop.amenities),
            images=list(prop.images),
            contactEmail=prop.contact_email,
            contactPhone=prop.contact_phone,
            created_by=prop.created_by,
            created_at=prop.created_at.isoformat(),
            updated_at=prop.updated_at.isoformat(),
        )


class PropertyEnvelope(BaseModel):
    property: PropertyOut
    message: str


class PropertiesListResponse(BaseModel):
    properties: list[PropertyOut]
    total: int
    page: int
    limit: int


class PropertyStats(BaseModel):
    total: int
    by_category: dict[str, int]
    by_status: dict[str, int]
    average_price: float
    total_area: float
