from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, status

from aiscraper.routes.common import ServiceError, bad_request, get_store, require_text
from aiscraper.schemas import AuthResponse, LoginRequest, ProfileOut, RegisterRequest, UserOut
from aiscraper.security import AuthContext, hash_password, optional_auth, verify_password
from aiscraper.store import MemoryStore, User, new_id, utcnow
from aiscraper.tokens import issue_token


router = APIRouter(prefix="/api/auth", tags=["auth"])
logger = logging.getLogger("aiscraper.routes.auth")

MIN_PASSWORD_LENGTH = 8


def _token_for(request: Request, user: User) -> str:
    config = request.app.state.state.config
    return issue_token(user.id, secret=config.jwt_secret, expires_seconds=config.jwt_expires_seconds)


@router.post("/register", status_code=status.HTTP_201_CREATED, response_model=AuthResponse)
async def register(
    request: Request,
    payload: RegisterRequest,
    store: MemoryStore = Depends(get_store),
) -> AuthResponse:
    if not (require_text(payload.name) and require_text(payload.email) and payload.password):
        raise bad_request("Name, email, and password are required")
    if len(payload.password) < MIN_PASSWORD_LENGTH:
        raise bad_request(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if store.find_user_by_email(payload.email) is not None:
        raise bad_request("User with this email already exists")

    user = store.add_user(
        User(
            id=new_id(),
            name=payload.name.strip(),
            email=payload.email.strip().lower(),
            password_hash=hash_password(payload.password),
            created_at=utcnow(),
        )
    )
    logger.info("registered user %s", user.id)
    return AuthResponse(user=UserOut.from_record(user), token=_token_for(request, user), message="User created successfully")


@router.post("/login", response_model=AuthResponse)
async def login(
    request: Request,
    payload: LoginRequest,
    store: MemoryStore = Depends(get_store),
) -> AuthResponse:
    if not (require_text(payload.email) and payload.password):
        raise bad_request("Email and password are required")

    user = store.find_user_by_email(payload.email)
    if user is None or not verify_password(payload.password, user.password_hash):
        raise ServiceError(status_code=401, message="Invalid email or password")

    user.last_login_at = utcnow()
    return AuthResponse(user=UserOut.from_record(user), token=_token_for(request, user), message="Login successful")


def _resolve_user(request: Request, auth: AuthContext | None, store: MemoryStore) -> User:
    if auth is None:
        has_header = request.headers.get("authorization", "").lower().startswith("bearer ")
        raise ServiceError(status_code=401, message="Invalid token" if has_header else "No token provided")
    user = store.get_user(auth.user_id)
    if user is None:
        raise ServiceError(status_code=401, message="User not found")
    return user


@router.get("/verify", response_model=UserOut)
async def verify(
    request: Request,
    auth: AuthContext | None = Depends(optional_auth),
    store: MemoryStore = Depends(get_store),
) -> UserOut:
    return UserOut.from_record(_resolve_user(request, auth, store))


@router.get("/profile", response_model=ProfileOut)
async def profile(
    request: Request,
    auth: AuthContext | None = Depends(optional_auth),
    store: MemoryStore = Depends(get_store),
) -> ProfileOut:
    return ProfileOut.from_record(_resolve_user(request, auth, store))
