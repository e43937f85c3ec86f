from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from aiscraper.routes.common import bad_request, get_store, not_found, require_text
from aiscraper.schemas import (
    AccountStats,
    MessageResponse,
    PasswordChangeRequest,
    ProfileUpdateRequest,
    ProfileUpdateResponse,
    UserOut,
)
from aiscraper.security import AuthContext, hash_password, require_auth, verify_password
from aiscraper.store import MemoryStore, User


router = APIRouter(prefix="/api/account", tags=["account"])
logger = logging.getLogger("aiscraper.routes.account")

MIN_NEW_PASSWORD_LENGTH = 6


def _current_user(auth: AuthContext, store: MemoryStore) -> User:
    user = store.get_user(auth.user_id)
    if user is None:
        raise not_found("User not found")
    return user


@router.put("/profile", response_model=ProfileUpdateResponse)
async def update_profile(
    payload: ProfileUpdateRequest,
    auth: AuthContext = Depends(require_auth),
    store: MemoryStore = Depends(get_store),
) -> ProfileUpdateResponse:
    if not (require_text(payload.name) and require_text(payload.email)):
        raise bad_request("Name and email are required")
    user = _current_user(auth, store)

    other = store.find_user_by_email(payload.email)
    if other is not None and other.id != user.id:
        raise bad_request("Email address is already in use")

    user.name = payload.name.strip()
    user.email = payload.email.strip().lower()
    return ProfileUpdateResponse(user=UserOut.from_record(user), message="Profile updated successfully")


@router.put("/password", response_model=MessageResponse)
async def change_password(
    payload: PasswordChangeRequest,
    auth: AuthContext = Depends(require_auth),
    store: MemoryStore = Depends(get_store),
) -> MessageResponse:
    if not (payload.currentPassword and payload.newPassword):
        raise bad_request("Current password and new password are required")
    if len(payload.newPassword) < MIN_NEW_PASSWORD_LENGTH:
        raise bad_request(f"New password must be at least {MIN_NEW_PASSWORD_LENGTH} characters long")

    user = _current_user(auth, store)
    if not verify_password(payload.currentPassword, user.password_hash):
        raise bad_request("Current password is incorrect")

    user.password_hash = hash_password(payload.newPassword)
    logger.info("password changed for %s", user.id)
    return MessageResponse(message="Password changed successfully")


@router.delete("", response_model=MessageResponse)
async def delete_account(
    auth: AuthContext = Depends(require_auth),
    store: MemoryStore = Depends(get_store),
) -> MessageResponse:
    if not store.delete_user(auth.user_id):
        raise not_found("User not found")
    logger.info("account %s deleted", auth.user_id)
    return MessageResponse(message="Account deleted successfully")


@router.get("/stats", response_model=AccountStats)
async def account_stats(
    auth: AuthContext = Depends(require_auth),
    store: MemoryStore = Depends(get_store),
) -> AccountStats:
    user = _current_user(auth, store)
    return AccountStats(
        accountCreated=user.created_at.isoformat(),
        totalCrawlers=len(store.crawlers_for(user.id)),
        totalProperties=len(store.properties_for(user.id)),
        lastLogin=user.last_login_at.isoformat() if user.last_login_at else None,
    )
