from __future__ import annotations

import time

import jwt

from aiscraper.store import DEMO_USER_ID


JWT_ALGORITHM = "HS256"


def issue_token(user_id: str, *, secret: str, expires_seconds: int) -> str:
    now = int(time.time())
    claims = {"userId": user_id, "iat": now, "exp": now + max(1, int(expires_seconds))}
    return jwt.encode(claims, secret, algorithm=JWT_ALGORITHM)


def decode_user_id(token: str, *, secret: str) -> str | None:
    try:
        claims = jwt.decode(token, secret, algorithms=[JWT_ALGORITHM])
    except jwt.PyJWTError:
        return None
    user_id = claims.get("userId")
    return user_id if isinstance(user_id, str) and user_id else None


def is_demo_token(token: str | None) -> bool:
    """True when `token` claims to belong to the seeded demo user.

    The signature is not checked; use this only to pick offline/demo
    behaviour, never to authorize anything.
    """
    if not token:
        return False
    try:
        claims = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError:
        return False
    return claims.get("userId") == DEMO_USER_ID
