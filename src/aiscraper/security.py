from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext

from aiscraper.routes.common import ServiceError
from aiscraper.tokens import decode_user_id, issue_token


_password_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
_bearer = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthContext:
    user_id: str
    token: str


def hash_password(password: str) -> str:
    return _password_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return _password_context.verify(password, password_hash)
    except ValueError:
        return False


async def optional_auth(
    request: Request,
    bearer: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> AuthContext | None:
    if not bearer or bearer.scheme.lower() != "bearer":
        return None
    token = bearer.credentials.strip()
    if not token:
        return None
    config = request.app.state.state.config
    user_id = decode_user_id(token, secret=config.jwt_secret)
    if not user_id:
        return None
    return AuthContext(user_id=user_id, token=token)


async def require_auth(auth: AuthContext | None = Depends(optional_auth)) -> AuthContext:
    if auth is None:
        raise ServiceError(status_code=401, message="Unauthorized")
    return auth
