"""Password hashing and session token helpers."""
from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import VerificationError

from .settings import get_settings

_hasher = PasswordHasher()


def hash_password(password: str) -> str:
    return _hasher.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    try:
        return _hasher.verify(hashed, password)
    except VerificationError:
        return False


def create_token(data: Dict[str, Any], expires_delta: timedelta, token_type: str) -> str:
    payload = data.copy()
    now = datetime.now(timezone.utc)
    payload.update(
        {
            "exp": now + expires_delta,
            "iat": now,
            "type": token_type,
            "jti": uuid.uuid4().hex,
        }
    )
    return jwt.encode(payload, get_settings().secret_key, algorithm="HS256")


def create_access_token(data: Dict[str, Any]) -> str:
    expires = timedelta(minutes=get_settings().access_token_expire_minutes)
    return create_token(data, expires, "access")


def create_refresh_token(data: Dict[str, Any]) -> str:
    expires = timedelta(days=get_settings().refresh_token_expire_days)
    return create_token(data, expires, "refresh")


def decode_token(token: str) -> dict[str, Any]:
    return jwt.decode(token, get_settings().secret_key, algorithms=["HS256"])


__all__ = [
    "hash_password",
    "verify_password",
    "create_access_token",
    "create_refresh_token",
    "decode_token",
]
