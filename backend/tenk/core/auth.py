"""Password hashing, access/refresh tokens and the signed OAuth ``state`` value."""

import hashlib
import secrets
from datetime import datetime, timezone, timedelta
from typing import Any

import bcrypt
from jose import JWTError, jwt

from tenk.config import settings

ACCESS_TOKEN_TYPE = "access"
STATE_TOKEN_TYPE = "strava_state"


def hash_password(password: str) -> str:
    """Hash password with bcrypt. Bytes truncated to 72 (bcrypt limit)."""
    pwd_bytes = password.encode("utf-8")[:72]
    return bcrypt.hashpw(pwd_bytes, bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    plain_bytes = plain_password.encode("utf-8")[:72]
    return bcrypt.checkpw(plain_bytes, password_hash.encode("utf-8"))


def _signing_key_and_algorithm() -> tuple[str, str]:
    if settings.use_rs256:
        return settings.jwt_private_key.strip(), "RS256"
    return settings.secret_key, settings.jwt_algorithm


def _verification_key_and_algorithms() -> tuple[str, list[str]]:
    if settings.use_rs256:
        return settings.jwt_public_key.strip(), ["RS256"]
    return settings.secret_key, [settings.jwt_algorithm]


def _encode(payload: dict[str, Any]) -> str:
    key, algorithm = _signing_key_and_algorithm()
    return jwt.encode(payload, key, algorithm=algorithm)


def create_access_token(user_id: int, email: str, role: str = "user") -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)
    return _encode({"sub": str(user_id), "email": email, "role": role, "typ": ACCESS_TOKEN_TYPE, "exp": expire})


def decode_token(token: str) -> dict[str, Any]:
    key, algorithms = _verification_key_and_algorithms()
    return jwt.decode(token, key, algorithms=algorithms)


def create_refresh_token() -> str:
    """New opaque refresh token; store only its hash."""
    return secrets.token_urlsafe(32)


def hash_refresh_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def create_state_token(user_id: int) -> str:
    """Short-lived signed ``state`` for the Strava OAuth round trip; identifies the user on callback."""
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.strava_state_expire_minutes)
    return _encode({"sub": str(user_id), "typ": STATE_TOKEN_TYPE, "nonce": secrets.token_urlsafe(8), "exp": expire})


def read_state_token(state: str) -> int | None:
    """User id carried by a valid state token, else None."""
    try:
        payload = decode_token(state)
    except JWTError:
        return None
    if payload.get("typ") != STATE_TOKEN_TYPE:
        return None
    try:
        return int(payload.get("sub"))
    except (TypeError, ValueError):
        return None
