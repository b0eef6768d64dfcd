"""Fernet encryption for third-party secrets stored in the database (Strava refresh tokens)."""

from cryptography.fernet import Fernet, InvalidToken

from tenk.config import settings

MIN_KEY_LENGTH = 32


def get_fernet() -> Fernet | None:
    if not settings.encryption_key:
        return None
    return Fernet(settings.encryption_key.encode())


def validate_encryption_key() -> None:
    """Raise in production when ENCRYPTION_KEY is missing or not a usable Fernet key."""
    if settings.app_env != "production":
        return
    key = settings.encryption_key.strip()
    if len(key) < MIN_KEY_LENGTH:
        raise RuntimeError("ENCRYPTION_KEY must be set to a Fernet key in production")
    try:
        Fernet(key.encode())
    except ValueError as e:
        raise RuntimeError(f"ENCRYPTION_KEY is not a valid Fernet key: {e}") from e


def encrypt_value(value: str) -> str:
    if not value:
        return ""
    f = get_fernet()
    if f is None:
        return value  # dev: no key, stored as-is
    return f.encrypt(value.encode()).decode()


def decrypt_value(encrypted: str) -> str:
    """Plaintext, or "" when the ciphertext was produced with another key."""
    if not encrypted:
        return ""
    f = get_fernet()
    if f is None:
        return encrypted
    try:
        return f.decrypt(encrypted.encode()).decode()
    except InvalidToken:
        return ""
