"""Unit tests for JWT encode/decode (HS256 and RS256), expiry and the Strava OAuth state token."""

from datetime import datetime, timezone, timedelta
from unittest.mock import patch

import pytest
from jose import JWTError, jwt

from tenk.config import settings
from tenk.core.auth import (
    create_access_token,
    create_refresh_token,
    create_state_token,
    decode_token,
    hash_password,
    hash_refresh_token,
    read_state_token,
    verify_password,
)


def test_create_and_decode_token_roundtrip_hs256():
    """Default config uses HS256; encode then decode returns payload."""
    token = create_access_token(user_id=42, email="u@example.com", role="admin")
    payload = decode_token(token)
    assert payload["sub"] == "42"
    assert payload["email"] == "u@example.com"
    assert payload["role"] == "admin"
    assert payload["typ"] == "access"
    assert "exp" in payload


def test_decode_invalid_signature_raises():
    token = create_access_token(user_id=1, email="a@b.com")
    bad_token = token[:-1] + ("x" if token[-1] != "x" else "y")
    with pytest.raises(JWTError):
        decode_token(bad_token)


def test_decode_expired_token_raises():
    payload = {
        "sub": "1",
        "email": "u@test.com",
        "exp": datetime.now(timezone.utc) - timedelta(minutes=1),
    }
    token = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)
    with pytest.raises(JWTError):
        decode_token(token)


def test_decode_wrong_key_raises():
    token = create_access_token(user_id=1, email="a@b.com")
    with patch.object(settings, "secret_key", "other-secret"):
        with pytest.raises(JWTError):
            decode_token(token)


def test_create_and_decode_token_roundtrip_rs256():
    """When RSA keys are set, encode with private key and decode with public key."""
    from cryptography.hazmat.primitives.asymmetric import rsa
    from cryptography.hazmat.primitives import serialization

    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")
    public_pem = (
        key.public_key()
        .public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        .decode("utf-8")
    )
    with patch.object(settings, "jwt_private_key", private_pem):
        with patch.object(settings, "jwt_public_key", public_pem):
            token = create_access_token(user_id=99, email="rs@test.com")
            payload = decode_token(token)
            assert payload["sub"] == "99"
            assert payload["email"] == "rs@test.com"


def test_state_token_roundtrip():
    state = create_state_token(7)
    assert read_state_token(state) == 7
    # nonce makes each state unique
    assert create_state_token(7) != state


def test_access_token_is_not_a_state_token():
    assert read_state_token(create_access_token(user_id=7, email="a@b.com")) is None


def test_garbage_and_expired_state_rejected():
    assert read_state_token("not-a-jwt") is None
    expired = jwt.encode(
        {"sub": "7", "typ": "strava_state", "exp": datetime.now(timezone.utc) - timedelta(seconds=1)},
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )
    assert read_state_token(expired) is None


def test_password_hash_and_refresh_hash():
    hashed = hash_password("password123")
    assert verify_password("password123", hashed)
    assert not verify_password("password124", hashed)
    token = create_refresh_token()
    assert hash_refresh_token(token) == hash_refresh_token(token)
    assert len(hash_refresh_token(token)) == 64
