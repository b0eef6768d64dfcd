"""Tests for auth endpoints: register, login, me, refresh, password and inactive accounts."""

import pytest
from httpx import AsyncClient

from tenk.core.auth import create_state_token, hash_password
from tenk.db.session import async_session_maker
from tenk.models.user import User


@pytest.mark.asyncio
async def test_register(client: AsyncClient):
    resp = await client.post(
        "/api/v1/auth/register",
        json={"email": "NewUser@Test.com", "password": "securepass123", "name": "New"},
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["user"]["email"] == "newuser@test.com"
    assert data["user"]["role"] == "user"
    assert data["user"]["active"] is True
    assert data["access_token"]
    assert data["refresh_token"]
    assert data["token_type"] == "bearer"


@pytest.mark.asyncio
async def test_register_duplicate_email(client: AsyncClient):
    async with async_session_maker() as session:
        session.add(User(email="dup@test.com", password_hash=hash_password("x")))
        await session.commit()
    resp = await client.post(
        "/api/v1/auth/register",
        json={"email": "dup@test.com", "password": "otherpass1"},
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_register_short_password(client: AsyncClient):
    resp = await client.post("/api/v1/auth/register", json={"email": "a@test.com", "password": "short"})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_login(client: AsyncClient, auth_headers: dict):
    resp = await client.post(
        "/api/v1/auth/login",
        json={"email": "test@test.com", "password": "password123"},
    )
    assert resp.status_code == 200
    assert resp.json()["user"]["email"] == "test@test.com"


@pytest.mark.asyncio
async def test_login_wrong_password(client: AsyncClient, auth_headers: dict):
    resp = await client.post(
        "/api/v1/auth/login",
        json={"email": "test@test.com", "password": "wrong"},
    )
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_me(client: AsyncClient, auth_headers: dict):
    resp = await client.get("/api/v1/auth/me", headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json()["email"] == "test@test.com"
    assert resp.json()["name"] == "Tester"


@pytest.mark.asyncio
async def test_me_unauthorized(client: AsyncClient):
    assert (await client.get("/api/v1/auth/me")).status_code == 401
    resp = await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer garbage"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_oauth_state_token_is_not_a_bearer_token(client: AsyncClient, test_user):
    user_id, _, _ = test_user
    state = create_state_token(user_id)
    resp = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {state}"})
    assert resp.status_code == 401
    resp = await client.get("/api/v1/strava/status", headers={"Authorization": f"Bearer {state}"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_update_name(client: AsyncClient, auth_headers: dict):
    resp = await client.patch("/api/v1/auth/me", headers=auth_headers, json={"name": "  Speedy  "})
    assert resp.status_code == 200
    assert resp.json()["name"] == "Speedy"


@pytest.mark.asyncio
async def test_refresh_rotates_token(client: AsyncClient):
    reg = await client.post(
        "/api/v1/auth/register",
        json={"email": "rot@test.com", "password": "securepass123"},
    )
    old = reg.json()["refresh_token"]
    resp = await client.post("/api/v1/auth/refresh", json={"refresh_token": old})
    assert resp.status_code == 200
    assert resp.json()["refresh_token"] != old

    reuse = await client.post("/api/v1/auth/refresh", json={"refresh_token": old})
    assert reuse.status_code == 401


@pytest.mark.asyncio
async def test_password_change_revokes_refresh_tokens(client: AsyncClient):
    reg = await client.post(
        "/api/v1/auth/register",
        json={"email": "pw@test.com", "password": "securepass123"},
    )
    data = reg.json()
    headers = {"Authorization": f"Bearer {data['access_token']}"}

    bad = await client.post(
        "/api/v1/auth/password",
        headers=headers,
        json={"current_password": "nope", "new_password": "brandnew123"},
    )
    assert bad.status_code == 400

    ok = await client.post(
        "/api/v1/auth/password",
        headers=headers,
        json={"current_password": "securepass123", "new_password": "brandnew123"},
    )
    assert ok.status_code == 200
    assert (await client.post("/api/v1/auth/refresh", json={"refresh_token": data["refresh_token"]})).status_code == 401
    login = await client.post("/api/v1/auth/login", json={"email": "pw@test.com", "password": "brandnew123"})
    assert login.status_code == 200


@pytest.mark.asyncio
async def test_inactive_account_gets_403(client: AsyncClient, create_user):
    _, headers = await create_user("gone@test.com", active=False)
    resp = await client.get("/api/v1/auth/me", headers=headers)
    assert resp.status_code == 403
    assert resp.headers["X-Account-Status"] == "inactive"

    login = await client.post("/api/v1/auth/login", json={"email": "gone@test.com", "password": "password123"})
    assert login.status_code == 403


@pytest.mark.asyncio
async def test_health_and_security_headers(client: AsyncClient):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
