"""Auth: register, login, refresh, me, profile and password."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tenk.api.deps import get_current_user
from tenk.config import settings
from tenk.core.auth import (
    create_access_token,
    create_refresh_token,
    hash_password,
    hash_refresh_token,
    verify_password,
)
from tenk.db.session import get_db
from tenk.models.refresh_token import RefreshToken
from tenk.models.user import User

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])

ACCESS_TOKEN_EXPIRE_SECONDS = settings.access_token_expire_minutes * 60


class RegisterBody(BaseModel):
    email: str
    password: str = Field(..., min_length=8, max_length=128)
    name: str | None = Field(None, max_length=255)


class LoginBody(BaseModel):
    email: str
    password: str


class RefreshBody(BaseModel):
    refresh_token: str


class ProfileUpdate(BaseModel):
    name: str | None = Field(None, max_length=255)


class PasswordChange(BaseModel):
    current_password: str | None = None
    new_password: str = Field(..., min_length=8, max_length=128)


class UserOut(BaseModel):
    id: int
    email: str
    name: str | None
    role: str
    active: bool


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds until access token expires
    user: UserOut


def _user_out(user: User) -> UserOut:
    return UserOut(id=user.id, email=user.email, name=user.name, role=user.role, active=user.active)


def _issue_tokens(session: AsyncSession, user: User) -> TokenResponse:
    """Access token plus a new refresh token (hash stored in DB)."""
    refresh_plain = create_refresh_token()
    session.add(
        RefreshToken(
            user_id=user.id,
            token_hash=hash_refresh_token(refresh_plain),
            expires_at=datetime.now(timezone.utc) + timedelta(days=settings.refresh_token_expire_days),
        )
    )
    return TokenResponse(
        access_token=create_access_token(user.id, user.email, user.role),
        refresh_token=refresh_plain,
        expires_in=ACCESS_TOKEN_EXPIRE_SECONDS,
        user=_user_out(user),
    )


def _normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


@router.post(
    "/register",
    response_model=TokenResponse,
    summary="Register a new user",
    responses={400: {"description": "Invalid email or email already registered"}},
)
async def register(
    session: Annotated[AsyncSession, Depends(get_db)],
    body: RegisterBody,
) -> TokenResponse:
    email = _normalize_email(body.email)
    if not email or "@" not in email:
        raise HTTPException(status_code=400, detail="Valid email required")
    r = await session.execute(select(User).where(User.email == email))
    if r.scalar_one_or_none() is not None:
        raise HTTPException(status_code=400, detail="Email already registered")
    try:
        user = User(email=email, password_hash=hash_password(body.password), name=(body.name or "").strip() or None)
        session.add(user)
        await session.flush()
        await session.refresh(user)
    except IntegrityError as e:
        logger.warning("Register IntegrityError: %s", e)
        raise HTTPException(status_code=400, detail="Email already registered") from e
    tokens = _issue_tokens(session, user)
    await session.flush()
    logger.info("Auth: registered user_id=%s", user.id)
    return tokens


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Login with email and password",
    responses={401: {"description": "Invalid email or password"}, 403: {"description": "Account inactive"}},
)
async def login(
    session: Annotated[AsyncSession, Depends(get_db)],
    body: LoginBody,
) -> TokenResponse:
    email = _normalize_email(body.email)
    if not email or not body.password:
        raise HTTPException(status_code=401, detail="Email and password required")
    r = await session.execute(select(User).where(User.email == email))
    user = r.scalar_one_or_none()
    if not user or not user.password_hash or not verify_password(body.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    if not user.active:
        raise HTTPException(status_code=403, detail="Account is inactive", headers={"X-Account-Status": "inactive"})
    tokens = _issue_tokens(session, user)
    await session.flush()
    return tokens


@router.post(
    "/refresh",
    response_model=TokenResponse,
    summary="Exchange refresh token for new access and refresh tokens",
    responses={401: {"description": "Refresh token invalid or expired"}},
)
async def refresh_tokens(
    session: Annotated[AsyncSession, Depends(get_db)],
    body: RefreshBody,
) -> TokenResponse:
    """Rotation: the presented refresh token is deleted and a new pair issued."""
    if not body.refresh_token.strip():
        raise HTTPException(status_code=401, detail="Refresh token required")
    r = await session.execute(
        select(RefreshToken).where(
            RefreshToken.token_hash == hash_refresh_token(body.refresh_token.strip()),
            RefreshToken.expires_at > datetime.now(timezone.utc),
        )
    )
    row = r.scalar_one_or_none()
    if not row:
        raise HTTPException(status_code=401, detail="Invalid or expired refresh token")
    user_id = row.user_id
    await session.delete(row)
    await session.flush()
    user = (await session.execute(select(User).where(User.id == user_id))).scalar_one_or_none()
    if not user or not user.active:
        raise HTTPException(status_code=401, detail="User not found or inactive")
    tokens = _issue_tokens(session, user)
    await session.flush()
    return tokens


@router.get("/me", response_model=UserOut, summary="Get current authenticated user")
async def me(user: Annotated[User, Depends(get_current_user)]) -> UserOut:
    return _user_out(user)


@router.patch("/me", response_model=UserOut, summary="Update display name")
async def update_me(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    body: ProfileUpdate,
) -> UserOut:
    user.name = (body.name or "").strip() or None
    await session.flush()
    return _user_out(user)


@router.post(
    "/password",
    summary="Set or change password",
    responses={400: {"description": "Current password incorrect"}},
)
async def change_password(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    body: PasswordChange,
) -> dict:
    """Users with a password must confirm it; all refresh tokens are revoked afterwards."""
    if user.password_hash:
        if not body.current_password or not verify_password(body.current_password, user.password_hash):
            raise HTTPException(status_code=400, detail="Current password is incorrect")
    user.password_hash = hash_password(body.new_password)
    await session.execute(delete(RefreshToken).where(RefreshToken.user_id == user.id))
    await session.flush()
    logger.info("Auth: password changed for user_id=%s", user.id)
    return {"status": "ok"}
