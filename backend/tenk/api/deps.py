"""FastAPI dependencies: current user from JWT, active-account and admin checks, active challenge."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tenk.core.auth import ACCESS_TOKEN_TYPE, decode_token
from tenk.db.session import get_db
from tenk.models.challenge import Challenge
from tenk.models.user import User
from tenk.services.challenge import get_active_challenge


async def get_current_user(
    request: Request,
    session: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Not authenticated")
    token = auth_header[7:].strip()
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        payload = decode_token(token)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    if payload.get("typ") != ACCESS_TOKEN_TYPE:
        raise HTTPException(status_code=401, detail="Invalid token")
    try:
        user_id = int(payload.get("sub") or "")
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid token")
    r = await session.execute(select(User).where(User.id == user_id))
    user = r.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    if not user.active:
        raise HTTPException(
            status_code=403,
            detail="Account is inactive",
            headers={"X-Account-Status": "inactive"},
        )
    return user


async def require_admin(
    user: Annotated[User, Depends(get_current_user)],
) -> User:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


async def get_challenge(
    session: Annotated[AsyncSession, Depends(get_db)],
) -> Challenge:
    """The active challenge, created with defaults on first access."""
    return await get_active_challenge(session)
