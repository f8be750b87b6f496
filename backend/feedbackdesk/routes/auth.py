from __future__ import annotations
from fastapi import APIRouter, Depends, HTTPException, Header
from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession
from feedbackdesk.db import get_session
from feedbackdesk.auth_deps import get_current_user
from feedbackdesk.models.user import User
from feedbackdesk.schemas.auth import RegisterRequest, LoginRequest, ProfileUpdate, UserPublic, TokenPair
from feedbackdesk.security import (
    hash_password, verify_password, make_access_token, make_refresh_token, decode_token, TokenError,
)

router = APIRouter(prefix="/auth", tags=["auth"])

def _public(user: User) -> UserPublic:
    return UserPublic(
        id=user.id,
        username=user.username,
        email=user.email,
        name=user.name,
        submission_count=user.submission_count,
        is_staff=user.is_staff,
        created_at=user.created_at,
    )

@router.post("/register", status_code=201, response_model=UserPublic)
async def register(payload: RegisterRequest, session: AsyncSession = Depends(get_session)):
    username = payload.username.strip().lower()
    exists = await session.scalar(
        select(User).where(or_(User.username == username, User.email == payload.email))
    )
    if exists:
        raise HTTPException(status_code=409, detail="Username or email already registered")
    user = User(
        username=username,
        email=payload.email,
        name=payload.name,
        password_hash=hash_password(payload.password),
        submission_count=0,
        is_staff=False,
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return _public(user)

@router.post("/login", response_model=TokenPair)
async def login(payload: LoginRequest, session: AsyncSession = Depends(get_session)):
    user = await session.scalar(select(User).where(User.username == payload.username.strip().lower()))
    if not user or not verify_password(payload.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return TokenPair(access=make_access_token(str(user.id)), refresh=make_refresh_token(str(user.id)))

@router.post("/refresh", response_model=TokenPair)
async def refresh(authorization: str | None = Header(None)):
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="Missing refresh token")
    try:
        data = decode_token(authorization.split(" ", 1)[1], "refresh")
    except TokenError as e:
        raise HTTPException(status_code=401, detail=str(e))
    sub = data.get("sub")
    return TokenPair(access=make_access_token(sub), refresh=make_refresh_token(sub))

@router.get("/me", response_model=UserPublic)
async def me(user: User = Depends(get_current_user)):
    return _public(user)

@router.patch("/me", response_model=UserPublic)
async def update_me(
    payload: ProfileUpdate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    if payload.name is None and payload.email is None:
        raise HTTPException(status_code=400, detail="No fields to update")
    if payload.email is not None and payload.email != user.email:
        taken = await session.scalar(select(User).where(User.email == payload.email, User.id != user.id))
        if taken:
            raise HTTPException(status_code=409, detail="Email already registered")
        user.email = payload.email
    if payload.name is not None:
        user.name = payload.name
    await session.commit()
    await session.refresh(user)
    return _public(user)
