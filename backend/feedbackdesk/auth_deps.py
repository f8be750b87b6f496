from __future__ import annotations
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from feedbackdesk.db import get_session
from feedbackdesk.security import decode_token, TokenError
from feedbackdesk.models.user import User

bearer = HTTPBearer(auto_error=False)

async def _user_from_token(token: str, session: AsyncSession) -> User:
    try:
        data = decode_token(token, "access")
        user_id = int(data.get("sub"))
    except (TokenError, TypeError, ValueError) as e:
        raise HTTPException(status_code=401, detail=str(e) if isinstance(e, TokenError) else "Invalid token")
    user = await session.get(User, user_id)
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user

async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
    session: AsyncSession = Depends(get_session)
) -> User:
    if credentials is None:
        raise HTTPException(status_code=401, detail="Not authenticated", headers={"WWW-Authenticate": "Bearer"})
    return await _user_from_token(credentials.credentials, session)

async def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
    session: AsyncSession = Depends(get_session)
) -> User | None:
    """Guests may submit; a bearer token, when sent, must still be valid."""
    if credentials is None:
        return None
    return await _user_from_token(credentials.credentials, session)

async def get_staff_user(user: User = Depends(get_current_user)) -> User:
    if not user.is_staff:
        raise HTTPException(status_code=403, detail="Staff only")
    return user
