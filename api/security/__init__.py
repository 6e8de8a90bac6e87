import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from api.database import get_async_session
from api.models import ADMIN_ROLES, CreatorProfile, UserRoleAssignment
from api.models.user import UserRole
from config import ENV

env = ENV()

bearer = HTTPBearer(auto_error=False)

ACCESS_TOKEN_EXPIRE = timedelta(hours=1)


def create_access_token(
    subject: str | uuid.UUID,
    expires_delta: Optional[timedelta] = None,
    additional_claims: Optional[dict[str, Any]] = None,
) -> str:
    now = datetime.now(timezone.utc)
    to_encode = {
        "sub": str(subject),
        "exp": now + (expires_delta or ACCESS_TOKEN_EXPIRE),
        "iat": now,
    }
    if additional_claims:
        to_encode.update(additional_claims)
    return jwt.encode(to_encode, env.JWT_SECRET, algorithm=env.JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[uuid.UUID]:
    """Subject of a valid token as a user id, or None."""
    try:
        payload = jwt.decode(token, env.JWT_SECRET, algorithms=[env.JWT_ALGORITHM], options={"verify_aud": False})
    except JWTError as e:
        logging.warning(f"Token verification failed: {e}")
        return None
    try:
        return uuid.UUID(str(payload.get("sub")))
    except ValueError:
        logging.warning(f"Invalid subject in token: {payload.get('sub')}")
        return None


async def get_current_user_id(credentials: HTTPAuthorizationCredentials | None = Depends(bearer)) -> uuid.UUID:
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    user_id = decode_access_token(credentials.credentials)
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return user_id


async def get_user_roles(session: AsyncSession, user_id: uuid.UUID) -> set[UserRole]:
    result = await session.execute(select(UserRoleAssignment.role).where(UserRoleAssignment.user_id == user_id))
    return set(result.scalars().all())


async def require_admin(
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_async_session),
) -> uuid.UUID:
    roles = await get_user_roles(session, user_id)
    if not roles.intersection(ADMIN_ROLES):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user_id


async def require_creator(
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_async_session),
) -> CreatorProfile:
    result = await session.execute(select(CreatorProfile).where(CreatorProfile.user_id == user_id))
    creator = result.scalar_one_or_none()
    if creator is None or not creator.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Creator access required")
    return creator
