# app/core/auth.py
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from app.database import get_db
from app.models.user import User, ROLE_SUPER_ADMIN, ROLE_DIRECTOR, ROLE_CLINICIAN
from app.core.security import decode_token

reusable_oauth2 = HTTPBearer()

async def get_current_user(
    db: AsyncSession = Depends(get_db),
    token: HTTPAuthorizationCredentials = Depends(reusable_oauth2)
):
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    user_id = decode_token(token.credentials)
    if user_id is None:
        raise credentials_exception

    result = await db.execute(select(User).where(User.id == int(user_id)))
    user = result.scalar_one_or_none()
    if user is None or not user.is_active or not user.accepted:
        raise credentials_exception
    return user


def require_roles(*roles: str):
    async def checker(current_user = Depends(get_current_user)):
        if current_user.role not in roles:
            raise HTTPException(403, "Insufficient permissions")
        return current_user
    return checker


get_current_admin = require_roles(ROLE_SUPER_ADMIN)
get_current_reviewer = require_roles(ROLE_SUPER_ADMIN, ROLE_DIRECTOR)


def can_view_user(current_user, target) -> bool:
    """Self, super-admins, and the director a clinician is assigned to."""
    if current_user.id == target.id or current_user.role == ROLE_SUPER_ADMIN:
        return True
    return (
        current_user.role == ROLE_DIRECTOR
        and target.role == ROLE_CLINICIAN
        and target.director_id == current_user.id
    )


def can_review_user(current_user, target) -> bool:
    """Super-admins review directors and clinicians; directors review their own clinicians."""
    if current_user.role == ROLE_SUPER_ADMIN:
        return target.role in (ROLE_DIRECTOR, ROLE_CLINICIAN)
    return (
        current_user.role == ROLE_DIRECTOR
        and target.role == ROLE_CLINICIAN
        and target.director_id == current_user.id
    )
