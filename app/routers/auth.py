# app/routers/auth.py
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User, ROLE_CLINICIAN
from app.schemas.user import UserCreate, UserResponse, Token, Person, to_person
from app.database import get_db
from app.utils.password import hash_password, verify_password
from app.core.security import create_access_token, create_refresh_token, decode_token, REFRESH
from app.core.auth import get_current_user
from app.routers.positions import require_position
from app.schemas.auth import ChangePasswordRequest, LoginRequest, RefreshRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _issue_tokens(user: User) -> Token:
    return Token(
        access_token=create_access_token({"sub": str(user.id)}),
        refresh_token=create_refresh_token({"sub": str(user.id)}),
        token_type="bearer",
        user=UserResponse.model_validate(user)
    )


@router.post("/register", response_model=UserResponse)
async def register(user_in: UserCreate, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(User).where(User.email == user_in.email))
    if result.scalar_one_or_none():
        raise HTTPException(status_code=400, detail="Email already registered")
    if user_in.position_id is not None:
        await require_position(db, user_in.position_id)

    try:
        hashed_pw = hash_password(user_in.password)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    # New accounts are clinicians waiting for super-admin approval
    user = User(
        email=user_in.email,
        name=user_in.name,
        position_id=user_in.position_id,
        department=user_in.department,
        hashed_password=hashed_pw,
        role=ROLE_CLINICIAN,
        accepted=False,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info("Registered user %s (pending approval)", user.id)
    return user


@router.post("/login", response_model=Token)
async def login(user_in: LoginRequest, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(User).where(User.email == user_in.email))
    user = result.scalar_one_or_none()

    if not user or not verify_password(user_in.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.is_active:
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Account is deactivated")
    if not user.accepted:
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Account is waiting for approval")

    return _issue_tokens(user)


@router.post("/refresh", response_model=Token)
async def refresh(request: RefreshRequest, db: AsyncSession = Depends(get_db)):
    user_id = decode_token(request.refresh_token, REFRESH)
    if user_id is None:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid refresh token")

    result = await db.execute(select(User).where(User.id == int(user_id)))
    user = result.scalar_one_or_none()
    if user is None or not user.is_active or not user.accepted:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid refresh token")
    return _issue_tokens(user)


@router.get("/me", response_model=Person)
async def read_users_me(current_user: User = Depends(get_current_user)):
    return to_person(current_user)


@router.post("/change-password")
async def change_password(
    request: ChangePasswordRequest,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    if not verify_password(request.current_password, current_user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect"
        )

    if verify_password(request.new_password, current_user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="New password must be different"
        )

    try:
        hashed_new = hash_password(request.new_password)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    current_user.hashed_password = hashed_new
    db.add(current_user)
    await db.commit()

    return {"message": "Password updated successfully"}
