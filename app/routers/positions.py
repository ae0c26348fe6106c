import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from typing import List
from app.database import get_db
from app.core.auth import get_current_admin
from app.models.position import Position
from app.models.user import User
from app.schemas.position import PositionCreate, PositionUpdate, PositionResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/positions", tags=["positions"])


async def _get_position_or_404(db: AsyncSession, position_id: int) -> Position:
    result = await db.execute(select(Position).where(Position.id == position_id))
    position = result.scalar_one_or_none()
    if not position:
        raise HTTPException(404, "Position not found")
    return position


async def require_position(db: AsyncSession, position_id: int) -> Position:
    """Look up a position referenced from a user payload (400 when unknown)."""
    result = await db.execute(select(Position).where(Position.id == position_id))
    position = result.scalar_one_or_none()
    if not position:
        raise HTTPException(400, f"Position {position_id} does not exist")
    return position


async def _ensure_title_free(db: AsyncSession, title: str, exclude_id: int = None):
    query = select(Position).where(Position.title == title)
    if exclude_id is not None:
        query = query.where(Position.id != exclude_id)
    result = await db.execute(query)
    if result.scalar_one_or_none():
        raise HTTPException(400, "A position with this title already exists")


# Public so the registration form can offer the list
@router.get("", response_model=List[PositionResponse])
async def list_positions(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Position).order_by(Position.title))
    return result.scalars().all()


@router.post("", response_model=PositionResponse)
async def create_position(
    position_in: PositionCreate,
    db: AsyncSession = Depends(get_db),
    admin = Depends(get_current_admin)
):
    title = position_in.title.strip()
    await _ensure_title_free(db, title)

    position = Position(title=title)
    db.add(position)
    await db.commit()
    await db.refresh(position)
    logger.info("Created position %s (%s)", position.id, position.title)
    return position


@router.put("/{position_id}", response_model=PositionResponse)
async def rename_position(
    position_id: int,
    position_in: PositionUpdate,
    db: AsyncSession = Depends(get_db),
    admin = Depends(get_current_admin)
):
    position = await _get_position_or_404(db, position_id)
    title = position_in.title.strip()
    await _ensure_title_free(db, title, exclude_id=position.id)

    position.title = title
    db.add(position)
    await db.commit()
    await db.refresh(position)
    return position


@router.delete("/{position_id}")
async def delete_position(
    position_id: int,
    db: AsyncSession = Depends(get_db),
    admin = Depends(get_current_admin)
):
    """Users holding the position keep their account with no position."""
    position = await _get_position_or_404(db, position_id)
    await db.execute(
        update(User).where(User.position_id == position.id).values(position_id=None)
    )
    await db.delete(position)
    await db.commit()
    logger.info("Deleted position %s", position_id)
    return {"message": "Position deleted"}
