import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import List
from app.database import get_db
from app.core.auth import get_current_user, get_current_admin
from app.models.kpi import Kpi
from app.models.user import ROLE_SUPER_ADMIN
from app.schemas.kpi import KpiCreate, KpiUpdate, KpiResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/kpis", tags=["kpis"])


async def _get_kpi_or_404(db: AsyncSession, kpi_id: int) -> Kpi:
    result = await db.execute(select(Kpi).where(Kpi.id == kpi_id))
    kpi = result.scalar_one_or_none()
    if not kpi:
        raise HTTPException(404, "KPI not found")
    return kpi


@router.get("", response_model=List[KpiResponse])
async def list_kpis(
    include_removed: bool = False,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    if include_removed and current_user.role != ROLE_SUPER_ADMIN:
        raise HTTPException(403, "Admin access required")

    query = select(Kpi)
    if not include_removed:
        query = query.where(Kpi.is_removed.is_(False))
    result = await db.execute(query.order_by(Kpi.weight.desc(), Kpi.title))
    return result.scalars().all()


@router.get("/{kpi_id}", response_model=KpiResponse)
async def get_kpi(
    kpi_id: int,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return await _get_kpi_or_404(db, kpi_id)


@router.post("", response_model=KpiResponse)
async def create_kpi(
    kpi_in: KpiCreate,
    db: AsyncSession = Depends(get_db),
    admin = Depends(get_current_admin)
):
    kpi = Kpi(
        title=kpi_in.title,
        description=kpi_in.description,
        category=kpi_in.category,
        weight=kpi_in.weight,
        is_removed=False
    )
    db.add(kpi)
    await db.commit()
    await db.refresh(kpi)
    logger.info("Created KPI %s (weight %s)", kpi.id, kpi.weight)
    return kpi


@router.put("/{kpi_id}", response_model=KpiResponse)
async def update_kpi(
    kpi_id: int,
    kpi_in: KpiUpdate,
    db: AsyncSession = Depends(get_db),
    admin = Depends(get_current_admin)
):
    kpi = await _get_kpi_or_404(db, kpi_id)
    if kpi.is_removed:
        raise HTTPException(400, "Removed KPIs cannot be edited")

    for field, value in kpi_in.model_dump(exclude_unset=True).items():
        if value is None and field in ("title", "weight"):
            continue
        setattr(kpi, field, value)
    db.add(kpi)
    await db.commit()
    await db.refresh(kpi)
    return kpi


@router.delete("/{kpi_id}", response_model=KpiResponse)
async def remove_kpi(
    kpi_id: int,
    db: AsyncSession = Depends(get_db),
    admin = Depends(get_current_admin)
):
    """Soft delete: past reviews keep counting, new reviews are refused."""
    kpi = await _get_kpi_or_404(db, kpi_id)
    if kpi.is_removed:
        raise HTTPException(400, "KPI already removed")

    kpi.is_removed = True
    db.add(kpi)
    await db.commit()
    await db.refresh(kpi)
    logger.info("Removed KPI %s", kpi.id)
    return kpi
