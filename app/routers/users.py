import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, update
from typing import List, Optional
from app.database import get_db
from app.core.auth import get_current_admin, require_roles
from app.models.user import User, ROLES, ROLE_SUPER_ADMIN, ROLE_DIRECTOR, ROLE_CLINICIAN
from app.schemas.user import (
    Person, to_person, UserUpdate, RoleUpdate, AssignDirectorRequest,
    AcceptanceUpdate, BulkAcceptanceRequest, UserStatsResponse,
)
from app.routers.positions import require_position
from app.services.performance import get_assigned_clinicians

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


async def _get_user_or_404(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(404, "User not found")
    return user


@router.get("", response_model=List[Person])
async def list_users(
    role: Optional[str] = None,
    accepted: Optional[bool] = None,
    position_id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
    admin = Depends(get_current_admin)
):
    if role is not None and role not in ROLES:
        raise HTTPException(400, "Invalid role")

    query = select(User)
    if role:
        query = query.where(User.role == role)
    if accepted is not None:
        query = query.where(User.accepted == accepted)
    if position_id is not None:
        query = query.where(User.position_id == position_id)

    result = await db.execute(query.order_by(User.name))
    return [to_person(u) for u in result.scalars()]


@router.get("/pending", response_model=List[Person])
async def list_pending_users(
    db: AsyncSession = Depends(get_db),
    admin = Depends(get_current_admin)
):
    result = await db.execute(
        select(User).where(User.accepted.is_(False)).order_by(User.created_at.desc())
    )
    return [to_person(u) for u in result.scalars()]


@router.get("/unassigned", response_model=List[Person])
async def list_unassigned_clinicians(
    db: AsyncSession = Depends(get_db),
    admin = Depends(get_current_admin)
):
    result = await db.execute(
        select(User)
        .where(User.role == ROLE_CLINICIAN)
        .where(User.director_id.is_(None))
        .order_by(User.name)
    )
    return [to_person(u) for u in result.scalars()]


@router.get("/stats", response_model=UserStatsResponse)
async def user_stats(
    db: AsyncSession = Depends(get_db),
    admin = Depends(get_current_admin)
):
    result = await db.execute(select(User.role, func.count(User.id)).group_by(User.role))
    by_role = {role: count for role, count in result.fetchall()}

    pending = await db.execute(select(func.count(User.id)).where(User.accepted.is_(False)))
    unassigned = await db.execute(
        select(func.count(User.id))
        .where(User.role == ROLE_CLINICIAN)
        .where(User.director_id.is_(None))
    )

    return UserStatsResponse(
        total=sum(by_role.values()),
        super_admins=by_role.get(ROLE_SUPER_ADMIN, 0),
        directors=by_role.get(ROLE_DIRECTOR, 0),
        clinicians=by_role.get(ROLE_CLINICIAN, 0),
        pending=pending.scalar_one(),
        unassigned_clinicians=unassigned.scalar_one(),
    )


@router.get("/me/clinicians", response_model=List[Person])
async def list_my_clinicians(
    db: AsyncSession = Depends(get_db),
    current_user = Depends(require_roles(ROLE_DIRECTOR, ROLE_SUPER_ADMIN))
):
    """Clinicians assigned to the calling director."""
    clinicians = await get_assigned_clinicians(db, current_user.id)
    return [to_person(c) for c in clinicians]


@router.post("/accept", response_model=List[Person])
async def bulk_update_acceptance(
    request: BulkAcceptanceRequest,
    db: AsyncSession = Depends(get_db),
    admin = Depends(get_current_admin)
):
    result = await db.execute(select(User).where(User.id.in_(request.user_ids)))
    users = result.scalars().all()
    found = {u.id for u in users}
    missing = set(request.user_ids) - found
    if missing:
        raise HTTPException(404, f"Users not found: {sorted(missing)}")

    for user in users:
        user.accepted = request.accept
        db.add(user)
    await db.commit()
    logger.info("Set accepted=%s for users %s", request.accept, sorted(found))
    return [to_person(u) for u in users]


@router.get("/{user_id}", response_model=Person)
async def get_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    admin = Depends(get_current_admin)
):
    return to_person(await _get_user_or_404(db, user_id))


@router.patch("/{user_id}", response_model=Person)
async def update_user(
    user_id: int,
    user_in: UserUpdate,
    db: AsyncSession = Depends(get_db),
    admin = Depends(get_current_admin)
):
    user = await _get_user_or_404(db, user_id)
    changes = user_in.model_dump(exclude_unset=True)
    if changes.get("position_id") is not None:
        await require_position(db, changes["position_id"])

    for field, value in changes.items():
        if value is None and field == "is_active":
            continue
        setattr(user, field, value)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return to_person(user)


@router.post("/{user_id}/acceptance", response_model=Person)
async def set_acceptance(
    user_id: int,
    request: AcceptanceUpdate,
    db: AsyncSession = Depends(get_db),
    admin = Depends(get_current_admin)
):
    user = await _get_user_or_404(db, user_id)
    user.accepted = request.accept
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return to_person(user)


@router.put("/{user_id}/role", response_model=Person)
async def change_role(
    user_id: int,
    request: RoleUpdate,
    db: AsyncSession = Depends(get_db),
    admin = Depends(get_current_admin)
):
    user = await _get_user_or_404(db, user_id)
    if user.id == admin.id and request.role != ROLE_SUPER_ADMIN:
        raise HTTPException(400, "You cannot remove your own super-admin role")

    previous = user.role
    user.role = request.role
    if request.role != ROLE_CLINICIAN:
        # only clinicians carry a director link
        user.director_id = None
    if previous == ROLE_DIRECTOR and request.role != ROLE_DIRECTOR:
        await db.execute(
            update(User).where(User.director_id == user.id).values(director_id=None)
        )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info("User %s role changed %s -> %s", user.id, previous, request.role)
    return to_person(user)


@router.put("/{user_id}/director", response_model=Person)
async def assign_director(
    user_id: int,
    request: AssignDirectorRequest,
    db: AsyncSession = Depends(get_db),
    admin = Depends(get_current_admin)
):
    clinician = await _get_user_or_404(db, user_id)
    if clinician.role != ROLE_CLINICIAN:
        raise HTTPException(400, "Only clinicians can be assigned to a director")

    if request.director_id is not None:
        director = await _get_user_or_404(db, request.director_id)
        if director.role != ROLE_DIRECTOR:
            raise HTTPException(400, "Assigned user is not a director")

    clinician.director_id = request.director_id
    db.add(clinician)
    await db.commit()
    await db.refresh(clinician)
    return to_person(clinician)


@router.delete("/{user_id}")
async def delete_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    admin = Depends(get_current_admin)
):
    user = await _get_user_or_404(db, user_id)
    if user.id == admin.id:
        raise HTTPException(400, "You cannot delete your own account")

    if user.role == ROLE_DIRECTOR:
        await db.execute(
            update(User).where(User.director_id == user.id).values(director_id=None)
        )
    await db.delete(user)
    await db.commit()
    logger.info("Deleted user %s", user_id)
    return {"message": "User deleted"}
