"""
Shared fixtures: an in-memory SQLite database per test, an ASGI client
bound to it, and helpers to seed users and KPIs.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("REPORTING_TIMEZONE", "UTC")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.security import create_access_token
from app.database import Base, enable_sqlite_foreign_keys, get_db
from app.main import app
from app.models.kpi import Kpi
from app.models.user import User, ROLE_CLINICIAN, ROLE_DIRECTOR, ROLE_SUPER_ADMIN
from app.utils.password import hash_password


@pytest.fixture
async def engine():
    engine = enable_sqlite_foreign_keys(create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    ))
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# =============================================================
# Seed helpers
# =============================================================

async def make_user(db, email, role=ROLE_CLINICIAN, name=None, director_id=None,
                    accepted=True, password="password123"):
    user = User(
        email=email,
        name=name or email.split("@")[0].title(),
        hashed_password=hash_password(password),
        role=role,
        accepted=accepted,
        is_active=True,
        director_id=director_id,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def make_kpi(db, title, weight, is_removed=False):
    kpi = Kpi(title=title, weight=weight, is_removed=is_removed)
    db.add(kpi)
    await db.commit()
    await db.refresh(kpi)
    return kpi


def auth_headers(user):
    token = create_access_token({"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def admin(db):
    return await make_user(db, "admin@clinic.org", ROLE_SUPER_ADMIN, name="Ada Admin")


@pytest.fixture
async def director(db):
    return await make_user(db, "director@clinic.org", ROLE_DIRECTOR, name="Dana Director")


@pytest.fixture
async def clinician(db, director):
    return await make_user(db, "emily@clinic.org", ROLE_CLINICIAN, name="Emily Rodriguez",
                           director_id=director.id)


@pytest.fixture
async def kpis(db):
    return [
        await make_kpi(db, "Documentation Compliance", 5),
        await make_kpi(db, "Clinical Outcomes", 10),
    ]
