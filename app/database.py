from typing import AsyncGenerator
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from app.config import settings


def enable_sqlite_foreign_keys(async_engine: AsyncEngine) -> AsyncEngine:
    """SQLite ignores ON DELETE rules unless foreign keys are switched on per connection."""
    if async_engine.dialect.name == "sqlite":
        @event.listens_for(async_engine.sync_engine, "connect")
        def _set_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()
    return async_engine


engine = enable_sqlite_foreign_keys(
    create_async_engine(settings.effective_database_url, echo=settings.SQL_ECHO)
)

AsyncSessionLocal = async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)
Base = declarative_base()

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session
