from pydantic_settings import BaseSettings
from typing import Optional
from pydantic import Field
from zoneinfo import ZoneInfo

class Settings(BaseSettings):
    SECRET_KEY: str = Field("change-me-in-production")
    ALGORITHM: str = Field("HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(30)
    REFRESH_TOKEN_EXPIRE_DAYS: int = Field(7)

    DATABASE_URL: str = Field("sqlite+aiosqlite:///./kpi.db")
    SQLALCHEMY_DATABASE_URL: Optional[str] = None
    SQL_ECHO: bool = Field(False)

    LOG_LEVEL: str = Field("INFO")

    # Single zone used for every month/week bucket. Never mix zones.
    REPORTING_TIMEZONE: str = Field("UTC")

    TREND_DEAD_BAND: int = Field(2)
    TREND_MONTHS: int = Field(6)
    ATTENTION_THRESHOLD: int = Field(70)
    TOP_PERFORMER_THRESHOLD: int = Field(90)

    model_config = {
        "env_file": ".env",
        "extra": "allow",
    }

    @property
    def effective_database_url(self) -> str:
        url = self.SQLALCHEMY_DATABASE_URL or self.DATABASE_URL or "sqlite+aiosqlite:///./kpi.db"
        # Ensure asyncpg is used
        if url.startswith("postgresql://"):
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return url

    @property
    def reporting_tz(self) -> ZoneInfo:
        return ZoneInfo(self.REPORTING_TIMEZONE)

settings = Settings()
