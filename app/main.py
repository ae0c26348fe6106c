# app/main.py
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from app.config import settings
from app.database import engine, Base
from app.models.user import User
from app.models.kpi import Kpi
from app.models.position import Position
from app.models.review import ReviewItem
from app.routers import auth, users, positions, kpis, reviews, performance, dashboard
from app.services.scoring import ScoringError, MalformedKpiError
import logging
from sqlalchemy import exc as sa_exc

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="[%(asctime)s] %(levelname)s in %(module)s:%(lineno)d: %(message)s",
)
logger = logging.getLogger(__name__)


app = FastAPI(title="Clinical KPI Performance Service", version="1.0")

# Include Routers
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(positions.router)
app.include_router(kpis.router)
app.include_router(reviews.router)
app.include_router(performance.router)
app.include_router(dashboard.router)


@app.exception_handler(ScoringError)
async def scoring_error_handler(request: Request, exc: ScoringError):
    # bad KPI data upstream; never turn it into a misleading score
    logger.error("Score aggregation failed on %s: %s", request.url.path, exc)
    content = {"detail": str(exc)}
    if isinstance(exc, MalformedKpiError):
        content["kpi_id"] = exc.kpi_id
    return JSONResponse(status_code=500, content=content)


# Create DB Tables (for local runs; use Alembic in prod)
@app.on_event("startup")
async def startup_event():
    # create tables (async). ignore duplicate-object errors from previous partial runs.
    async with engine.begin() as conn:
        try:
            await conn.run_sync(Base.metadata.create_all)
        except sa_exc.IntegrityError as e:
            msg = str(getattr(e, "orig", e))
            if "duplicate key value violates unique constraint" in msg or "already exists" in msg:
                logging.warning("Ignored duplicate DDL error during create_all: %s", msg)
            else:
                raise

@app.get("/")
def read_root():
    return {"message": "Clinical KPI Performance Service"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=True)
