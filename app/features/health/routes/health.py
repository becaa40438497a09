import time

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.platform.db.base import utcnow
from app.platform.db.session import get_db
from app.platform.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()

STARTED_AT = time.monotonic()


@router.get("/health", tags=["health"])
async def health_check(db: AsyncSession = Depends(get_db)):
    try:
        await db.execute(text("SELECT 1"))
        database = "connected"
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"Health check could not reach the database: {e}")
        database = "disconnected"

    return {
        "status": "ok" if database == "connected" else "degraded",
        "timestamp": utcnow().isoformat(),
        "database": database,
        "uptime": round(time.monotonic() - STARTED_AT, 3),
    }
