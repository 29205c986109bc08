import logging
import time
from datetime import datetime

from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from academy import config
from academy.database import get_db

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

STARTED_AT = time.time()


@router.get("")
async def health(db: AsyncIOMotorDatabase = Depends(get_db)):
    try:
        await db.command("ping")
        database = "connected"
    except Exception as e:
        logger.warning("Health check ping failed: %s", e)
        database = "disconnected"

    return {
        "status": "ok",
        "timestamp": datetime.utcnow(),
        "uptime": round(time.time() - STARTED_AT, 2),
        "environment": config.ENVIRONMENT,
        "database": database,
    }
