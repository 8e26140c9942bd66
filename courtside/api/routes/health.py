"""Health check route."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from courtside.database.db import get_db_session
from courtside.models.schemas import HealthResponse
from courtside.services.expiry_sweeper import get_expiry_sweeper

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/health", response_model=HealthResponse)
async def health_check(session: AsyncSession = Depends(get_db_session)):
    """
    Health check endpoint.

    Returns:
        dict: Service status, database reachability and sweeper state
    """
    sweeper = "running" if get_expiry_sweeper().running else "stopped"
    try:
        await session.execute(text("SELECT 1"))
        return {
            "status": "healthy",
            "database": "ok",
            "sweeper": sweeper,
            "message": "API is running",
        }
    except Exception as e:
        logger.warning(f"Health check database query failed: {e}")
        return {
            "status": "unhealthy",
            "database": "unavailable",
            "sweeper": sweeper,
            "message": f"Error: {str(e)}",
        }
