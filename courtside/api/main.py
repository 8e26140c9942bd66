"""
Courtside API Server

FastAPI server for court booking, tournament points and player rankings.
"""

from contextlib import asynccontextmanager
import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn
from slowapi import _rate_limit_exceeded_handler  # type: ignore
from slowapi.errors import RateLimitExceeded  # type: ignore

from courtside.api.routes import router, limiter as routes_limiter
from courtside.database import db
from courtside.database.init_defaults import init_defaults
from courtside.services.expiry_sweeper import get_expiry_sweeper

# Allow log level to be configured via environment variable (default: INFO)
log_level = os.getenv("LOG_LEVEL", "INFO").upper()
numeric_level = getattr(logging, log_level, logging.INFO)
logging.basicConfig(
    level=numeric_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler for startup and shutdown events."""
    logger.info("Starting up Courtside API...")

    # Fallback for tables not yet created by migrations
    try:
        await db.init_database()
        logger.info("Database initialized")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}", exc_info=True)

    try:
        await init_defaults()
    except Exception as e:
        logger.error(f"Failed to initialize defaults: {e}", exc_info=True)

    # Expiry sweeper (booking holds, unpaid seats, stale corrections)
    try:
        get_expiry_sweeper().start()
    except Exception as e:
        logger.error(f"Failed to start expiry sweeper: {e}", exc_info=True)

    yield  # App is running

    logger.info("Shutting down Courtside API...")

    try:
        get_expiry_sweeper().stop()
    except Exception as e:
        logger.error(f"Error stopping expiry sweeper: {e}", exc_info=True)

    try:
        await db.engine.dispose()
    except Exception as e:
        logger.error(f"Error disposing database engine: {e}", exc_info=True)


app = FastAPI(
    title="Courtside API",
    description="Court booking, tournament points and category rankings",
    version="1.0.0",
    lifespan=lifespan,
)

# Setup rate limiter
app.state.limiter = routes_limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS origins configured via ALLOWED_ORIGINS env var
allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(router)


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
