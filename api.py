"""
SmartFinance FastAPI Application

Main entry point for the SmartFinance API: authentication, multi-device
session tracking and session security analysis.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Common library imports
from common.database import MongoDB
from common.utils import success_response

# App-specific imports
from smartfinance import __version__
from smartfinance.config import settings

# Import routers
from smartfinance.routers import auth_router, devices_router, protected_router

# Import service initialization
from smartfinance.dependencies import (
    get_session_manager,
    get_user_service,
    init_services,
    shutdown_services,
)
from jobs.session_cleanup import SessionCleanupJob

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


# =============================================================================
# Database Instance
# =============================================================================
main_db = MongoDB()


# =============================================================================
# Application Lifespan
# =============================================================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Handles startup and shutdown tasks like database connections,
    service initialization and the periodic session cleanup.
    """
    # Startup
    logger.info("Starting SmartFinance API...")
    settings.validate_required()

    await main_db.connect(
        uri=settings.MONGODB_URI,
        database_name=settings.MONGODB_DATABASE,
    )

    init_services(db=main_db.db, settings=settings)
    await get_user_service().ensure_indexes()
    logger.info("All services initialized successfully")

    cleanup_job = SessionCleanupJob(
        get_session_manager(),
        interval=timedelta(hours=settings.SESSION_CLEANUP_INTERVAL_HOURS),
    )
    cleanup_task = asyncio.create_task(cleanup_job.run_forever(), name="session-cleanup")

    logger.info("SmartFinance API started successfully")

    yield

    # Shutdown
    logger.info("Shutting down SmartFinance API...")
    cleanup_task.cancel()
    await asyncio.gather(cleanup_task, return_exceptions=True)
    await shutdown_services()
    await main_db.disconnect()
    logger.info("SmartFinance API shut down complete")


# =============================================================================
# FastAPI Application
# =============================================================================
app = FastAPI(
    title="SmartFinance API",
    description="Personal finance tracker: authentication and device sessions",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs" if settings.is_development() else None,
    redoc_url="/redoc" if settings.is_development() else None,
)

# =============================================================================
# CORS Middleware
# =============================================================================
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=["*"],
    allow_headers=["*"],
)

# =============================================================================
# Include Routers (all under /api prefix)
# =============================================================================
API_PREFIX = "/api"

app.include_router(auth_router, prefix=API_PREFIX, tags=["Authentication"])
app.include_router(devices_router, prefix=API_PREFIX, tags=["Devices"])
app.include_router(protected_router, prefix=API_PREFIX, tags=["Protected"])


# =============================================================================
# Health Check Endpoint
# =============================================================================
@app.get("/health", tags=["Health"])
async def health():
    """
    Health check endpoint.

    Returns the status of the API and database connection.
    """
    return success_response({
        "status": "ok",
        "version": __version__,
        "database": main_db.is_connected,
    })


# =============================================================================
# Run with Uvicorn
# =============================================================================
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.is_development(),
    )
