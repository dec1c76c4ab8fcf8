"""
FastAPI application entry point for the Funnel Guard API.

Configures logging and CORS, registers the API routers, and manages the
optional database pool. Without FUNNEL_GUARD_DATABASE_URL the service starts
in stateless mode: POST /diagnosis/run works, storage routes answer 503.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import asyncpg
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from funnel_guard import __version__
from funnel_guard.api import api_router
from funnel_guard.core.config import get_settings
from funnel_guard.core.database import close_db, init_db, is_db_configured
from funnel_guard.services.repository import ensure_schema

# Configure logging
logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup and shutdown of the database pool.

    On startup:
        - Initialize the pool and schema when a database is configured
    On shutdown:
        - Close the pool
    """
    logger.info("Funnel Guard API starting")

    if is_db_configured():
        try:
            await init_db()
            await ensure_schema()
            logger.info("Database connection pool initialized")
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Failed to initialize database: {e}")
            # Continue startup; stateless diagnosis does not need the database
    else:
        logger.info("No database configured, running in stateless mode")

    yield

    logger.info("Funnel Guard API shutting down")
    await close_db()


# Create FastAPI application
app = FastAPI(
    title="Funnel Guard API",
    version=__version__,
    description=(
        "Detects conversion breaks in marketing funnels and ranks the "
        "recorded changes that most likely caused them."
    ),
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.get("/health")
async def health_check():
    """
    Liveness probe.

    Returns:
        Dict with status 'healthy' and whether storage is configured
    """
    return {"status": "healthy", "database": is_db_configured()}


@app.get("/")
async def root():
    """
    Service name, version and documentation links.

    Returns:
        Dict describing the service
    """
    return {
        "name": "Funnel Guard API",
        "version": __version__,
        "docs": "/docs",
        "openapi": "/openapi.json",
    }


# Run with uvicorn when executed directly
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "funnel_guard.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
