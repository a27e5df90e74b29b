"""
Recruitment Dashboard Reconciliation API - Main Application Entry Point

This module initializes the FastAPI application with:
- Logging configured from settings
- Key-value storage lifecycle (Redis)
- Prometheus metrics middleware
- CORS middleware for frontend communication
- API router registration

Architecture:
    FastAPI App
    ├── Lifespan Management (startup/shutdown)
    ├── CORS Middleware (localhost:3000)
    ├── Prometheus Middleware (/metrics)
    └── API Router
        ├── /reconcile - Job/company/application associations
        ├── /stats - Dashboard, tier and admin statistics
        └── /messages - Employer conversations and unread counters
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api import api_router
from app.config import get_settings
from app.middleware.metrics import setup_metrics
from app.services.storage import get_storage

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifecycle events.

    Startup:
        1. Create the storage client and report its health

    Shutdown:
        1. Close the Redis connection

    Yields:
        Control to the application during its runtime
    """
    storage = await get_storage()
    if not await storage.health_check():
        logger.warning("Key-value storage unavailable; conversations will not persist")
    yield
    await storage.close()


app = FastAPI(
    title="Recruitment Dashboard Reconciliation API",
    description="Entity reconciliation, dashboard metrics and employer conversations",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_metrics(app)

app.include_router(api_router)


@app.get("/health")
async def health_check():
    storage = await get_storage()
    return {
        "status": "healthy",
        "storage": "up" if await storage.health_check() else "down",
    }
