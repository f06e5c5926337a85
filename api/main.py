"""
FastAPI application initialization
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from api.routes import health, runs, staging, facts
from api.middleware import RequestContextMiddleware
from core.config import settings
from core.logging import setup_logging
from reconciliation.scheduler import ReconciliationScheduler
import logging

setup_logging()

logger = logging.getLogger(__name__)

scheduler = ReconciliationScheduler()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting order reconciliation API")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Database: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'configured'}")
    scheduler.start()
    yield
    logger.info("Shutting down order reconciliation API")
    scheduler.stop()


app = FastAPI(
    title="Order Reconciliation API",
    description="Run log, quarantine corrections and derived facts for the order reconciliation pipeline",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# Shared with POST /runs so manual runs respect the scheduler's run lock
app.state.scheduler = scheduler

app.add_middleware(RequestContextMiddleware)

app.include_router(health.router)
app.include_router(runs.router)
app.include_router(staging.router)
app.include_router(facts.router)


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Order Reconciliation API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "runs": "/runs",
            "staging": "/staging",
            "facts": "/facts"
        }
    }
