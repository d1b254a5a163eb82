# pyright: reportMissingTypeStubs=false
"""
Clinic Scheduling Backend API

A FastAPI application exposing the availability engine for clinic
scheduling.

Features:
- Weekly availability with per-occurrence and series-wide edits
- Time off and one-time availability
- Timezone-correct bookable slots and booking with conflict detection
- SQLAlchemy ORM persistence
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from api import availability
from core.config import LOG_LEVEL
from core.constants import CORS_ORIGINS
from core.database import create_tables
from core.exceptions import NotFoundError, SchedulingError, SlotConflict

# Configure logging
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()],
)

logger = logging.getLogger(__name__)
logger.info("🏥 Clinic Scheduling API starting...")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    logger.info("🚀 Starting Clinic Scheduling Backend API")

    try:
        create_tables()
        logger.info("✅ Database tables ready")
    except Exception as e:
        logger.exception(f"❌ Failed to create database tables: {e}")
        raise

    yield

    logger.info("🛑 Shutting down Clinic Scheduling Backend API")


# Create FastAPI application
app = FastAPI(
    title="Clinic Scheduling Backend",
    description="Availability resolution and slot computation for clinic scheduling",
    version="1.0.0",
    docs_url="/docs",  # Swagger UI
    redoc_url="/redoc",  # ReDoc
    lifespan=lifespan,
)

# CORS middleware for frontend integration
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(
    availability.router,
    prefix="/api/clinicians",
    tags=["availability"],
    responses={
        400: {"description": "Bad request"},
        404: {"description": "Resource not found"},
        409: {"description": "Conflict"},
        500: {"description": "Internal server error"},
    },
)


@app.get(
    "/",
    summary="Root endpoint",
    description="Returns basic API information",
)
async def root() -> dict[str, str]:
    """Get API information."""
    return {
        "message": "Clinic Scheduling Backend API",
        "version": "1.0.0",
        "status": "running"
    }


@app.get(
    "/health",
    summary="Health check",
    description="Returns the health status of the API",
)
async def health_check() -> dict[str, str]:
    """Check if the API is healthy and responding."""
    return {"status": "healthy"}


def status_code_for(exc: SchedulingError) -> int:
    """HTTP status for a scheduling error."""
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, SlotConflict):
        return 409
    return 400


# Global exception handlers
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions globally."""
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={"code": "InternalError", "detail": "Internal server error", "field": None},
    )


@app.exception_handler(SchedulingError)
async def scheduling_error_handler(request: Request, exc: SchedulingError):
    """Map scheduling errors to 400/404/409 with their code and offending field."""
    status_code = status_code_for(exc)
    if status_code == 409:
        logger.info(f"{exc.code}: {exc.message}")
    else:
        logger.warning(f"{exc.code}: {exc.message}")
    return JSONResponse(status_code=status_code, content=exc.to_dict())


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    """Handle settings that fail model validation."""
    errors = exc.errors()
    field = str(errors[0]["loc"][0]) if errors and errors[0].get("loc") else None
    message = errors[0]["msg"] if errors else str(exc)
    logger.warning(f"ValidationError: {message}")
    return JSONResponse(
        status_code=400,
        content={"code": "ValidationError", "detail": message, "field": field},
    )
