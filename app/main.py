"""
AutoConvert - Main FastAPI Application

Watch-folder media converter:
- Watches one folder for newly-arrived media files
- Converts each file with an external tool chosen by extension
- Reports per-batch progress
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger
import sys

from app.utils.config import get_settings
from app.service import build_service
from app.api import health, control


# Configure logging
logger.remove()
logger.add(
    sys.stdout,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
    level=get_settings().log_level
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings = get_settings()
    logger.info(f"Starting {settings.api_title} v{settings.api_version}")

    service = build_service(settings)
    service.restore()
    app.state.service = service
    logger.success("Conversion service started")

    yield

    # Cleanup
    logger.info("Shutting down application...")
    service.shutdown()
    logger.success("Application shut down complete")


# Create FastAPI app
settings = get_settings()
app = FastAPI(
    title=settings.api_title,
    version=settings.api_version,
    description="Watch a folder and convert new media files automatically",
    lifespan=lifespan
)


# Exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler."""
    logger.error(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "detail": str(exc) if settings.log_level == "DEBUG" else "An error occurred"
        }
    )


# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(control.router, tags=["Control"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "AutoConvert",
        "version": settings.api_version,
        "status": "operational",
        "docs": "/docs",
        "health": "/health"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host="127.0.0.1",
        port=settings.api_port,
        log_level=settings.log_level.lower()
    )
