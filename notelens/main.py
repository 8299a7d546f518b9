"""
NoteLens - Main FastAPI Application
Clinical note section parsing and edit-pattern learning service
"""

import logging
from datetime import datetime
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Depends, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from notelens.config import settings
from notelens.exceptions import NoteLensError
from notelens.modules.section_detection import get_section_detector
from notelens.modules.edit_analysis import get_edit_analyzer
from notelens.services.cache_service import RedisCacheService
from notelens.routes import notes as note_routes, edits as edit_routes

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

VERSION = "1.0.0"


# =============================================================================
# Application Lifecycle
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    logger.info("Starting NoteLens application...")
    logger.info(f"Environment: {settings.environment}")

    detector = get_section_detector()
    analyzer = get_edit_analyzer()
    logger.info(
        f"Loaded {len(detector.patterns)} section patterns and {len(analyzer.rules)} edit rules"
    )

    yield

    logger.info("Shutting down NoteLens application...")


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="NoteLens",
    description="Clinical note section parsing and edit-pattern learning",
    version=VERSION,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(note_routes.router)
app.include_router(edit_routes.router)


# =============================================================================
# Health Check Endpoints
# =============================================================================

@app.get("/health", tags=["health"])
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "version": VERSION,
        "environment": settings.environment
    }


@app.get("/health/ready", tags=["health"])
async def readiness_check(cache: Optional[RedisCacheService] = Depends(note_routes.get_parse_cache)):
    """Readiness check; the cache is optional so its state is reported, not required"""
    return {
        "status": "ready",
        "cache": cache.health_check() if cache is not None else {"status": "disabled", "available": False},
        "async_analysis": settings.enable_async_analysis,
        "timestamp": datetime.now().isoformat()
    }


# =============================================================================
# Exception Handlers
# =============================================================================

@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc):
    """Handle HTTP exceptions"""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.detail,
            "timestamp": datetime.now().isoformat()
        }
    )


@app.exception_handler(NoteLensError)
async def notelens_exception_handler(request, exc):
    """Domain errors that escaped a router"""
    logger.warning(f"Unhandled domain error: {exc}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            **exc.to_dict(),
            "timestamp": datetime.now().isoformat()
        }
    )


@app.exception_handler(Exception)
async def general_exception_handler(request, exc):
    """Handle general exceptions"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "detail": str(exc) if settings.debug else "An error occurred",
            "timestamp": datetime.now().isoformat()
        }
    )


# =============================================================================
# Main Entry Point
# =============================================================================

if __name__ == "__main__":
    uvicorn.run(
        "notelens.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
        log_level=settings.log_level.lower()
    )
