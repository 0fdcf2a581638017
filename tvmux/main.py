"""
TVMux Refresh Service - FastAPI Backend

Hosts the scheduled refresh trigger that aggregates channels, probes stream
health and publishes the result to the cache.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from tvmux.config import get_settings
from tvmux.services.cache import get_cache
from tvmux.routers import refresh

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    logger.info("Starting TVMux refresh service...")

    # Initialize cache database
    await get_cache()
    logger.info("Cache initialized")

    yield

    logger.info("Shutting down TVMux refresh service...")


# Create FastAPI app
settings = get_settings()
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Aggregates IPTV channels, verifies streams and publishes catalogs",
    lifespan=lifespan
)

# Add rate limiter
app.state.limiter = refresh.limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Include routers
app.include_router(refresh.router)


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": settings.app_version}


# Error handlers
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "tvmux.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
