"""
FastAPI application entry point.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.router import router as v1_router
from app.config import get_settings
from app.core.importer.cleanup import run_cleanup_task
from app.deps import get_redis, close_redis, get_session_store
from app.schemas.common import HealthResponse, RedisHealthResponse

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown."""
    cleanup_task = asyncio.create_task(run_cleanup_task(
        get_session_store,
        Path(settings.data_dir),
        max_age_seconds=settings.upload_ttl_seconds,
        interval_seconds=settings.cleanup_interval_seconds
    ))
    yield
    cleanup_task.cancel()
    try:
        await cleanup_task
    except asyncio.CancelledError:
        pass
    await close_redis()


app = FastAPI(
    title="Product Reviews Importer API",
    description="Batch import of product reviews from CSV into WooCommerce stores",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(v1_router, prefix="/api/v1")


@app.get("/api/v1/health", response_model=HealthResponse, tags=["health"])
async def health_check():
    """Health check endpoint."""
    return HealthResponse(ok=True)


@app.get("/api/v1/health/redis", response_model=RedisHealthResponse, tags=["health"])
async def health_check_redis():
    """Check Redis connection health."""
    try:
        redis = await get_redis()
        await redis.ping()
        return RedisHealthResponse(ok=True, redis="connected")
    except Exception as e:
        logger.warning(f"Redis health check failed: {str(e)}")
        return RedisHealthResponse(ok=False, redis="disconnected", error=str(e))
