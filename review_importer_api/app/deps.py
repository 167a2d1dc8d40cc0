"""
Dependency injection for FastAPI.
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Dict, Optional
import redis.asyncio as aioredis
from fastapi import HTTPException, status

from app.config import get_settings, get_all_stores, generate_store_id, get_review_import_options
from app.core.woo_client import WooClient
from app.core.wp_client import WPClient
from app.core.importer.coordinator import ImportContext
from app.core.importer.repositories import WooProductRepository, WooUserRepository, WooReviewRepository
from app.core.importer.session_store import UploadSessionStore
from app.core.importer.settings import ImporterSettings


_redis_client: Optional[aioredis.Redis] = None


async def get_redis() -> aioredis.Redis:
    """Get Redis client (singleton) with lazy connection."""
    global _redis_client
    if _redis_client is None:
        settings = get_settings()
        _redis_client = aioredis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=1.0,
            socket_timeout=3.0,
            retry_on_timeout=True,
            health_check_interval=30
        )
    return _redis_client


async def close_redis():
    """Close Redis connection."""
    global _redis_client
    if _redis_client:
        await _redis_client.close()
        _redis_client = None


async def get_session_store() -> UploadSessionStore:
    """Upload session store over the shared Redis client."""
    return UploadSessionStore(await get_redis(), ttl=get_settings().upload_ttl_seconds)


def get_store_by_id(store_id: str) -> Dict:
    """
    Get store configuration by store_id.

    Args:
        store_id: Store ID (slug).

    Returns:
        Store config dict.

    Raises:
        HTTPException: If store not found.
    """
    stores = get_all_stores()

    for store_name, store_config in stores.items():
        if generate_store_id(store_name) == store_id:
            return {
                "name": store_name,
                "id": store_id,
                **store_config
            }

    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Store '{store_id}' not found"
    )


def create_woo_client(store: Dict) -> WooClient:
    """
    Create WooClient from a store config.

    Raises:
        HTTPException: If URL or credentials are missing.
    """
    store_url = store.get("store_url")
    consumer_key = store.get("consumer_key")
    consumer_secret = store.get("consumer_secret")
    wp_username = store.get("wp_username")
    wp_app_password = store.get("wp_app_password")

    if not store_url:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Store URL not configured"
        )

    # Prefer WooCommerce API credentials
    if consumer_key and consumer_secret:
        return WooClient(
            store_url=store_url,
            consumer_key=consumer_key,
            consumer_secret=consumer_secret
        )

    if wp_username and wp_app_password:
        return WooClient(
            store_url=store_url,
            wp_username=wp_username,
            wp_app_password=wp_app_password
        )

    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="Store credentials not configured (need consumer_key/secret or wp_username/app_password)"
    )


def create_wp_client(store: Dict) -> Optional[WPClient]:
    """Create WPClient from a store config, or None without WordPress credentials."""
    store_url = store.get("store_url")
    wp_username = store.get("wp_username")
    wp_app_password = store.get("wp_app_password")

    if not store_url or not wp_username or not wp_app_password:
        return None

    return WPClient(
        store_url=store_url,
        username=wp_username,
        app_password=wp_app_password
    )


def get_importer_settings(store: Dict) -> ImporterSettings:
    """Sanitized review importer settings for a store."""
    return ImporterSettings(**get_review_import_options(store["name"]))


@asynccontextmanager
async def open_import_context(
    store: Dict,
    sessions: UploadSessionStore
) -> AsyncIterator[ImportContext]:
    """
    Build the ImportContext for a store and close its REST clients afterwards.

    Args:
        store: Store config dict (from get_store_by_id)
        sessions: Upload session store
    """
    settings = get_settings()
    woo_client = create_woo_client(store)
    wp_client = create_wp_client(store)

    try:
        yield ImportContext(
            store_id=store["id"],
            settings=get_importer_settings(store),
            products=WooProductRepository(woo_client),
            users=WooUserRepository(wp_client),
            reviews=WooReviewRepository(woo_client, wp_client),
            sessions=sessions,
            data_dir=Path(settings.data_dir),
            batch_size=settings.import_batch_size,
            max_upload_size=settings.max_upload_size,
            timezone=settings.timezone
        )
    finally:
        await woo_client.close()
        if wp_client:
            await wp_client.close()
