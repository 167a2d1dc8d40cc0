"""
Store key authentication for store-scoped routes.
"""

import secrets
from typing import Dict, Optional
from fastapi import HTTPException, status, Header
from app.deps import get_store_by_id


def verify_store_key(store_id: str, store_key: Optional[str] = None) -> Dict:
    """
    Check the X-Store-Key value against the store's configured api_key.

    Args:
        store_id: Store ID from path
        store_key: Value of the X-Store-Key header

    Returns:
        Store config dict

    Raises:
        HTTPException: 403 missing/invalid key, 404 unknown store, 500 store has no key
    """
    if not store_key:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Missing X-Store-Key header",
            headers={"X-Error-Code": "missing_store_key"}
        )

    store = get_store_by_id(store_id)

    store_api_key = store.get("api_key")
    if not store_api_key:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Store '{store_id}' does not have an API key configured.",
            headers={"X-Error-Code": "missing_store_key"}
        )

    # Constant-time comparison
    if not secrets.compare_digest(store_key, store_api_key):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid X-Store-Key",
            headers={"X-Error-Code": "invalid_store_key"}
        )

    return store


async def get_verified_store(
    store_id: str,
    x_store_key: Optional[str] = Header(None, alias="X-Store-Key")
) -> Dict:
    """
    FastAPI dependency resolving the authenticated store.

    Usage:
        @router.post("/upload")
        async def upload(store: Dict = Depends(get_verified_store)):
            ...
    """
    return verify_store_key(store_id, x_store_key)
