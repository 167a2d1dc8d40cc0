"""
Review import API endpoints.

The admin UI uploads a CSV once, then calls /batch repeatedly with
offset = processed from the previous response until complete is true.
"""

import logging
from fastapi import APIRouter, HTTPException, status, UploadFile, File, Depends
from typing import AsyncIterator, Dict

from app.config import get_review_import_options, save_review_import_options
from app.core.auth import get_verified_store
from app.core.importer.coordinator import (
    BatchCoordinator, ImportContext, UploadRejected, SessionExpired, SessionFileMissing
)
from app.core.importer.session_store import UploadSessionStore
from app.core.importer.settings import ImporterSettings
from app.deps import get_session_store, get_importer_settings, open_import_context
from app.schemas.review_import import (
    UploadResponse, BatchRequest, BatchProgressResponse,
    ReviewImportSettings, ReviewImportSettingsUpdate
)

logger = logging.getLogger(__name__)

router = APIRouter()


async def get_import_context(
    store: Dict = Depends(get_verified_store),
    sessions: UploadSessionStore = Depends(get_session_store)
) -> AsyncIterator[ImportContext]:
    """ImportContext for the authenticated store, closed after the response."""
    async with open_import_context(store, sessions) as context:
        yield context


@router.post("/upload", response_model=UploadResponse)
async def upload_csv(
    store_id: str,
    file: UploadFile = File(...),
    context: ImportContext = Depends(get_import_context)
):
    """
    Upload and validate a review CSV.
    Requires X-Store-Key header.
    """
    content = await file.read()

    try:
        result = await BatchCoordinator(context).create_upload(file.filename, content)
    except UploadRejected as e:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE if e.too_large else status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    return UploadResponse(
        **result,
        message=f"File uploaded successfully. {result['total_rows']} rows found."
    )


@router.post("/batch", response_model=BatchProgressResponse)
async def import_batch(
    store_id: str,
    request: BatchRequest,
    context: ImportContext = Depends(get_import_context)
):
    """
    Import the next chunk of an uploaded CSV.
    Requires X-Store-Key header.
    """
    try:
        result = await BatchCoordinator(context).import_batch(request.upload_id, request.offset)
    except (SessionExpired, SessionFileMissing) as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )

    return BatchProgressResponse(**result)


@router.get("/settings", response_model=ReviewImportSettings)
async def get_import_settings(
    store_id: str,
    store: Dict = Depends(get_verified_store)
):
    """Get review importer settings for a store."""
    return ReviewImportSettings(**get_importer_settings(store).model_dump())


@router.put("/settings", response_model=ReviewImportSettings)
async def update_import_settings(
    store_id: str,
    request: ReviewImportSettingsUpdate,
    store: Dict = Depends(get_verified_store)
):
    """Update review importer settings; unset fields keep their current value."""
    current = get_review_import_options(store["name"])
    merged = {**current, **request.model_dump(exclude_unset=True)}
    settings = ImporterSettings(**merged)

    try:
        save_review_import_options(store["name"], settings.model_dump())
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )

    logger.info(f"Updated review import settings for store {store_id}")
    return ReviewImportSettings(**settings.model_dump())
