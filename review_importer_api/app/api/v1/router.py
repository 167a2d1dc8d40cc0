"""
Main API router for v1.
"""

from fastapi import APIRouter
from app.api.v1 import review_import

router = APIRouter()

router.include_router(review_import.router, prefix="/stores/{store_id}/review-import", tags=["review-import"])
