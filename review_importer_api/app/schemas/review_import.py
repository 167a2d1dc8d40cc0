"""
Schemas for review import operations.
"""

from typing import Optional, List, Union
from pydantic import BaseModel, Field


class UploadResponse(BaseModel):
    """Accepted CSV upload."""
    upload_id: str
    total_rows: int
    headers: List[str]
    message: str


class BatchRequest(BaseModel):
    """Request to import the next chunk of an upload."""
    upload_id: str = Field(..., min_length=1, description="Upload ID from the upload call")
    offset: int = Field(default=0, ge=0, description="Data rows already processed")


class ImportErrorItem(BaseModel):
    """A row that could not be imported."""
    row_number: int
    kind: str
    message: str


class BatchProgressResponse(BaseModel):
    """Progress after one batch, or the final summary when complete."""
    complete: bool
    processed: int = 0
    total: Optional[int] = None
    success: int = 0
    updated: int = 0
    error_count: int = 0
    error_list: Optional[List[ImportErrorItem]] = None
    message: str


class ReviewImportSettings(BaseModel):
    """Review importer settings for a store."""
    min_review_length: int
    create_user_accounts: bool
    default_ip_address: str
    auto_approve_reviews: bool
    reviews_are_verified: bool


class ReviewImportSettingsUpdate(BaseModel):
    """Partial settings update; values are sanitized before saving."""
    min_review_length: Optional[Union[int, str]] = None
    create_user_accounts: Optional[Union[bool, str, int]] = None
    default_ip_address: Optional[str] = None
    auto_approve_reviews: Optional[Union[bool, str, int]] = None
    reviews_are_verified: Optional[Union[bool, str, int]] = None
