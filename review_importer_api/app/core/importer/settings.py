"""
Per-store review importer settings.
"""

import socket
from typing import Any

from pydantic import BaseModel, Field, field_validator

from app.core.importer.normalizer import absint, is_valid_ip


DEFAULT_MIN_REVIEW_LENGTH = 10

_TRUE_VALUES = {"1", "true", "on", "yes"}


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in _TRUE_VALUES


def get_server_ip() -> str:
    """Best-effort address of this host; loopback if it cannot be resolved."""
    try:
        return socket.gethostbyname(socket.gethostname())
    except OSError:
        return "127.0.0.1"


class ImporterSettings(BaseModel):
    """Importer options, read-only for the duration of a run."""
    min_review_length: int = Field(default=DEFAULT_MIN_REVIEW_LENGTH, description="Minimum review text length")
    create_user_accounts: bool = Field(default=False, description="Create customer accounts for unknown emails")
    default_ip_address: str = Field(default="", description="IP used when a row has none (blank = server IP)")
    auto_approve_reviews: bool = Field(default=True, description="Publish new reviews immediately")
    reviews_are_verified: bool = Field(default=False, description="Mark new reviews as verified purchases")

    @field_validator("min_review_length", mode="before")
    @classmethod
    def _sanitize_min_length(cls, value):
        return max(1, absint(value))

    @field_validator("create_user_accounts", "auto_approve_reviews", "reviews_are_verified", mode="before")
    @classmethod
    def _sanitize_boolean(cls, value):
        return _to_bool(value)

    @field_validator("default_ip_address", mode="before")
    @classmethod
    def _sanitize_ip(cls, value):
        ip = str(value or "").strip()
        return ip if ip and is_valid_ip(ip) else ""
