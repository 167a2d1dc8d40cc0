"""
Review import data models.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Optional, List, Dict, Any, Union


class RowErrorKind(str, Enum):
    """Row-scoped error kinds."""
    MISSING_FIELD = "missing_field"
    INVALID_RATING = "invalid_rating"
    PRODUCT_NOT_FOUND = "product_not_found"
    INVALID_EMAIL = "invalid_email"
    REVIEW_TOO_SHORT = "review_too_short"
    COMMENT_INSERT_FAILED = "comment_insert_failed"


@dataclass
class ImportRow:
    """One normalized CSV data line."""
    row_number: int  # 1-based CSV line, header is row 1
    product_sku: Optional[str] = None
    author_name: Optional[str] = None
    author_email: Optional[str] = None
    author_ip: Optional[str] = None
    review_date: Optional[str] = None
    review_text: Optional[str] = None
    review_stars: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class RowError:
    """Structured row failure."""
    kind: RowErrorKind
    message: str
    context: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ImportSuccess:
    """Row imported; action is 'created' or 'updated'."""
    record_id: int
    action: str

    @property
    def ok(self) -> bool:
        return True


@dataclass
class ImportFailure:
    """Row rejected or failed to write."""
    error: RowError

    @property
    def ok(self) -> bool:
        return False


ImportOutcome = Union[ImportSuccess, ImportFailure]


@dataclass
class BatchResult:
    """Aggregate outcome of one batch of rows."""
    success_count: int = 0
    updated_count: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)

    def add_error(self, index: int, row: ImportRow, error: RowError):
        self.errors.append({
            "index": index,
            "row_number": row.row_number,
            "kind": error.kind.value,
            "message": error.message,
            "row_data": row.to_dict(),
        })


@dataclass
class ProductRef:
    """Product as returned by a SKU lookup."""
    id: int
    is_variation: bool = False
    parent_id: int = 0


@dataclass
class UserRef:
    """Store user account."""
    id: int
    email: str
    display_name: str = ""
    username: str = ""


@dataclass
class ReviewRef:
    """Existing review found during duplicate detection."""
    id: int
    product_id: int
    author_email: str
    status: str = ""


@dataclass
class NewReview:
    """Review to insert."""
    product_id: int
    author_name: str
    author_email: str
    author_ip: str
    content: str
    date: str  # %Y-%m-%d %H:%M:%S, no timezone
    rating: int
    approved: bool
    verified: bool
    user_id: int = 0


@dataclass
class UploadSession:
    """Uploaded CSV awaiting batch import."""
    upload_id: str
    store_id: str
    file_path: str
    total_rows: int
    headers: List[str]
    uploaded_at: str


@dataclass
class ImportProgress:
    """Running counters for an upload across batch calls."""
    processed: int = 0
    success: int = 0
    updated: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)

    def merge(self, consumed: int, result: BatchResult):
        """Fold one batch into the running totals."""
        self.processed += consumed
        self.success += result.success_count
        self.updated += result.updated_count
        for error in result.errors:
            self.errors.append({
                "row_number": error["row_number"],
                "kind": error["kind"],
                "message": error["message"],
            })

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ImportProgress":
        return cls(
            processed=int(data.get("processed", 0)),
            success=int(data.get("success", 0)),
            updated=int(data.get("updated", 0)),
            errors=list(data.get("errors", [])),
        )
