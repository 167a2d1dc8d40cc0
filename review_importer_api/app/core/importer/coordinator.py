"""
Batch coordinator - drives an uploaded CSV through the importer one chunk
per call.

Upload -> Validated -> Importing(offset) -> Complete. The caller supplies the
offset on every call (the `processed` value from the previous response); no
next-offset is tracked server-side and no lock is taken per upload.
"""

import logging
import secrets
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Any, List

from app.core.importer.csv_reader import CsvReader
from app.core.importer.validator import StructuralValidator
from app.core.importer.review_importer import ReviewImporter
from app.core.importer.repositories import ProductRepository, UserRepository, ReviewRepository
from app.core.importer.session_store import UploadSessionStore
from app.core.importer.settings import ImporterSettings
from app.core.importer.models import ImportProgress, ImportRow

logger = logging.getLogger(__name__)


DEFAULT_BATCH_SIZE = 50
MAX_UPLOAD_SIZE = 10 * 1024 * 1024


class UploadRejected(Exception):
    """Uploaded file failed checks; no session was created."""

    def __init__(self, message: str, errors: List[str] = None, too_large: bool = False):
        super().__init__(message)
        self.errors = errors or [message]
        self.too_large = too_large


class SessionExpired(Exception):
    """Upload id is unknown or its session expired."""


class SessionFileMissing(Exception):
    """Session exists but its CSV file is gone."""


@dataclass
class ImportContext:
    """Everything one import run needs, built once per request."""
    store_id: str
    settings: ImporterSettings
    products: ProductRepository
    users: UserRepository
    reviews: ReviewRepository
    sessions: UploadSessionStore
    data_dir: Path
    batch_size: int = DEFAULT_BATCH_SIZE
    max_upload_size: int = MAX_UPLOAD_SIZE
    timezone: str = "UTC"


def completion_message(success: int, updated: int, error_count: int) -> str:
    message = f"Import complete! Created {success} new reviews, updated {updated} existing reviews."
    if error_count > 0:
        message += f" {error_count} errors occurred."
    return message


def _records_consumed(offset: int, batch: List[ImportRow]) -> int:
    """Data records read for this batch, counting blank lines skipped inside it."""
    return batch[-1].row_number - 1 - offset


class BatchCoordinator:
    """Upload validation and resumable chunked import for one store."""

    def __init__(self, context: ImportContext):
        self.context = context
        self.importer = ReviewImporter(
            settings=context.settings,
            products=context.products,
            users=context.users,
            reviews=context.reviews,
            timezone=context.timezone
        )

    def _upload_dir(self) -> Path:
        upload_dir = self.context.data_dir / self.context.store_id
        upload_dir.mkdir(parents=True, exist_ok=True)
        return upload_dir

    async def create_upload(self, filename: str, content: bytes) -> Dict[str, Any]:
        """
        Store and validate an uploaded CSV, then open a session for it.

        Returns:
            {"upload_id", "total_rows", "headers"}

        Raises:
            UploadRejected: Wrong extension, empty, too large or structurally invalid
        """
        if Path(filename or "").suffix.lower() != ".csv":
            raise UploadRejected("Invalid file type. Only CSV files are allowed.")

        if not content:
            raise UploadRejected("No file uploaded.")

        if len(content) > self.context.max_upload_size:
            limit_mb = self.context.max_upload_size / (1024 * 1024)
            raise UploadRejected(f"File too large. Maximum size is {limit_mb:.0f}MB.", too_large=True)

        file_path = self._upload_dir() / f"import_{int(time.time())}_{secrets.token_hex(4)}.csv"
        file_path.write_bytes(content)

        reader = CsvReader(str(file_path))
        headers = reader.parse_headers()
        validation = StructuralValidator(reader).validate()

        if headers is None or not validation["valid"]:
            file_path.unlink(missing_ok=True)
            errors = validation["errors"] or ["Failed to read CSV file."]
            logger.info(f"Rejected upload '{filename}' for store {self.context.store_id}: {errors}")
            raise UploadRejected(" ".join(errors), errors=errors)

        session = await self.context.sessions.create_session(
            store_id=self.context.store_id,
            file_path=str(file_path),
            total_rows=reader.total_row_count(),
            headers=headers
        )

        logger.info(
            f"Upload {session.upload_id} accepted for store {self.context.store_id}: "
            f"{session.total_rows} rows"
        )
        return {
            "upload_id": session.upload_id,
            "total_rows": session.total_rows,
            "headers": session.headers
        }

    async def import_batch(self, upload_id: str, offset: int) -> Dict[str, Any]:
        """
        Import one chunk starting at `offset`.

        Returns:
            Progress payload; `complete` is True once the file is exhausted

        Raises:
            SessionExpired: Unknown or expired upload id
            SessionFileMissing: CSV file no longer on disk
        """
        store_id = self.context.store_id
        sessions = self.context.sessions

        session = await sessions.get_session(store_id, upload_id)
        if session is None:
            raise SessionExpired("Upload session expired. Please upload the file again.")

        if not Path(session.file_path).is_file():
            await sessions.delete_session(store_id, upload_id)
            raise SessionFileMissing("CSV file not found.")

        batch = CsvReader(session.file_path).get_batch(offset, self.context.batch_size)

        if not batch:
            return await self._complete(upload_id, session.file_path)

        results = await self.importer.import_reviews(batch)

        progress = await sessions.get_progress(store_id, upload_id) or ImportProgress()
        progress.merge(_records_consumed(offset, batch), results)
        await sessions.save_progress(store_id, upload_id, progress)

        logger.info(
            f"Upload {upload_id}: rows {batch[0].row_number}-{batch[-1].row_number} done "
            f"(+{results.success_count} created, +{results.updated_count} updated, "
            f"{len(results.errors)} errors)"
        )

        return {
            "complete": False,
            "processed": progress.processed,
            "total": session.total_rows,
            "success": progress.success,
            "updated": progress.updated,
            "error_count": len(progress.errors),
            "message": f"Processed {progress.processed} of {session.total_rows} rows..."
        }

    async def _complete(self, upload_id: str, file_path: str) -> Dict[str, Any]:
        store_id = self.context.store_id
        progress = await self.context.sessions.get_progress(store_id, upload_id) or ImportProgress()

        Path(file_path).unlink(missing_ok=True)
        await self.context.sessions.delete_session(store_id, upload_id)

        error_count = len(progress.errors)
        logger.info(
            f"Upload {upload_id} complete: {progress.success} created, "
            f"{progress.updated} updated, {error_count} errors"
        )
        return {
            "complete": True,
            "processed": progress.processed,
            "success": progress.success,
            "updated": progress.updated,
            "error_count": error_count,
            "error_list": progress.errors,
            "message": completion_message(progress.success, progress.updated, error_count)
        }
