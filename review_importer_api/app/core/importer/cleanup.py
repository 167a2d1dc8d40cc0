"""
Cleanup task for abandoned review-import CSV files.
"""

import asyncio
import logging
import time
from pathlib import Path
from typing import Optional

from app.core.importer.session_store import UploadSessionStore

logger = logging.getLogger(__name__)


async def cleanup_stale_uploads(
    sessions: UploadSessionStore,
    data_dir: Path,
    max_age_seconds: int,
    now: Optional[float] = None
) -> int:
    """
    Delete uploaded CSVs older than `max_age_seconds` that no live session references.

    Args:
        sessions: Upload session store
        data_dir: Base directory holding <store_id>/import_*.csv
        max_age_seconds: Age after which an unreferenced file is removed
        now: Current epoch time (tests)

    Returns:
        Number of files deleted
    """
    if not data_dir.is_dir():
        return 0

    now = now if now is not None else time.time()
    active = {str(Path(p)) for p in await sessions.active_file_paths()}
    deleted_count = 0

    for csv_file in data_dir.glob("*/import_*.csv"):
        if str(csv_file) in active:
            continue
        try:
            if now - csv_file.stat().st_mtime < max_age_seconds:
                continue
            csv_file.unlink()
            deleted_count += 1
        except OSError as e:
            logger.warning(f"Failed to delete stale upload {csv_file}: {str(e)}")

    if deleted_count > 0:
        logger.info(f"Cleaned up {deleted_count} stale review import files")

    return deleted_count


async def run_cleanup_task(
    get_sessions,
    data_dir: Path,
    max_age_seconds: int,
    interval_seconds: int = 3600
):
    """
    Run cleanup periodically until cancelled.

    Args:
        get_sessions: Async callable returning an UploadSessionStore
        data_dir: Base data directory for uploaded files
        max_age_seconds: Upload TTL
        interval_seconds: Interval between cleanup runs (default: 1 hour)
    """
    logger.info(f"Starting review import cleanup task (interval: {interval_seconds}s)")

    # Let Redis come up before the first run
    await asyncio.sleep(10)

    while True:
        try:
            sessions = await get_sessions()
            await cleanup_stale_uploads(sessions, data_dir, max_age_seconds)
        except asyncio.CancelledError:
            logger.info("Cleanup task cancelled")
            raise
        except Exception as e:
            logger.error(f"Error in cleanup task loop: {str(e)}", exc_info=True)

        await asyncio.sleep(interval_seconds)
