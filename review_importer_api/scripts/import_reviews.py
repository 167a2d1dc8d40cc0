#!/usr/bin/env python3
"""
Import a review CSV into a store from the command line.

Runs the same upload + batch cycle as the admin UI, in-process, until the
file is fully consumed.

Usage:
    python scripts/import_reviews.py --store my-store --file reviews.csv [--batch-size 50]
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add parent directory to path to import app modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from fastapi import HTTPException

from app.core.importer.coordinator import BatchCoordinator, UploadRejected, SessionExpired, SessionFileMissing
from app.deps import get_store_by_id, get_session_store, open_import_context, close_redis


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Import product reviews from a CSV file")
    parser.add_argument("--store", required=True, help="Store ID (slug of the store name)")
    parser.add_argument("--file", required=True, type=Path, help="Path to the review CSV")
    parser.add_argument("--batch-size", type=int, default=None, help="Rows per batch (default from settings)")
    return parser.parse_args(argv)


async def run_import(store_id: str, csv_path: Path, batch_size: int = None) -> int:
    """
    Upload and import a CSV to completion.

    Returns:
        Process exit code
    """
    store = get_store_by_id(store_id)
    sessions = await get_session_store()

    async with open_import_context(store, sessions) as context:
        if batch_size:
            context.batch_size = batch_size
        coordinator = BatchCoordinator(context)

        upload = await coordinator.create_upload(csv_path.name, csv_path.read_bytes())
        print(f"Uploaded {csv_path.name}: {upload['total_rows']} rows")

        offset = 0
        while True:
            result = await coordinator.import_batch(upload["upload_id"], offset)
            print(result["message"])
            if result["complete"]:
                break
            offset = result["processed"]

    for error in result["error_list"]:
        print(f"  Row {error['row_number']}: {error['message']}")

    return 0 if result["error_count"] == 0 else 2


def main(argv=None):
    args = parse_args(argv)

    if not args.file.is_file():
        print(f"❌ File not found: {args.file}", file=sys.stderr)
        sys.exit(1)

    async def _run():
        try:
            return await run_import(args.store, args.file, args.batch_size)
        finally:
            await close_redis()

    try:
        exit_code = asyncio.run(_run())
    except HTTPException as e:
        print(f"❌ Error: {e.detail}", file=sys.stderr)
        sys.exit(1)
    except (UploadRejected, SessionExpired, SessionFileMissing) as e:
        print(f"❌ Error: {str(e)}", file=sys.stderr)
        sys.exit(1)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
