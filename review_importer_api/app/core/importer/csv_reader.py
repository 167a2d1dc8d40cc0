"""
CSV reader for review imports.

Streams the uploaded file on every call (no handle is kept open), so header
parsing, counting and batched reads can be interleaved freely.
"""

import csv
import logging
from contextlib import closing
from pathlib import Path
from typing import Iterator, List, Optional

from app.core.importer.models import ImportRow

logger = logging.getLogger(__name__)


# CSV column name -> ImportRow attribute
COLUMN_MAP = {
    "SKU": "product_sku",
    "Author Name": "author_name",
    "Author Email": "author_email",
    "Author IP": "author_ip",
    "Review Date": "review_date",
    "Review Text": "review_text",
    "Review Stars": "review_stars",
}

REQUIRED_COLUMNS = ["SKU", "Author Name", "Review Text", "Review Stars"]

READ_ERRORS = (OSError, UnicodeDecodeError, csv.Error)


class CsvReader:
    """Reads review rows from a CSV file by offset/limit."""

    def __init__(self, file_path: str):
        self.file_path = file_path
        self.headers: List[str] = []
        self._total_rows: Optional[int] = None

    def _records(self) -> Iterator[List[str]]:
        """Yield raw CSV records, header included. utf-8-sig drops a leading BOM."""
        with open(self.file_path, "r", encoding="utf-8-sig", newline="") as f:
            yield from csv.reader(f)

    def _exists(self) -> bool:
        return Path(self.file_path).is_file()

    def parse_headers(self) -> Optional[List[str]]:
        """
        Parse the header row.

        Returns:
            Trimmed column names, or None if the file is missing, unreadable or empty.
        """
        if not self._exists():
            return None

        try:
            with closing(self._records()) as records:
                first = next(records, None)
        except READ_ERRORS as e:
            logger.warning(f"Unable to read CSV headers from {self.file_path}: {e}")
            return None

        if not first:
            return None

        self.headers = [h.strip() for h in first]
        self._total_rows = None
        return self.headers

    def total_row_count(self) -> int:
        """Count data rows (header excluded). Cached per instance; 0 on failure."""
        if self._total_rows is not None:
            return self._total_rows

        if not self._exists():
            return 0

        count = 0
        try:
            with closing(self._records()) as records:
                next(records, None)
                for _ in records:
                    count += 1
        except READ_ERRORS as e:
            logger.warning(f"Unable to count CSV rows in {self.file_path}: {e}")
            return 0

        self._total_rows = count
        return count

    def get_batch(self, offset: int, limit: int) -> List[ImportRow]:
        """
        Read up to `limit` non-empty rows after skipping `offset` data records.

        Blank records (a single empty cell) are skipped without counting
        toward the batch, but they still advance the cursor.

        Args:
            offset: Data records to skip (0-based, header excluded)
            limit: Maximum rows to return

        Returns:
            ImportRow list in file order
        """
        rows: List[ImportRow] = []

        if not self.headers:
            self.parse_headers()

        if not self.headers or not self._exists():
            return rows

        try:
            with closing(self._records()) as records:
                next(records, None)
                for index, record in enumerate(records):
                    if len(rows) >= limit:
                        break
                    if index < offset:
                        continue
                    if not record or (len(record) == 1 and record[0] == ""):
                        continue
                    rows.append(self._normalize(record, index + 2))
        except READ_ERRORS as e:
            logger.error(f"Error reading CSV batch at offset {offset} from {self.file_path}: {e}")

        return rows

    def _normalize(self, record: List[str], row_number: int) -> ImportRow:
        """Map a raw record onto ImportRow fields by header name."""
        row = ImportRow(row_number=row_number)
        for column, attr in COLUMN_MAP.items():
            if column not in self.headers:
                continue
            position = self.headers.index(column)
            if position < len(record):
                setattr(row, attr, record[position].strip())
        return row
