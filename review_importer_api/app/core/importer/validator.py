"""
Structural validation of an uploaded review CSV.
"""

from typing import Dict, Any, List

from app.core.importer.csv_reader import CsvReader, REQUIRED_COLUMNS


class StructuralValidator:
    """Checks headers and row count before any import is attempted."""

    def __init__(self, reader: CsvReader):
        self.reader = reader

    def validate(self) -> Dict[str, Any]:
        """
        Validate CSV structure.

        Returns:
            {"valid": bool, "errors": [str]} with every applicable message
        """
        errors: List[str] = []

        if not self.reader.headers and self.reader.parse_headers() is None:
            return {"valid": False, "errors": ["Unable to read CSV file."]}

        missing = [c for c in REQUIRED_COLUMNS if c not in self.reader.headers]
        if missing:
            errors.append(f"Missing required columns: {', '.join(missing)}")

        if self.reader.total_row_count() == 0:
            errors.append("CSV file contains no data rows.")

        return {"valid": not errors, "errors": errors}
