"""
Review import core module.
"""

from .models import RowErrorKind, ImportRow, RowError, ImportSuccess, ImportFailure, BatchResult
from .csv_reader import CsvReader
from .validator import StructuralValidator
from .review_importer import ReviewImporter
from .coordinator import (
    BatchCoordinator, ImportContext, UploadRejected, SessionExpired, SessionFileMissing
)

__all__ = [
    'RowErrorKind',
    'ImportRow',
    'RowError',
    'ImportSuccess',
    'ImportFailure',
    'BatchResult',
    'CsvReader',
    'StructuralValidator',
    'ReviewImporter',
    'BatchCoordinator',
    'ImportContext',
    'UploadRejected',
    'SessionExpired',
    'SessionFileMissing'
]
