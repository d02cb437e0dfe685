"""Public interface for the ``statement_ingest`` package.

This module exposes the pipeline entry points, the individual stage functions
and the public models/types as the stable import surface. There is no runtime
logic here, only symbol re-exports.
"""

from .api import inspect_csv, process_batch, process_csv
from .categorization import categorize, categorize_by_rules
from .config import DEFAULT_SETTINGS, IngestSettings
from .duplicates import find_duplicates, similarity
from .errors import EmptyInputError, IngestError, InsufficientColumnsError, NoHeaderFoundError
from .format_detection import detect_format
from .merchants import standardize_merchant
from .models import (
    BankFormatProfile,
    CategoryAnalysis,
    ColumnMapping,
    ColumnMatch,
    DuplicateMatch,
    NormalizedTransaction,
    ProcessingReport,
    RawRow,
    ReportSummary,
    SkippedRow,
    StoredTransaction,
)
from .normalizers import generate_id, parse_amount, parse_date
from .tokenizer import tokenize

__all__ = [
    # Pipeline
    "process_csv",
    "process_batch",
    "inspect_csv",
    # Stages
    "tokenize",
    "detect_format",
    "parse_date",
    "parse_amount",
    "generate_id",
    "categorize",
    "categorize_by_rules",
    "standardize_merchant",
    "find_duplicates",
    "similarity",
    # Config / errors
    "IngestSettings",
    "DEFAULT_SETTINGS",
    "IngestError",
    "EmptyInputError",
    "NoHeaderFoundError",
    "InsufficientColumnsError",
    # Models
    "RawRow",
    "BankFormatProfile",
    "ColumnMatch",
    "ColumnMapping",
    "CategoryAnalysis",
    "NormalizedTransaction",
    "SkippedRow",
    "StoredTransaction",
    "DuplicateMatch",
    "ReportSummary",
    "ProcessingReport",
]
