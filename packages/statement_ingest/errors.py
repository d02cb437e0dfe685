"""File-level failures raised by the ingestion stages.

Row-level problems never raise; they surface as warnings or skipped rows in
the :class:`~statement_ingest.models.ProcessingReport`. The exceptions below
mark a CSV as uninterpretable. :func:`statement_ingest.api.process_csv`
catches them and reports the message in ``errors``.
"""

from __future__ import annotations

from collections.abc import Sequence


class IngestError(Exception):
    """Base class for structural CSV failures."""


class EmptyInputError(IngestError):
    def __init__(self, message: str = "CSV file is empty") -> None:
        super().__init__(message)


class NoHeaderFoundError(IngestError):
    def __init__(self, scanned_lines: int) -> None:
        self.scanned_lines = scanned_lines
        super().__init__(f"No valid header row found in first {scanned_lines} lines")


class InsufficientColumnsError(IngestError):
    """Fewer than two of the date/description/amount roles could be mapped."""

    def __init__(self, headers: Sequence[str], found_roles: Sequence[str]) -> None:
        self.headers = tuple(headers)
        self.found_roles = tuple(found_roles)
        available = ", ".join(h for h in self.headers if h) or "(none)"
        found = ", ".join(self.found_roles) or "none"
        super().__init__(
            "Insufficient key columns found (need 2 of date/description/amount, "
            f"found: {found}). Available columns: {available}"
        )


__all__ = [
    "IngestError",
    "EmptyInputError",
    "NoHeaderFoundError",
    "InsufficientColumnsError",
]
