"""Assemble stage outputs into a :class:`~statement_ingest.models.ProcessingReport`."""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal

from .models import (
    ColumnMapping,
    DateRange,
    DuplicateMatch,
    NormalizedTransaction,
    ProcessingReport,
    ReportSummary,
    SkippedRow,
)


def success_rate(transactions: int, total_rows: int) -> float:
    """Percentage of rows that produced a transaction, one decimal place."""

    if total_rows <= 0:
        return 0.0
    return round(transactions / total_rows * 100, 1)


def date_range(transactions: Sequence[NormalizedTransaction]) -> DateRange:
    dates = sorted(t.date for t in transactions)
    if not dates:
        return DateRange()
    return DateRange(start=dates[0], end=dates[-1])


def net_amount(transactions: Sequence[NormalizedTransaction]) -> Decimal:
    return sum((t.signed_amount for t in transactions), Decimal("0.00"))


def assemble_report(
    *,
    total_rows: int,
    transactions: Sequence[NormalizedTransaction],
    skipped_rows: Sequence[SkippedRow],
    duplicates: Sequence[DuplicateMatch] = (),
    warnings: Sequence[str] = (),
    errors: Sequence[str] = (),
    column_mapping: ColumnMapping | None = None,
    delimiter: str | None = None,
    source: str | None = None,
) -> ProcessingReport:
    profile = column_mapping.profile if column_mapping is not None else None
    errs = list(errors)
    if total_rows > 0 and not transactions and not errs:
        errs.append(
            f"No transactions could be parsed from {total_rows} row(s); "
            "check the column mapping and the skipped rows for details"
        )
    summary = ReportSummary(
        total_rows=total_rows,
        total_transactions=len(transactions),
        skipped_rows=len(skipped_rows),
        date_range=date_range(transactions),
        net_amount=net_amount(transactions),
        success_rate=success_rate(len(transactions), total_rows),
        duplicates=len(duplicates),
        bank_name=profile.name if profile else None,
        bank_id=profile.id if profile else None,
        format_confidence=column_mapping.confidence if column_mapping is not None else 0.0,
        delimiter=delimiter,
    )
    return ProcessingReport(
        transactions=tuple(transactions),
        skipped_rows=tuple(skipped_rows),
        duplicates=tuple(duplicates),
        warnings=tuple(warnings),
        errors=tuple(errs),
        summary=summary,
        column_mapping=column_mapping,
        source=source,
    )


def failed_report(error: str, *, source: str | None = None) -> ProcessingReport:
    """An empty, well-formed report for a file that could not be interpreted."""

    return ProcessingReport(errors=(error,), source=source)


__all__ = ["assemble_report", "date_range", "failed_report", "net_amount", "success_rate"]
