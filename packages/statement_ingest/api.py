"""Pipeline entry points.

Public API:
    - :func:`process_csv`: one CSV text → one :class:`ProcessingReport`
    - :func:`process_batch`: several files in order, each seeing the
      transactions produced by the files before it
    - :func:`inspect_csv`: tokenize and detect columns only

Only structural failures (:class:`~statement_ingest.errors.IngestError`) are
caught here; they become the report's ``errors``. Row-level problems become
warnings or skipped rows. Nothing in this module touches the transaction
store; persisting the report is the caller's decision.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import replace
from datetime import date
from decimal import Decimal

from .categorization import Classifier, categorize
from .classifier import build_classifier
from .config import DEFAULT_SETTINGS, IngestSettings
from .duplicates import SnapshotRecord, find_duplicates, validate_snapshot
from .errors import IngestError
from .format_detection import detect_format
from .logging_setup import get_logger, source_context
from .models import (
    ColumnMapping,
    DuplicateMatch,
    NormalizedTransaction,
    ProcessingReport,
    RawRow,
    SkippedRow,
    StoredTransaction,
    TokenizedCSV,
)
from .normalizers import generate_id, parse_amount, parse_date, quantize_money
from .report import assemble_report, failed_report
from .tokenizer import tokenize

_logger = get_logger("statement_ingest.api")

_SAMPLE_ROWS = 5


def inspect_csv(
    text: str, *, settings: IngestSettings = DEFAULT_SETTINGS
) -> tuple[TokenizedCSV, ColumnMapping]:
    """Run the tokenizer and format detector; raises :class:`IngestError`."""

    tokenized = tokenize(text, settings=settings)
    sample = [r for r in tokenized.rows if not r.is_blank()][:_SAMPLE_ROWS]
    mapping = detect_format(tokenized.headers, sample, settings=settings)
    return tokenized, mapping


def _signed_amount(
    row: RawRow, mapping: ColumnMapping
) -> tuple[Decimal, str, list[str]]:
    """Return ``(signed_amount, raw_text, warnings)`` for one row."""

    if not mapping.has_split_amount:
        raw = row.cell(mapping.index_of("amount"))
        parsed = parse_amount(raw, row_number=row.line_number)
        return parsed.amount, raw, parsed.warnings

    debit_raw = row.cell(mapping.index_of("debit"))
    credit_raw = row.cell(mapping.index_of("credit"))
    debit = parse_amount(debit_raw, row_number=row.line_number)
    credit = parse_amount(credit_raw, row_number=row.line_number)
    # Debit columns are outflows whether or not the bank writes a minus sign.
    signed = abs(credit.amount) - abs(debit.amount)
    raw = credit_raw if credit_raw and not debit_raw else (debit_raw or credit_raw)
    return signed, raw, debit.warnings + credit.warnings


def _skip(row: RawRow, reason: str, *suggestions: str) -> SkippedRow:
    _logger.debug("normalize:skip row=%d reason=%s", row.line_number, reason)
    return SkippedRow(
        row_number=row.line_number, data=row.cells, reason=reason, suggestions=suggestions
    )


def _normalize_row(
    row: RawRow,
    mapping: ColumnMapping,
    *,
    settings: IngestSettings,
    classifier: Classifier | None,
    today: date | None,
) -> NormalizedTransaction | SkippedRow:
    date_raw = row.cell(mapping.index_of("date"))
    desc_raw = " ".join(row.cell(mapping.index_of("description")).split())
    amount_cells = (
        [row.cell(mapping.index_of("debit")), row.cell(mapping.index_of("credit"))]
        if mapping.has_split_amount
        else [row.cell(mapping.index_of("amount"))]
    )

    if not date_raw and not desc_raw and not any(amount_cells):
        return _skip(
            row,
            "All key fields are empty",
            "Remove blank or separator lines from the file",
            "Check that the row lines up with the header columns",
        )
    if not date_raw and not any(amount_cells):
        return _skip(
            row,
            "Missing both date and amount",
            "Check whether this is a note, subtotal or continuation line",
            "Verify the column alignment for this row",
        )

    warnings: list[str] = []
    parsed_date = parse_date(
        date_raw, mapping.date_hint, row_number=row.line_number, today=today
    )
    warnings.extend(parsed_date.warnings)
    signed, amount_raw, amount_warnings = _signed_amount(row, mapping)
    warnings.extend(amount_warnings)
    if not any(amount_cells):
        warnings.append(f"Row {row.line_number}: Missing amount, using 0")

    description = desc_raw
    if not description:
        description = (
            f"Transaction on {date_raw}" if date_raw else f"Transaction of {amount_raw}"
        )
    description = description[: settings.description_max_length].rstrip()

    # Direction comes from the unrounded value so sub-cent credits stay income.
    is_income = signed > 0
    merchant_hint = row.cell(mapping.index_of("merchant")) or None
    analysis = categorize(
        description,
        signed,
        merchant_hint,
        classifier=classifier,
        merchant_max_length=settings.merchant_max_length,
    )
    money = quantize_money(signed)
    return NormalizedTransaction(
        id=generate_id(parsed_date.date, money, description),
        date=parsed_date.date,
        amount=abs(money),
        is_income=is_income,
        description=description,
        merchant=analysis.merchant,
        category=analysis.category,
        confidence=analysis.confidence,
        row_number=row.line_number,
        warnings=tuple(warnings),
        tags=analysis.tags + (("ai",) if analysis.source == "ai" else ()),
        reasoning=analysis.reasoning,
    )


def _mark_repeats(
    transactions: Sequence[NormalizedTransaction],
) -> tuple[list[NormalizedTransaction], list[DuplicateMatch]]:
    """Give identical rows within one file their own ids and pair each with the first.

    The first occurrence keeps the plain id so re-imports stay idempotent.
    """

    first_seen: dict[str, NormalizedTransaction] = {}
    counts: dict[str, int] = {}
    out: list[NormalizedTransaction] = []
    repeats: list[DuplicateMatch] = []
    for txn in transactions:
        first = first_seen.get(txn.id)
        if first is None:
            first_seen[txn.id] = txn
            out.append(txn)
            continue
        counts[txn.id] = counts.get(txn.id, 0) + 1
        warning = (
            f"Row {txn.row_number}: identical to row {first.row_number} "
            "(same date, amount and description)"
        )
        repeat = replace(
            txn,
            id=generate_id(
                txn.date, txn.signed_amount, txn.description, occurrence=counts[txn.id]
            ),
            warnings=txn.warnings + (warning,),
        )
        _logger.info(
            "normalize:repeat row=%d first_row=%d", txn.row_number, first.row_number
        )
        out.append(repeat)
        repeats.append(
            DuplicateMatch(
                transaction=repeat,
                existing=StoredTransaction.model_validate(first.to_store_record()),
                confidence=1.0,
                reasons=("exact match", f"repeats row {first.row_number} in this file"),
            )
        )
    return out, repeats


def process_csv(
    text: str,
    *,
    existing: Iterable[SnapshotRecord] = (),
    settings: IngestSettings | None = None,
    classifier: Classifier | None = None,
    source: str | None = None,
    today: date | None = None,
) -> ProcessingReport:
    """Run the whole pipeline over one CSV file's text.

    ``existing`` is the caller's snapshot of stored transactions used for
    duplicate detection. When ``classifier`` is not given and
    ``settings.use_classifier`` is on, an OpenAI classifier is built (and
    skipped when no API key is configured). Never raises for a bad file.
    """

    settings = settings or DEFAULT_SETTINGS
    if classifier is None:
        classifier = build_classifier(settings)

    with source_context(source):
        return _run(
            text,
            existing=existing,
            settings=settings,
            classifier=classifier,
            source=source,
            today=today,
        )


def _run(
    text: str,
    *,
    existing: Iterable[SnapshotRecord],
    settings: IngestSettings,
    classifier: Classifier | None,
    source: str | None,
    today: date | None,
) -> ProcessingReport:
    try:
        tokenized, mapping = inspect_csv(text, settings=settings)
    except IngestError as e:
        _logger.error("process_csv:failed error=%s detail=%s", e.__class__.__name__, e)
        return failed_report(str(e), source=source)

    transactions: list[NormalizedTransaction] = []
    skipped: list[SkippedRow] = []
    warnings: list[str] = []
    for row in tokenized.rows:
        out = _normalize_row(
            row, mapping, settings=settings, classifier=classifier, today=today
        )
        if isinstance(out, SkippedRow):
            skipped.append(out)
        else:
            transactions.append(out)

    transactions, repeats = _mark_repeats(transactions)
    for txn in transactions:
        warnings.extend(txn.warnings)

    snapshot, snapshot_warnings = validate_snapshot(existing)
    warnings.extend(snapshot_warnings)
    duplicates = repeats + find_duplicates(transactions, snapshot, settings=settings)

    report = assemble_report(
        total_rows=len(tokenized.rows),
        transactions=transactions,
        skipped_rows=skipped,
        duplicates=duplicates,
        warnings=warnings,
        column_mapping=mapping,
        delimiter=tokenized.delimiter,
        source=source,
    )
    _logger.info(
        "process_csv:done rows=%d transactions=%d skipped=%d duplicates=%d",
        report.summary.total_rows,
        report.summary.total_transactions,
        report.summary.skipped_rows,
        report.summary.duplicates,
    )
    return report


def process_batch(
    files: Sequence[tuple[str, str]],
    *,
    existing: Iterable[SnapshotRecord] = (),
    settings: IngestSettings | None = None,
    classifier: Classifier | None = None,
    today: date | None = None,
) -> list[ProcessingReport]:
    """Process ``(source, text)`` pairs strictly in order.

    Transactions produced by file N join the duplicate snapshot for every
    later file, so repeats across files in one upload are flagged.
    """

    settings = settings or DEFAULT_SETTINGS
    if classifier is None:
        classifier = build_classifier(settings)
    snapshot: list[StoredTransaction | SnapshotRecord] = list(existing)
    reports: list[ProcessingReport] = []
    for source, text in files:
        report = process_csv(
            text,
            existing=snapshot,
            settings=settings,
            classifier=classifier,
            source=source,
            today=today,
        )
        reports.append(report)
        snapshot.extend(t.to_store_record() for t in report.transactions)
    return reports


__all__ = ["inspect_csv", "process_batch", "process_csv"]
