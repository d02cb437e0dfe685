"""Fuzzy duplicate detection against a snapshot of stored transactions.

Detection is advisory: it pairs new transactions with stored records and
never removes anything. The caller decides whether to merge, ignore or block.

Scoring for a pair that is not an exact match::

    same date                      +0.4   | within ``date_window_days``  +0.2
    same signed amount (±0.01)     +0.4   | within ``amount_tolerance``   +0.2
    description similarity ≥ 0.9   +0.3   | ≥ 0.7                        +0.2
    merchant similarity ≥ 0.8      +0.1

Confidence is ``min(sum, 1.0)`` and a pair is reported when it reaches
``duplicate_threshold``. An exact match (same date, amount and description)
is always 1.0 with the single reason ``"exact match"``.

Description similarity compares the raw text (whitespace-collapsed, case
kept) since bank descriptions are verbatim exports; merchant labels are
display names and compare case-insensitively.

Amounts compare signed, so a refund never matches the purchase it reverses.
A stored record with no ``is_income`` and a non-negative amount has an
unknown direction and compares by magnitude.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from datetime import date
from decimal import Decimal
from typing import Any

from pydantic import ValidationError

from .config import DEFAULT_SETTINGS, IngestSettings
from .logging_setup import get_logger
from .models import DuplicateMatch, NormalizedTransaction, StoredTransaction

_logger = get_logger("statement_ingest.duplicates")

_SAME_AMOUNT_EPSILON = Decimal("0.01")

type SnapshotRecord = StoredTransaction | Mapping[str, Any]


def levenshtein(a: str, b: str) -> int:
    """Edit distance with unit insert/delete/substitute costs."""

    if a == b:
        return 0
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)
    prev = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        cur = [i]
        for j, cb in enumerate(b, start=1):
            cur.append(min(prev[j] + 1, cur[j - 1] + 1, prev[j - 1] + (ca != cb)))
        prev = cur
    return prev[-1]


def similarity(a: str, b: str) -> float:
    """``1 - distance / max(len)``; two empty strings are identical."""

    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein(a, b) / longest


def _collapse(s: str | None) -> str:
    return " ".join((s or "").split())


def validate_snapshot(
    records: Iterable[SnapshotRecord],
) -> tuple[list[StoredTransaction], list[str]]:
    """Validate caller-supplied store records.

    Malformed records are skipped with a warning instead of aborting the pass.
    """

    valid: list[StoredTransaction] = []
    warnings: list[str] = []
    for pos, rec in enumerate(records):
        if isinstance(rec, StoredTransaction):
            valid.append(rec)
            continue
        try:
            valid.append(StoredTransaction.model_validate(rec))
        except ValidationError as e:
            ident = rec.get("id") if isinstance(rec, Mapping) else None
            fields = ",".join(str(err["loc"][0]) for err in e.errors() if err.get("loc"))
            _logger.warning(
                "duplicates:invalid_record position=%d id=%r fields=%s", pos, ident, fields
            )
            warnings.append(
                f"Skipped stored transaction {ident if ident is not None else pos}: "
                f"invalid fields ({fields or 'record'})"
            )
    return valid, warnings


def score_pair(
    txn: NormalizedTransaction,
    existing: StoredTransaction,
    *,
    settings: IngestSettings = DEFAULT_SETTINGS,
) -> tuple[float, list[str]]:
    """Return ``(confidence, reasons)`` for one candidate pairing."""

    new_date = date.fromisoformat(txn.date)
    new_desc = _collapse(txn.description)
    old_desc = _collapse(existing.description)

    old_is_income = existing.known_is_income
    if old_is_income is None:
        # Store keeps magnitudes only.
        amount_diff = abs(txn.amount - abs(existing.amount))
    else:
        old_signed = abs(existing.amount) if old_is_income else -abs(existing.amount)
        amount_diff = abs(txn.signed_amount - old_signed)
    same_amount = amount_diff <= _SAME_AMOUNT_EPSILON
    if new_date == existing.transaction_date and same_amount and new_desc == old_desc:
        return 1.0, ["exact match"]

    score = 0.0
    reasons: list[str] = []

    day_gap = abs((new_date - existing.transaction_date).days)
    if day_gap == 0:
        score += 0.4
        reasons.append("same date")
    elif day_gap <= settings.date_window_days:
        score += 0.2
        reasons.append(f"date within {day_gap} day{'s' if day_gap != 1 else ''}")

    if same_amount:
        score += 0.4
        reasons.append("same amount")
    elif amount_diff <= Decimal(str(settings.amount_tolerance)):
        score += 0.2
        reasons.append("similar amount")

    desc_sim = similarity(new_desc, old_desc)
    if desc_sim >= 0.9:
        score += 0.3
        reasons.append(f"very similar description ({desc_sim:.0%})")
    elif desc_sim >= 0.7:
        score += 0.2
        reasons.append(f"similar description ({desc_sim:.0%})")

    if txn.merchant and existing.merchant:
        merch_sim = similarity(txn.merchant.casefold(), existing.merchant.casefold())
        if merch_sim >= 0.8:
            score += 0.1
            reasons.append("same merchant")

    return min(round(score, 4), 1.0), reasons


def find_duplicates(
    new_txns: Sequence[NormalizedTransaction],
    existing: Iterable[SnapshotRecord],
    *,
    settings: IngestSettings = DEFAULT_SETTINGS,
) -> list[DuplicateMatch]:
    """Pair each new transaction with stored records scoring at or above threshold.

    Matches for one transaction are ordered by descending confidence. Invalid
    stored records are skipped (see :func:`validate_snapshot`).
    """

    snapshot, _warnings = validate_snapshot(existing)
    if not new_txns or not snapshot:
        return []

    matches: list[DuplicateMatch] = []
    for txn in new_txns:
        found: list[DuplicateMatch] = []
        for rec in snapshot:
            confidence, reasons = score_pair(txn, rec, settings=settings)
            if confidence >= settings.duplicate_threshold:
                found.append(
                    DuplicateMatch(
                        transaction=txn,
                        existing=rec,
                        confidence=confidence,
                        reasons=tuple(reasons),
                    )
                )
        found.sort(key=lambda m: m.confidence, reverse=True)
        matches.extend(found)

    _logger.info(
        "duplicates:done new=%d existing=%d matches=%d", len(new_txns), len(snapshot), len(matches)
    )
    return matches


__all__ = [
    "find_duplicates",
    "levenshtein",
    "score_pair",
    "similarity",
    "validate_snapshot",
]
