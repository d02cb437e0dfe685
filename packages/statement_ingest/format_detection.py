"""Column-role inference for bank CSV headers.

Two passes:

1. Score every :data:`~statement_ingest.bank_formats.BANK_FORMATS` profile
   against the header row and the first sample row (header synonyms: date 30,
   description 25, amount 25; sample cell shape: date 20, amount 20; capped
   at 100). The best profile is selected when its score exceeds
   ``settings.profile_threshold``.
2. Resolve each role to a column. A selected profile contributes its header
   synonyms (any positive match accepted); generic keyword lists are matched
   fuzzily and accepted above ``settings.fuzzy_threshold``.

Fuzzy header scoring operates on lower-cased alphanumeric forms: exact match
is 1.0, containment scores proportional to the length overlap, and shared
words give a weighted partial score.

When no single amount column exists but debit and/or credit columns do, the
mapping records the split columns and the amount role counts as found.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence

from .bank_formats import BANK_FORMATS
from .config import DEFAULT_SETTINGS, IngestSettings
from .errors import InsufficientColumnsError
from .logging_setup import get_logger
from .models import BankFormatProfile, ColumnMapping, ColumnMatch, DateFormatHint, RawRow

_logger = get_logger("statement_ingest.format_detection")

# Header-synonym and sample-pattern weights for profile scoring.
_WEIGHTS = {"date": 30, "description": 25, "amount": 25}
_PATTERN_WEIGHT = 20
_MAX_SCORE = 100

GENERIC_KEYWORDS: dict[str, tuple[str, ...]] = {
    "date": (
        "date",
        "transaction date",
        "trans date",
        "posting date",
        "post date",
        "value date",
        "processed date",
        "booking date",
    ),
    "description": (
        "description",
        "details",
        "transaction details",
        "particulars",
        "narrative",
        "memo",
        "payee",
        "other party",
        "name",
    ),
    "amount": ("amount", "transaction amount", "value", "amt", "sum", "total"),
    "debit": ("debit", "debit amount", "withdrawal", "withdrawals", "paid out", "money out"),
    "credit": ("credit", "credit amount", "deposit", "deposits", "paid in", "money in"),
    "balance": ("balance", "running balance", "account balance"),
    "reference": ("reference", "ref", "transaction id", "check number", "code"),
    "merchant": ("merchant", "payee", "other party", "particulars"),
}

_NON_ALNUM = re.compile(r"[^a-z0-9]")
_WORD_SPLIT = re.compile(r"[^a-z0-9]+")

_DATE_SHAPE = re.compile(r"^(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{2,4})$")
_ISO_SHAPE = re.compile(r"^\d{4}[/\-.]\d{1,2}[/\-.]\d{1,2}$")


# ---------------------------------------------------------------------------
# Fuzzy header matching
# ---------------------------------------------------------------------------


def _compact(s: str) -> str:
    return _NON_ALNUM.sub("", s.lower())


def _words(s: str) -> list[str]:
    return [w for w in _WORD_SPLIT.split(s.lower()) if len(w) > 1]


def header_similarity(header: str, name: str) -> float:
    """Score how well ``header`` matches the keyword ``name`` in [0, 1]."""

    h = _compact(header)
    k = _compact(name)
    if not h or not k:
        return 0.0
    if h == k:
        return 1.0
    if k in h:
        return len(k) / len(h) * 0.9
    if h in k and len(h) > 2:
        return len(h) / len(k) * 0.8
    hw = _words(header)
    kw = _words(name)
    if not hw or not kw:
        return 0.0
    common = [w for w in hw if any(w in n or n in w for n in kw)]
    if not common:
        return 0.0
    return len(common) / max(len(hw), len(kw)) * 0.7


def _best_column(
    headers: Sequence[str],
    keywords: Iterable[str],
    *,
    floor: float,
    claimed: set[int],
    method: str,
) -> ColumnMatch | None:
    kws = tuple(keywords)
    best: ColumnMatch | None = None
    for index, header in enumerate(headers):
        if index in claimed or not header.strip():
            continue
        score = max((header_similarity(header, k) for k in kws), default=0.0)
        if score > floor and (best is None or score > best.confidence):
            best = ColumnMatch(index=index, confidence=score, header=header, method=method)
    return best


# ---------------------------------------------------------------------------
# Profile scoring
# ---------------------------------------------------------------------------


def _first_index_containing(normalized: Sequence[str], synonyms: Sequence[str]) -> int:
    for i, h in enumerate(normalized):
        if any(s in h for s in synonyms):
            return i
    return -1


def score_profile(
    profile: BankFormatProfile, headers: Sequence[str], sample_rows: Sequence[RawRow]
) -> int:
    """Score ``profile`` against the headers and first sample row (0..100)."""

    normalized = [h.lower().strip() for h in headers]
    score = 0
    for role, weight in _WEIGHTS.items():
        if _first_index_containing(normalized, profile.synonyms(role)) >= 0:
            score += weight

    if sample_rows:
        first = sample_rows[0]
        date_idx = _first_index_containing(normalized, profile.date_headers)
        amount_idx = _first_index_containing(normalized, profile.amount_headers)
        date_val = first.cell(date_idx) if date_idx >= 0 else ""
        amount_val = first.cell(amount_idx) if amount_idx >= 0 else ""
        if date_val and profile.date_pattern.match(date_val):
            score += _PATTERN_WEIGHT
        if amount_val and profile.amount_pattern.match(amount_val):
            score += _PATTERN_WEIGHT
    return min(score, _MAX_SCORE)


def _tiebreak(
    profile: BankFormatProfile, headers: Sequence[str], sample_rows: Sequence[RawRow]
) -> tuple[int, int, int]:
    """Secondary ordering among equally scored profiles.

    Prefers a profile whose date order agrees with the sample, then one that
    also names the optional balance/reference columns, then exact synonym hits.
    """

    normalized = [h.lower().strip() for h in headers]
    agrees = 0
    date_idx = _first_index_containing(normalized, profile.date_headers)
    if date_idx >= 0:
        hint = infer_date_hint(r.cell(date_idx) for r in sample_rows)
        agrees = int(hint is not None and hint == profile.date_hint)
    optional = sum(
        1
        for role in ("balance", "reference")
        if _first_index_containing(normalized, profile.synonyms(role)) >= 0
    )
    every = {s for role in ("date", "description", "amount", "balance", "reference")
             for s in profile.synonyms(role)}
    exact = sum(1 for h in normalized if h in every)
    return agrees, optional, exact


def select_profile(
    headers: Sequence[str],
    sample_rows: Sequence[RawRow],
    *,
    threshold: int = DEFAULT_SETTINGS.profile_threshold,
) -> tuple[BankFormatProfile | None, int]:
    """Return the highest-scoring profile above ``threshold`` and its score.

    Equal scores are ordered by :func:`_tiebreak`; full ties keep the earlier
    catalog entry.
    """

    best: BankFormatProfile | None = None
    best_key: tuple[int, tuple[int, int, int]] = (0, (0, 0, 0))
    for profile in BANK_FORMATS:
        s = score_profile(profile, headers, sample_rows)
        if s <= 0:
            continue
        key = (s, _tiebreak(profile, headers, sample_rows))
        if best is None or key > best_key:
            best, best_key = profile, key
    best_score = best_key[0]
    if best is not None and best_score > threshold:
        return best, best_score
    return None, best_score


# ---------------------------------------------------------------------------
# Date format hint
# ---------------------------------------------------------------------------


def infer_date_hint(values: Iterable[str]) -> DateFormatHint | None:
    """Infer the day/month order from sample date cells.

    A leading component above 12 implies day-first; a middle component above
    12 implies month-first. ISO-shaped values imply ``YYYY-MM-DD``.
    """

    saw_iso = False
    for raw in values:
        v = raw.strip()
        if not v:
            continue
        if _ISO_SHAPE.match(v):
            saw_iso = True
            continue
        m = _DATE_SHAPE.match(v)
        if not m:
            continue
        first, second = int(m.group(1)), int(m.group(2))
        if first > 12 >= second:
            return "DD/MM/YYYY"
        if second > 12 >= first:
            return "MM/DD/YYYY"
    return "YYYY-MM-DD" if saw_iso else None


# ---------------------------------------------------------------------------
# Role resolution
# ---------------------------------------------------------------------------


def _resolve(
    role: str,
    headers: Sequence[str],
    profile: BankFormatProfile | None,
    claimed: set[int],
    fuzzy_floor: float,
) -> ColumnMatch | None:
    if profile is not None and profile.synonyms(role):
        m = _best_column(
            headers, profile.synonyms(role), floor=0.0, claimed=claimed, method="profile"
        )
        if m is not None:
            return m
    return _best_column(
        headers, GENERIC_KEYWORDS[role], floor=fuzzy_floor, claimed=claimed, method="fuzzy"
    )


def detect_format(
    headers: Sequence[str],
    sample_rows: Sequence[RawRow],
    *,
    settings: IngestSettings = DEFAULT_SETTINGS,
) -> ColumnMapping:
    """Infer column roles for a CSV.

    Raises :class:`InsufficientColumnsError` when fewer than two of the
    date/description/amount roles resolve to a column.
    """

    profile, score = select_profile(headers, sample_rows, threshold=settings.profile_threshold)
    floor = settings.fuzzy_threshold
    claimed: set[int] = set()

    def take(m: ColumnMatch | None) -> ColumnMatch | None:
        if m is not None:
            claimed.add(m.index)
        return m

    date = take(_resolve("date", headers, profile, claimed, floor))

    # Amount competes with debit/credit for the same columns; decide before claiming.
    amount = _resolve("amount", headers, profile, claimed, floor)
    debit = _resolve("debit", headers, None, claimed, floor)
    credit = _resolve("credit", headers, None, claimed - ({debit.index} if debit else set()),
                      floor)
    if credit is not None and debit is not None and credit.index == debit.index:
        # One column cannot be both sides; keep the stronger reading.
        if credit.confidence > debit.confidence:
            debit = None
        else:
            credit = None
    split_wins = amount is not None and any(
        side is not None and side.index == amount.index and side.confidence >= amount.confidence
        for side in (debit, credit)
    )
    if amount is not None and not split_wins:
        take(amount)
        debit = credit = None
    else:
        amount = None
        take(debit)
        take(credit)

    description = take(_resolve("description", headers, profile, claimed, floor))
    merchant = take(_resolve("merchant", headers, None, claimed, max(floor, 0.5)))
    balance = take(_resolve("balance", headers, profile, claimed, floor))
    reference = take(_resolve("reference", headers, profile, claimed, max(floor, 0.5)))

    date_values = [r.cell(date.index) for r in sample_rows] if date is not None else []
    hint = infer_date_hint(date_values)
    if hint is None and profile is not None:
        hint = profile.date_hint

    mapping = ColumnMapping(
        date=date,
        description=description,
        amount=amount,
        debit=debit,
        credit=credit,
        balance=balance,
        reference=reference,
        merchant=merchant,
        profile=profile,
        profile_score=score if profile is not None else 0,
        date_hint=hint,
    )

    found = mapping.found_key_roles()
    if profile is not None:
        _logger.info("detect_format:profile bank=%s score=%d", profile.id, score)
    else:
        _logger.info("detect_format:fuzzy best_profile_score=%d", score)
    _logger.debug(
        "detect_format:roles date=%s description=%s amount=%s split=%s hint=%s",
        mapping.index_of("date"),
        mapping.index_of("description"),
        mapping.index_of("amount"),
        mapping.has_split_amount,
        hint,
    )
    if len(found) < 2:
        _logger.error("detect_format:insufficient_columns found=%s", ",".join(found) or "none")
        raise InsufficientColumnsError(headers, found)
    return mapping


__all__ = [
    "GENERIC_KEYWORDS",
    "detect_format",
    "header_similarity",
    "infer_date_hint",
    "score_profile",
    "select_profile",
]
