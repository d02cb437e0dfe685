"""Cell-level normalization: dates, amounts and deterministic identifiers.

Neither parser raises. Each returns a best-effort value together with the
warnings collected while producing it, so a single malformed cell degrades
the row instead of failing the file.

Dates
-----
Numeric layouts are tried in a fixed order (the hinted order first when a
:data:`~statement_ingest.models.DateFormatHint` is supplied)::

    DD/MM/YYYY, MM/DD/YYYY, YYYY-MM-DD, DD/MM/YY, DDMMYYYY, YYYYMMDD

``/``, ``-`` and ``.`` are accepted as separators. A reading is accepted only
if it names a real calendar day, so ``31/02/2024`` is never shifted to a
nearby date. Textual dates (``5 Mar 2024``, ``March 5, 2024``) are handled by
a fallback pass. If nothing works the current date is returned with a
warning.

Amounts
-------
Currency symbols, codes and whitespace are stripped. Brackets, a leading or
trailing minus, and a ``DR``/``DEBIT`` suffix mark a negative value; ``CR``
is accepted as an explicit credit marker. When both ``.`` and ``,`` appear the
right-most one is the decimal separator. A lone ``,`` followed by exactly one
or two digits is a decimal comma; otherwise commas group thousands.
"""

from __future__ import annotations

import hashlib
import json
import re
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import NamedTuple

from .models import DateFormatHint

# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------


class ParsedDate(NamedTuple):
    date: str
    warnings: list[str]


_SEP = r"[/\-.]"
_DAY_MONTH_YEAR4 = re.compile(rf"^(\d{{1,2}}){_SEP}(\d{{1,2}}){_SEP}(\d{{4}})$")
_YEAR_MONTH_DAY = re.compile(rf"^(\d{{4}}){_SEP}(\d{{1,2}}){_SEP}(\d{{1,2}})$")
_DAY_MONTH_YEAR2 = re.compile(rf"^(\d{{1,2}}){_SEP}(\d{{1,2}}){_SEP}(\d{{2}})$")
_COMPACT = re.compile(r"^\d{8}$")
_TIME_SUFFIX = re.compile(r"^(\S+?)(?:[ T]\d{1,2}:\d{2}(?::\d{2}(?:\.\d+)?)?\s*(?:[AaPp][Mm])?.*)$")

# Textual fallbacks (month names, ISO timestamps).
_FALLBACK_FORMATS: tuple[str, ...] = (
    "%d %b %Y",
    "%d %B %Y",
    "%d-%b-%Y",
    "%d-%b-%y",
    "%d %b %y",
    "%b %d %Y",
    "%b %d, %Y",
    "%B %d %Y",
    "%B %d, %Y",
    "%a %d %b %Y",
    "%A %d %B %Y",
)


def _pivot_year(two_digits: str) -> int:
    yy = int(two_digits)
    return 1900 + yy if yy > 50 else 2000 + yy


def _make_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _numeric_candidates(s: str, hint: DateFormatHint | None) -> list[tuple[str, date | None]]:
    """Return ``(layout_name, date_or_None)`` readings in preference order."""

    out: list[tuple[str, date | None]] = []
    m = _DAY_MONTH_YEAR4.match(s)
    if m:
        a, b, y = int(m.group(1)), int(m.group(2)), int(m.group(3))
        dmy = ("DD/MM/YYYY", _make_date(y, b, a))
        mdy = ("MM/DD/YYYY", _make_date(y, a, b))
        out.extend([mdy, dmy] if hint == "MM/DD/YYYY" else [dmy, mdy])
    m = _YEAR_MONTH_DAY.match(s)
    if m:
        out.append(("YYYY-MM-DD", _make_date(int(m.group(1)), int(m.group(2)), int(m.group(3)))))
    m = _DAY_MONTH_YEAR2.match(s)
    if m:
        a, b, y = int(m.group(1)), int(m.group(2)), _pivot_year(m.group(3))
        dmy = ("DD/MM/YY", _make_date(y, b, a))
        mdy = ("MM/DD/YY", _make_date(y, a, b))
        out.extend([mdy, dmy] if hint == "MM/DD/YYYY" else [dmy, mdy])
    if _COMPACT.match(s):
        ddmmyyyy = ("DDMMYYYY", _make_date(int(s[4:]), int(s[2:4]), int(s[:2])))
        yyyymmdd = ("YYYYMMDD", _make_date(int(s[:4]), int(s[4:6]), int(s[6:])))
        out.extend([yyyymmdd, ddmmyyyy] if hint == "YYYY-MM-DD" else [ddmmyyyy, yyyymmdd])
    return out


def _fallback_parse(s: str) -> date | None:
    try:
        d = datetime.fromisoformat(s).date()
    except ValueError:
        d = None
    if d is None:
        cleaned = " ".join(s.replace(",", ", ").split()).replace(" ,", ",")
        for fmt in _FALLBACK_FORMATS:
            try:
                d = datetime.strptime(cleaned, fmt).date()
                break
            except ValueError:
                continue
    if d is not None and d.year > 1900:
        return d
    return None


def parse_date(
    raw: str | None,
    hint: DateFormatHint | None = None,
    *,
    row_number: int | None = None,
    today: date | None = None,
) -> ParsedDate:
    """Parse a bank date cell into ``YYYY-MM-DD``.

    Never raises. Unparseable or empty input yields ``today`` (defaults to
    the current date) plus a warning.
    """

    where = f"Row {row_number}" if row_number is not None else "Row unknown"
    warnings: list[str] = []
    fallback_today = (today or date.today()).isoformat()

    s = (raw or "").strip()
    if not s:
        warnings.append(f"{where}: Empty date, using today")
        return ParsedDate(fallback_today, warnings)

    m = _TIME_SUFFIX.match(s)
    core = m.group(1) if m and m.group(1) != s else s

    candidates = _numeric_candidates(core, hint)
    for pos, (layout, parsed) in enumerate(candidates):
        if parsed is None:
            continue
        if pos > 0 and candidates[0][1] is None and layout.startswith(("MM/DD", "DD/MM")):
            warnings.append(f"{where}: Read date {s!r} as {layout} (other order is not a valid date)")
        return ParsedDate(parsed.isoformat(), warnings)

    fb = _fallback_parse(core) or _fallback_parse(s)
    if fb is not None:
        warnings.append(f"{where}: Used fallback date parsing for {s!r}")
        return ParsedDate(fb.isoformat(), warnings)

    warnings.append(f"{where}: Could not parse date {s!r}, using today")
    return ParsedDate(fallback_today, warnings)


# ---------------------------------------------------------------------------
# Amounts
# ---------------------------------------------------------------------------


class ParsedAmount(NamedTuple):
    amount: Decimal
    warnings: list[str]


_CURRENCY_CHARS = re.compile(r"[£$€¥₹\s ]")
_DEBIT_SUFFIX = re.compile(r"(?:DR|DEBIT)\.?$", re.IGNORECASE)
_CREDIT_SUFFIX = re.compile(r"(?:CR|CREDIT)\.?$", re.IGNORECASE)
_CURRENCY_CODE = re.compile(r"^[A-Z]{3}(?=[\d(+\-.])|(?<=[\d)])[A-Z]{3}$", re.IGNORECASE)
_NUMERIC = re.compile(r"^\d*\.?\d+$|^\d+\.$")


def _separators_to_dot(s: str) -> str:
    has_dot = "." in s
    has_comma = "," in s
    if has_dot and has_comma:
        # The right-most separator is the decimal point.
        if s.rfind(",") > s.rfind("."):
            return s.replace(".", "").replace(",", ".")
        return s.replace(",", "")
    if has_comma:
        head, _, tail = s.rpartition(",")
        if 1 <= len(tail) <= 2 and tail.isdigit():
            return head.replace(",", "") + "." + tail
        return s.replace(",", "")
    if s.count(".") > 1:
        return s.replace(".", "")
    return s


def parse_amount(raw: str | None, *, row_number: int | None = None) -> ParsedAmount:
    """Parse a money cell into a signed :class:`~decimal.Decimal`.

    Never raises. Empty input is ``0`` without a warning; unparseable text is
    ``0`` with a warning.
    """

    where = f"Row {row_number}" if row_number is not None else "Row unknown"
    warnings: list[str] = []
    original = (raw or "").strip()
    if not original:
        return ParsedAmount(Decimal("0"), warnings)

    s = _CURRENCY_CHARS.sub("", original)
    negative = False

    if _DEBIT_SUFFIX.search(s):
        negative = True
        s = _DEBIT_SUFFIX.sub("", s)
    elif _CREDIT_SUFFIX.search(s):
        s = _CREDIT_SUFFIX.sub("", s)
    s = _CURRENCY_CODE.sub("", s)

    # Strip sign and bracket markers in any order, e.g. "-(1,234.56)" or "(-5)".
    while True:
        changed = False
        if s.startswith("+"):
            s = s[1:]
            changed = True
        elif s.startswith("-"):
            negative = True
            s = s[1:]
            changed = True
        if s.endswith("-") and len(s) > 1:
            negative = True
            s = s[:-1]
            changed = True
        if s.startswith("(") and s.endswith(")") and len(s) >= 2:
            negative = True
            s = s[1:-1]
            changed = True
        s = _CURRENCY_CODE.sub("", s)
        if not changed:
            break

    s = _separators_to_dot(s)
    if not _NUMERIC.match(s):
        warnings.append(f"{where}: Could not parse amount {original!r}, using 0")
        return ParsedAmount(Decimal("0"), warnings)
    try:
        value = Decimal(s)
    except InvalidOperation:
        warnings.append(f"{where}: Could not parse amount {original!r}, using 0")
        return ParsedAmount(Decimal("0"), warnings)
    return ParsedAmount(-value if negative else value, warnings)


def quantize_money(d: Decimal) -> Decimal:
    return d.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


# ---------------------------------------------------------------------------
# Identifiers
# ---------------------------------------------------------------------------


def generate_id(
    date_iso: str,
    amount: Decimal | float | int,
    description: str,
    *,
    occurrence: int = 0,
) -> str:
    """Return a stable transaction id over ``(date, signed amount, description)``.

    Re-processing the same row always yields the same id. ``occurrence``
    numbers identical rows within one file (0 for the first), so repeats get
    their own ids and the first row keeps the plain one.
    """

    amt = quantize_money(Decimal(str(amount)))
    parts: list[str | int] = [date_iso.strip(), f"{amt:.2f}", " ".join(description.split())]
    if occurrence:
        parts.append(occurrence)
    payload = json.dumps(
        parts,
        ensure_ascii=False,
        separators=(",", ":"),
    )
    return "txn_" + hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]


__all__ = [
    "ParsedAmount",
    "ParsedDate",
    "generate_id",
    "parse_amount",
    "parse_date",
    "quantize_money",
]
