"""Split raw CSV text into a header row and data rows.

Bank exports are loosely formed: the delimiter varies by locale, some banks
prepend account preambles before the header, rows are ragged and quoting is
inconsistent. This tokenizer therefore does not rely on :mod:`csv` dialect
sniffing. It:

- normalizes ``\\r\\n`` and ``\\r`` line endings to ``\\n``;
- picks the delimiter among comma, semicolon, tab and pipe by the average
  number of occurrences per line over the first few non-empty lines
  (comma on a tie or when nothing reaches one per line);
- splits fields honouring single- and double-quoted values that start a
  field, where a doubled quote inside a quoted value is a literal quote and
  a quoted value may span lines;
- locates the header within the first lines, preferring one that mentions
  known header vocabulary;
- right-pads short rows to the header width.

Physically empty lines are dropped here. Lines made only of delimiters are
kept so the normalizer can report them as skipped rows.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence

from .config import DEFAULT_SETTINGS, IngestSettings
from .errors import EmptyInputError, NoHeaderFoundError
from .logging_setup import get_logger
from .models import RawRow, TokenizedCSV

CANDIDATE_DELIMITERS: tuple[str, ...] = (",", ";", "\t", "|")

HEADER_VOCABULARY: tuple[str, ...] = (
    "date",
    "amount",
    "description",
    "details",
    "transaction",
    "debit",
    "credit",
    "balance",
    "particulars",
    "payee",
    "reference",
    "narrative",
    "memo",
)

_QUOTES = ('"', "'")

_logger = get_logger("statement_ingest.tokenizer")


def normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def detect_delimiter(lines: Sequence[str]) -> str:
    """Return the candidate with the highest per-line average (>= 1).

    Ties for the top average, or no candidate reaching one occurrence per
    line, resolve to comma.
    """

    sample = [ln for ln in lines if ln.strip()]
    if not sample:
        return ","
    averages = {
        d: sum(ln.count(d) for ln in sample) / len(sample) for d in CANDIDATE_DELIMITERS
    }
    qualifying = {d: avg for d, avg in averages.items() if avg >= 1}
    if not qualifying:
        return ","
    best = max(qualifying.values())
    winners = [d for d, avg in qualifying.items() if avg == best]
    return winners[0] if len(winners) == 1 else ","


def _has_closing_quote(text: str, start: int, delimiter: str) -> bool:
    """True when the quote at ``text[start]`` is closed before its field ends.

    The closing quote must be followed by a delimiter, a newline or the end of
    input (trailing spaces allowed). Single quotes must close on the same
    physical line; double quotes may span lines.
    """

    quote = text[start]
    n = len(text)
    j = start + 1
    while j < n:
        ch = text[j]
        if ch == "\n" and quote == "'":
            return False
        if ch == quote:
            if j + 1 < n and text[j + 1] == quote:
                j += 2
                continue
            k = j + 1
            while k < n and text[k] in " \t":
                k += 1
            if k == n or text[k] in (delimiter, "\n"):
                return True
        j += 1
    return False


def _iter_records(text: str, delimiter: str) -> Iterator[tuple[int, list[str]]]:
    """Yield ``(line_number, cells)`` per logical record.

    A quote character opens a quoted value only at the start of a field
    (ignoring leading spaces) and only when a matching close follows (see
    :func:`_has_closing_quote`). Apostrophes inside names such as
    ``McDonald's`` and stray leading apostrophes such as ``'00123`` stay
    literal. Newlines inside an open double-quoted value are kept and the
    record continues on the next physical line.
    """

    line_no = 1
    record_start = 1
    cells: list[str] = []
    current: list[str] = []
    quote: str | None = None
    field_started = False  # any non-space char seen in the current field
    record_has_content = False

    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if quote is not None:
            if ch == quote:
                if i + 1 < n and text[i + 1] == quote:
                    current.append(quote)
                    i += 2
                    continue
                quote = None
            else:
                if ch == "\n":
                    line_no += 1
                current.append(ch)
            i += 1
            continue

        if ch == "\n":
            cells.append("".join(current).strip())
            if record_has_content:
                yield record_start, cells
            cells, current = [], []
            field_started = False
            record_has_content = False
            line_no += 1
            record_start = line_no
        elif ch == delimiter:
            cells.append("".join(current).strip())
            current = []
            field_started = False
            record_has_content = True
        elif ch in _QUOTES and not field_started and _has_closing_quote(text, i, delimiter):
            quote = ch
            field_started = True
            record_has_content = True
        else:
            if not ch.isspace():
                field_started = True
                record_has_content = True
            current.append(ch)
        i += 1

    # Final record (no trailing newline). An unterminated quote keeps its text.
    cells.append("".join(current).strip())
    if record_has_content:
        yield record_start, cells


def _looks_like_header(cells: Sequence[str]) -> bool:
    lowered = [c.lower() for c in cells]
    return any(term in cell for cell in lowered for term in HEADER_VOCABULARY)


def _non_empty_count(cells: Sequence[str]) -> int:
    return sum(1 for c in cells if c.strip())


def tokenize(text: str, *, settings: IngestSettings = DEFAULT_SETTINGS) -> TokenizedCSV:
    """Tokenize raw CSV ``text`` into headers and :class:`RawRow` items.

    Raises :class:`EmptyInputError` for blank input and
    :class:`NoHeaderFoundError` when none of the first
    ``settings.header_scan_lines`` records has two non-empty cells.
    """

    normalized = normalize_newlines(text or "")
    if not normalized.strip():
        raise EmptyInputError()

    physical = normalized.split("\n")
    sample = [ln for ln in physical if ln.strip()][: settings.delimiter_sample_lines]
    delimiter = detect_delimiter(sample)

    records = list(_iter_records(normalized, delimiter))

    header_pos: int | None = None
    first_qualifying: int | None = None
    for pos, (_line, cells) in enumerate(records[: settings.header_scan_lines]):
        if _non_empty_count(cells) < 2:
            continue
        if first_qualifying is None:
            first_qualifying = pos
        if _looks_like_header(cells):
            header_pos = pos
            break
    if header_pos is None:
        header_pos = first_qualifying
    if header_pos is None:
        raise NoHeaderFoundError(settings.header_scan_lines)

    header_line, header_cells = records[header_pos]
    headers = tuple(header_cells)
    width = len(headers)

    rows: list[RawRow] = []
    for line, cells in records[header_pos + 1 :]:
        if len(cells) < width:
            cells = cells + [""] * (width - len(cells))
        rows.append(RawRow(line_number=line, cells=tuple(cells)))

    _logger.info(
        "tokenize:done delimiter=%r header_line=%d columns=%d rows=%d",
        delimiter,
        header_line,
        width,
        len(rows),
    )
    return TokenizedCSV(
        headers=headers, rows=tuple(rows), delimiter=delimiter, header_line=header_line
    )


__all__ = [
    "CANDIDATE_DELIMITERS",
    "HEADER_VOCABULARY",
    "detect_delimiter",
    "normalize_newlines",
    "tokenize",
]
