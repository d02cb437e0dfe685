"""Data models for the CSV statement ingestion pipeline.

Records produced by the pipeline are frozen ``dataclass`` instances created
fresh per CSV and never mutated afterwards. Each exposes ``to_dict()`` which
returns plain JSON-friendly data (strings, numbers, booleans, lists, dicts)
so a :class:`ProcessingReport` can cross a process or network boundary
unchanged.

The two shapes that come from outside the pipeline are validated with
Pydantic instead:

- :class:`StoredTransaction`: one record of the caller-supplied snapshot of
  previously stored transactions (duplicate detection input).
- :class:`ClassifierVerdict`: the JSON object returned by the optional
  text-classification service.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ---------------------------------------------------------------------------
# Roles and hints
# ---------------------------------------------------------------------------

type ColumnRole = Literal[
    "date", "description", "amount", "debit", "credit", "balance", "reference", "merchant"
]

KEY_ROLES: tuple[str, ...] = ("date", "description", "amount")

type DateFormatHint = Literal["DD/MM/YYYY", "MM/DD/YYYY", "YYYY-MM-DD"]


def _money(d: Decimal) -> float:
    return float(d.quantize(Decimal("0.01")))


# ---------------------------------------------------------------------------
# Tokenizer output
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RawRow:
    """One data line of the CSV: trimmed cells plus its 1-based line number."""

    line_number: int
    cells: tuple[str, ...]

    def cell(self, index: int | None) -> str:
        if index is None or index < 0 or index >= len(self.cells):
            return ""
        return self.cells[index]

    def is_blank(self) -> bool:
        return all(not c.strip() for c in self.cells)


@dataclass(frozen=True, slots=True)
class TokenizedCSV:
    headers: tuple[str, ...]
    rows: tuple[RawRow, ...]
    delimiter: str
    header_line: int


# ---------------------------------------------------------------------------
# Format detection
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class BankFormatProfile:
    """Static description of one bank's CSV export layout.

    Header synonyms are lower-case and matched by containment against the
    normalized header cells. The three patterns validate a sample date cell,
    a sample amount cell, and the bank's negative-amount notation.
    """

    id: str
    name: str
    country: str
    date_formats: tuple[str, ...]
    date_headers: tuple[str, ...]
    description_headers: tuple[str, ...]
    amount_headers: tuple[str, ...]
    balance_headers: tuple[str, ...] = ()
    reference_headers: tuple[str, ...] = ()
    date_pattern: re.Pattern[str] = re.compile(r"^\d{1,2}/\d{1,2}/\d{4}$")
    amount_pattern: re.Pattern[str] = re.compile(r"^-?\$?[\d,]+\.?\d*$")
    negative_pattern: re.Pattern[str] = re.compile(r"^-")

    def synonyms(self, role: str) -> tuple[str, ...]:
        return {
            "date": self.date_headers,
            "description": self.description_headers,
            "amount": self.amount_headers,
            "balance": self.balance_headers,
            "reference": self.reference_headers,
        }.get(role, ())

    @property
    def date_hint(self) -> DateFormatHint | None:
        for fmt in self.date_formats:
            head = fmt.replace("-", "/")
            if head.startswith("DD/MM"):
                return "DD/MM/YYYY"
            if head.startswith("MM/DD"):
                return "MM/DD/YYYY"
            if head.startswith("YYYY"):
                return "YYYY-MM-DD"
        return None


@dataclass(frozen=True, slots=True)
class ColumnMatch:
    """A column chosen for a role, with the match confidence in [0, 1]."""

    index: int
    confidence: float
    header: str
    method: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "confidence": round(self.confidence, 4),
            "header": self.header,
            "method": self.method,
        }


@dataclass(frozen=True, slots=True)
class ColumnMapping:
    """Role → column assignment for one CSV, plus the winning bank profile."""

    date: ColumnMatch | None = None
    description: ColumnMatch | None = None
    amount: ColumnMatch | None = None
    debit: ColumnMatch | None = None
    credit: ColumnMatch | None = None
    balance: ColumnMatch | None = None
    reference: ColumnMatch | None = None
    merchant: ColumnMatch | None = None
    profile: BankFormatProfile | None = None
    profile_score: int = 0
    date_hint: DateFormatHint | None = None

    def get(self, role: str) -> ColumnMatch | None:
        return getattr(self, role, None)

    def index_of(self, role: str) -> int | None:
        m = self.get(role)
        return m.index if m is not None else None

    @property
    def has_split_amount(self) -> bool:
        return self.amount is None and (self.debit is not None or self.credit is not None)

    def found_key_roles(self) -> list[str]:
        """Key roles resolved to a column (split debit/credit counts as amount)."""

        found: list[str] = []
        for role in KEY_ROLES:
            if self.get(role) is not None or (role == "amount" and self.has_split_amount):
                found.append(role)
        return found

    @property
    def confidence(self) -> float:
        """Profile score / 100 when a bank matched, else mean key-role confidence."""

        if self.profile is not None:
            return min(1.0, self.profile_score / 100)
        scores = [m.confidence for m in (self.date, self.description, self.amount) if m]
        if self.amount is None:
            split = [m.confidence for m in (self.debit, self.credit) if m]
            if split:
                scores.append(max(split))
        return sum(scores) / 3 if scores else 0.0

    def to_dict(self) -> dict[str, Any]:
        roles = {}
        for role in ("date", "description", "amount", "debit", "credit", "balance",
                     "reference", "merchant"):
            m = self.get(role)
            roles[role] = m.to_dict() if m is not None else None
        return {
            "roles": roles,
            "bank_id": self.profile.id if self.profile else None,
            "bank_name": self.profile.name if self.profile else None,
            "profile_score": self.profile_score,
            "date_hint": self.date_hint,
            "confidence": round(self.confidence, 4),
        }


# ---------------------------------------------------------------------------
# Categorization and canonical transactions
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CategoryAnalysis:
    category: str
    confidence: float
    is_income: bool
    merchant: str
    tags: tuple[str, ...] = ()
    reasoning: str = ""
    source: Literal["rules", "ai"] = "rules"


@dataclass(frozen=True, slots=True)
class NormalizedTransaction:
    """The canonical, store-ready representation of one parsed row.

    ``amount`` is always the absolute value; the sign lives in ``is_income``.
    """

    id: str
    date: str
    amount: Decimal
    is_income: bool
    description: str
    merchant: str
    category: str
    confidence: float
    row_number: int
    warnings: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    reasoning: str = ""

    def __post_init__(self) -> None:
        if self.amount < 0:
            raise ValueError("NormalizedTransaction.amount must be non-negative")

    @property
    def signed_amount(self) -> Decimal:
        return self.amount if self.is_income else -self.amount

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date,
            "amount": _money(self.amount),
            "isIncome": self.is_income,
            "description": self.description,
            "merchant": self.merchant,
            "category": self.category,
            "confidence": round(self.confidence, 4),
            "rowNumber": self.row_number,
            "parseWarnings": list(self.warnings),
            "tags": list(self.tags),
            "reasoning": self.reasoning,
        }

    def to_store_record(self) -> dict[str, Any]:
        """Shape used by the transaction store and the duplicate snapshot."""

        return {
            "id": self.id,
            "transaction_date": self.date,
            "description": self.description,
            "amount": _money(self.signed_amount),
            "merchant": self.merchant,
            "is_income": self.is_income,
            "category": self.category,
        }


@dataclass(frozen=True, slots=True)
class SkippedRow:
    row_number: int
    data: tuple[str, ...]
    reason: str
    suggestions: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "rowNumber": self.row_number,
            "data": list(self.data),
            "reason": self.reason,
            "suggestions": list(self.suggestions),
        }


# ---------------------------------------------------------------------------
# External store record (validated input)
# ---------------------------------------------------------------------------


class StoredTransaction(BaseModel):
    """A previously stored transaction as returned by the external store.

    Extra columns are ignored. ``amount`` may be signed. The direction is
    ``is_income`` when the store provides it, expense when ``amount`` is
    negative, and unknown otherwise (stores that keep absolute values).
    """

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True, frozen=True)

    id: str
    transaction_date: date
    description: str
    amount: Decimal
    merchant: str | None = None
    is_income: bool | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, v: Any) -> Any:
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("id")
    @classmethod
    def _id_non_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("id must be non-empty")
        return v

    @field_validator("transaction_date", mode="before")
    @classmethod
    def _date_prefix(cls, v: Any) -> Any:
        # Stores often return timestamps; keep the calendar date part.
        if isinstance(v, str) and len(v) > 10 and v[10] in "T ":
            return v[:10]
        return v

    @field_validator("merchant")
    @classmethod
    def _blank_merchant(cls, v: str | None) -> str | None:
        return v or None

    @property
    def known_is_income(self) -> bool | None:
        """Direction of the stored record, or ``None`` when it cannot be told."""

        if self.is_income is not None:
            return self.is_income
        if self.amount < 0:
            return False
        return None


# ---------------------------------------------------------------------------
# Classification service response (validated input)
# ---------------------------------------------------------------------------


class ClassifierVerdict(BaseModel):
    """The JSON object expected back from the classification service."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True, populate_by_name=True)

    category: str
    confidence: float = Field(ge=0.0, le=1.0)
    is_income: bool = Field(alias="isIncome")
    tags: list[str]
    reasoning: str
    merchant: str | None = None

    @field_validator("category")
    @classmethod
    def _category_non_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("category must be non-empty")
        return v

    @field_validator("tags")
    @classmethod
    def _clean_tags(cls, v: list[str]) -> list[str]:
        return [t.strip() for t in v if t.strip()]


# ---------------------------------------------------------------------------
# Duplicate detection and the final report
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class DuplicateMatch:
    """Advisory pairing of a new transaction with a stored one."""

    transaction: NormalizedTransaction
    existing: StoredTransaction
    confidence: float
    reasons: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "transactionId": self.transaction.id,
            "existingId": self.existing.id,
            "confidence": round(self.confidence, 4),
            "reasons": list(self.reasons),
            "existing": self.existing.model_dump(mode="json"),
        }


@dataclass(frozen=True, slots=True)
class DateRange:
    start: str | None = None
    end: str | None = None


@dataclass(frozen=True, slots=True)
class ReportSummary:
    total_rows: int = 0
    total_transactions: int = 0
    skipped_rows: int = 0
    date_range: DateRange = field(default_factory=DateRange)
    net_amount: Decimal = Decimal("0.00")
    success_rate: float = 0.0
    duplicates: int = 0
    bank_name: str | None = None
    bank_id: str | None = None
    format_confidence: float = 0.0
    delimiter: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalRows": self.total_rows,
            "totalTransactions": self.total_transactions,
            "skippedRows": self.skipped_rows,
            "dateRange": {"start": self.date_range.start, "end": self.date_range.end},
            "netAmount": _money(self.net_amount),
            "successRate": self.success_rate,
            "duplicates": self.duplicates,
            "bankName": self.bank_name,
            "bankId": self.bank_id,
            "formatConfidence": round(self.format_confidence, 4),
            "delimiter": self.delimiter,
        }


@dataclass(frozen=True, slots=True)
class ProcessingReport:
    """The pipeline's sole output for one CSV file."""

    transactions: tuple[NormalizedTransaction, ...] = ()
    skipped_rows: tuple[SkippedRow, ...] = ()
    duplicates: tuple[DuplicateMatch, ...] = ()
    warnings: tuple[str, ...] = ()
    errors: tuple[str, ...] = ()
    summary: ReportSummary = field(default_factory=ReportSummary)
    column_mapping: ColumnMapping | None = None
    source: str | None = None

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "transactions": [t.to_dict() for t in self.transactions],
            "skippedRows": [s.to_dict() for s in self.skipped_rows],
            "duplicates": [d.to_dict() for d in self.duplicates],
            "warnings": list(self.warnings),
            "errors": list(self.errors),
            "summary": self.summary.to_dict(),
            "columnMapping": self.column_mapping.to_dict() if self.column_mapping else None,
        }


__all__ = [
    "KEY_ROLES",
    "ColumnRole",
    "DateFormatHint",
    "RawRow",
    "TokenizedCSV",
    "BankFormatProfile",
    "ColumnMatch",
    "ColumnMapping",
    "CategoryAnalysis",
    "NormalizedTransaction",
    "SkippedRow",
    "StoredTransaction",
    "ClassifierVerdict",
    "DuplicateMatch",
    "DateRange",
    "ReportSummary",
    "ProcessingReport",
]
