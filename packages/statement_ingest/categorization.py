"""Canonical category vocabulary and the rule-based categorizer.

The rule path is deterministic and always available. It is the baseline
when no classifier is configured and the fallback whenever the optional
classification service fails (see :mod:`statement_ingest.classifier`).

Rules
-----
- The sign of the amount gates the candidate set: positive amounts are
  matched against income categories, everything else against expenses.
- Categories are tried in declaration order; the first category with a
  matching merchant pattern or keyword wins.
- Merchant patterns (anchored at the start of the description or merchant)
  score 0.9. Keyword hits score 0.8 for income, and 0.7 plus 0.1 per extra
  keyword (capped at 0.85) for expenses.
- No match yields ``"Uncategorised"`` at 0.5 for income, 0.3 for expenses.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from .config import DEFAULT_SETTINGS
from .logging_setup import get_logger
from .merchants import standardize_merchant
from .models import CategoryAnalysis

_logger = get_logger("statement_ingest.categorization")

UNCATEGORISED = "Uncategorised"

EXPENSE_CATEGORIES: tuple[str, ...] = (
    "Housing & Utilities",
    "Groceries",
    "Transportation",
    "Dining Out",
    "Entertainment",
    "Healthcare",
    "Shopping",
    "Insurance",
    "Transfers",
    UNCATEGORISED,
)

INCOME_CATEGORIES: tuple[str, ...] = (
    "Salary",
    "Investment Income",
    "Refunds",
    "Other Income",
)

ALL_CATEGORIES: tuple[str, ...] = EXPENSE_CATEGORIES + INCOME_CATEGORIES


@dataclass(frozen=True, slots=True)
class CategoryRule:
    category: str
    is_income: bool
    keywords: tuple[str, ...]
    merchant_pattern: re.Pattern[str] | None = None

    def keyword_hits(self, text: str) -> list[str]:
        return [k for k in self.keywords if _keyword_regex(k).search(text)]


_KW_CACHE: dict[str, re.Pattern[str]] = {}


def _keyword_regex(keyword: str) -> re.Pattern[str]:
    pat = _KW_CACHE.get(keyword)
    if pat is None:
        # Whole-word match; tolerate a plural suffix ("cafe" → "cafes").
        pat = re.compile(rf"\b{re.escape(keyword)}(?:s|es)?\b")
        _KW_CACHE[keyword] = pat
    return pat


def _starts(*names: str) -> re.Pattern[str]:
    return re.compile(r"^(?:" + "|".join(names) + r")", re.IGNORECASE)


EXPENSE_RULES: tuple[CategoryRule, ...] = (
    CategoryRule(
        "Housing & Utilities",
        False,
        ("rent", "mortgage", "property", "utilities", "electricity", "power", "gas bill",
         "water", "internet", "phone", "broadband", "council", "rates"),
        _starts("RENT", "MORTGAGE", "POWER", "MERCURY", "GENESIS", "CONTACT ENERGY",
                "WATERCARE", "TELECOM", "VODAFONE", "ONE NZ", "SPARK", "2DEGREES"),
    ),
    CategoryRule(
        "Groceries",
        False,
        ("grocery", "groceries", "supermarket", "countdown", "paknsave", "pak n save",
         "woolworths", "coles", "new world", "foodstuffs", "tesco", "sainsbury", "aldi"),
        _starts("COUNTDOWN", "PAKNSAVE", "PAK N SAVE", "NEW WORLD", "WOOLWORTHS", "COLES",
                "FOODTOWN", "FRESH CHOICE", "FOUR SQUARE"),
    ),
    CategoryRule(
        "Transportation",
        False,
        ("uber", "taxi", "bus", "train", "fuel", "petrol", "parking", "transport", "bp",
         "shell", "caltex", "z energy", "mobil", "gull", "at hop"),
        _starts("UBER(?! EATS)", "TAXI", "BP ", "SHELL", "CALTEX", "Z ENERGY", "MOBIL",
                "AUCKLAND TRANSPORT", "GULL"),
    ),
    CategoryRule(
        "Dining Out",
        False,
        ("restaurant", "cafe", "takeaway", "delivery", "dining", "mcdonald", "kfc",
         "starbucks", "pizza", "burger", "subway", "uber eats", "sushi", "bar"),
        _starts("MCDONALD", "KFC", "STARBUCKS", "PIZZA", "BURGER", "SUBWAY", "DOMINO",
                "UBER EATS"),
    ),
    CategoryRule(
        "Entertainment",
        False,
        ("netflix", "spotify", "subscription", "entertainment", "movie", "cinema", "game",
         "steam", "playstation", "xbox", "disney"),
        _starts("NETFLIX", "SPOTIFY", "STEAM", "PLAYSTATION", "XBOX", "CINEMA", "EVENT",
                "DISNEY"),
    ),
    CategoryRule(
        "Healthcare",
        False,
        ("doctor", "hospital", "pharmacy", "medical", "health", "dental", "dentist",
         "chemist", "physio"),
        _starts("PHARMACY", "CHEMIST", "MEDICAL", "DENTAL", "HOSPITAL", "DOCTOR",
                "UNICHEM", "LIFE PHARMACY"),
    ),
    CategoryRule(
        "Shopping",
        False,
        ("amazon", "shopping", "retail", "clothing", "electronics", "warehouse", "kmart",
         "target", "walmart", "ebay", "trade me"),
        _starts("AMAZON", "AMZN", "WAREHOUSE", "THE WAREHOUSE", "KMART", "TARGET",
                "HARVEY NORMAN", "JB HI-FI", "NOEL LEEMING"),
    ),
    CategoryRule(
        "Insurance",
        False,
        ("insurance", "assurance", "premium"),
        _starts("AA INSURANCE", "TOWER", "STATE INSURANCE", "AMI ", "SOUTHERN CROSS"),
    ),
    CategoryRule(
        "Transfers",
        False,
        ("transfer", "tfr", "atm", "withdrawal", "loan repayment", "credit card"),
        _starts("TRANSFER", "TFR", "ATM"),
    ),
)

INCOME_RULES: tuple[CategoryRule, ...] = (
    CategoryRule(
        "Salary",
        True,
        ("salary", "wage", "wages", "payroll", "pay", "employment", "income"),
        _starts("PAYROLL", "SALARY", "WAGE"),
    ),
    CategoryRule(
        "Investment Income",
        True,
        ("dividend", "interest", "investment", "sharesies", "returns"),
        _starts("DIVIDEND", "INTEREST", "SHARESIES", "INVESTNOW"),
    ),
    CategoryRule(
        "Refunds",
        True,
        ("refund", "reimbursement", "cashback", "reversal"),
        _starts("REFUND"),
    ),
)

_MERCHANT_CONFIDENCE = 0.9
_INCOME_KEYWORD_CONFIDENCE = 0.8
_EXPENSE_KEYWORD_BASE = 0.7
_EXPENSE_KEYWORD_CAP = 0.85


def categorize_by_rules(
    description: str,
    amount: Decimal | float,
    merchant: str | None = None,
    *,
    merchant_max_length: int = DEFAULT_SETTINGS.merchant_max_length,
) -> CategoryAnalysis:
    """Deterministic keyword/pattern categorization."""

    is_income = Decimal(str(amount)) > 0
    desc = (description or "").strip()
    lowered = desc.lower()
    merchant_name = (
        standardize_merchant(merchant, max_length=merchant_max_length)
        if merchant and merchant.strip()
        else standardize_merchant(desc, max_length=merchant_max_length)
    )
    haystacks = [desc] + ([merchant.strip()] if merchant and merchant.strip() else [])

    rules: Sequence[CategoryRule] = INCOME_RULES if is_income else EXPENSE_RULES
    for rule in rules:
        if rule.merchant_pattern is not None and any(
            rule.merchant_pattern.search(h) for h in haystacks
        ):
            return CategoryAnalysis(
                category=rule.category,
                confidence=_MERCHANT_CONFIDENCE,
                is_income=is_income,
                merchant=merchant_name,
                tags=("rule-based", "merchant-pattern"),
                reasoning=f"Matched merchant pattern for {rule.category}",
            )
        hits = rule.keyword_hits(lowered)
        if merchant:
            hits += [k for k in rule.keyword_hits(merchant.lower()) if k not in hits]
        if hits:
            if is_income:
                confidence = _INCOME_KEYWORD_CONFIDENCE
            else:
                confidence = min(
                    _EXPENSE_KEYWORD_CAP, _EXPENSE_KEYWORD_BASE + 0.1 * (len(hits) - 1)
                )
            return CategoryAnalysis(
                category=rule.category,
                confidence=confidence,
                is_income=is_income,
                merchant=merchant_name,
                tags=("rule-based", "keyword-match"),
                reasoning=f"Matched keywords: {', '.join(hits)}",
            )

    return CategoryAnalysis(
        category=UNCATEGORISED,
        confidence=0.5 if is_income else 0.3,
        is_income=is_income,
        merchant=merchant_name,
        tags=("rule-based", "uncategorised"),
        reasoning="No matching patterns found",
    )


class Classifier(Protocol):
    """Anything that can propose a category or decline with ``None``."""

    def classify(
        self, description: str, amount: Decimal, merchant: str | None = None
    ) -> CategoryAnalysis | None: ...


def categorize(
    description: str,
    amount: Decimal | float,
    merchant: str | None = None,
    *,
    classifier: Classifier | None = None,
    merchant_max_length: int = DEFAULT_SETTINGS.merchant_max_length,
) -> CategoryAnalysis:
    """Categorize one transaction.

    Uses ``classifier`` when provided and falls back to
    :func:`categorize_by_rules` whenever it declines (returns ``None``).
    """

    if classifier is not None:
        verdict = classifier.classify(description, Decimal(str(amount)), merchant)
        if verdict is not None:
            return verdict
        _logger.debug("categorize:rules_fallback description=%r", description[:40])
    return categorize_by_rules(
        description, amount, merchant, merchant_max_length=merchant_max_length
    )


__all__ = [
    "ALL_CATEGORIES",
    "EXPENSE_CATEGORIES",
    "EXPENSE_RULES",
    "INCOME_CATEGORIES",
    "INCOME_RULES",
    "UNCATEGORISED",
    "CategoryRule",
    "Classifier",
    "categorize",
    "categorize_by_rules",
]
