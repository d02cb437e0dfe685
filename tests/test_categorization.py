from decimal import Decimal

import pytest

from statement_ingest import categorize
from statement_ingest.categorization import (
    ALL_CATEGORIES,
    EXPENSE_CATEGORIES,
    EXPENSE_RULES,
    INCOME_CATEGORIES,
    INCOME_RULES,
    UNCATEGORISED,
    categorize_by_rules,
)
from statement_ingest.models import CategoryAnalysis


def test_rule_categories_belong_to_vocabulary():
    assert {r.category for r in EXPENSE_RULES} <= set(EXPENSE_CATEGORIES)
    assert {r.category for r in INCOME_RULES} <= set(INCOME_CATEGORIES)
    assert len(ALL_CATEGORIES) == len(set(ALL_CATEGORIES))


def test_merchant_pattern_scores_highest():
    out = categorize_by_rules("Countdown Groceries", Decimal("-45.50"))
    assert out.category == "Groceries"
    assert out.is_income is False
    assert out.confidence == pytest.approx(0.9)
    assert out.merchant == "Countdown"
    assert "merchant-pattern" in out.tags
    assert out.source == "rules"


def test_income_is_gated_by_sign():
    salary = categorize_by_rules("Salary Payment", Decimal("3000.00"))
    assert salary.category == "Salary"
    assert salary.is_income is True

    # A grocery merchant with a positive amount is a refund, not groceries.
    refund = categorize_by_rules("Countdown refund", Decimal("30"))
    assert refund.category == "Refunds"
    assert refund.confidence == pytest.approx(0.8)
    assert "keyword-match" in refund.tags


def test_expense_keyword_confidence_grows_with_hits():
    one = categorize_by_rules("Local cafe", -12)
    two = categorize_by_rules("Local cafe and restaurant", -12)
    many = categorize_by_rules("Local cafe restaurant sushi bar takeaway", -12)
    assert one.category == two.category == many.category == "Dining Out"
    assert one.confidence == pytest.approx(0.7)
    assert two.confidence == pytest.approx(0.8)
    assert many.confidence == pytest.approx(0.85)


def test_keywords_match_whole_words_only():
    # "pay" is a salary keyword but must not fire inside "paypal".
    out = categorize_by_rules("Paypal transfer from friend", 20)
    assert out.category != "Salary"


def test_no_match_is_uncategorised():
    expense = categorize_by_rules("Mystery thing", -10)
    income = categorize_by_rules("Gift from Gran", 50)
    assert (expense.category, expense.confidence) == (UNCATEGORISED, pytest.approx(0.3))
    assert (income.category, income.confidence) == (UNCATEGORISED, pytest.approx(0.5))
    assert income.is_income is True


def test_merchant_hint_is_used():
    out = categorize_by_rules("Card purchase 4421", -30, merchant="NETFLIX.COM")
    assert out.category == "Entertainment"
    assert out.merchant == "Netflix"


class _FixedClassifier:
    def __init__(self, result: CategoryAnalysis | None) -> None:
        self.result = result
        self.seen: list[tuple[str, Decimal, str | None]] = []

    def classify(self, description, amount, merchant=None):
        self.seen.append((description, amount, merchant))
        return self.result


def test_categorize_prefers_classifier_and_falls_back():
    ai = CategoryAnalysis(
        category="Shopping",
        confidence=0.97,
        is_income=False,
        merchant="Kmart",
        tags=("ai",),
        reasoning="store",
        source="ai",
    )
    clf = _FixedClassifier(ai)
    assert categorize("KMART 123", -20, classifier=clf) is ai
    assert clf.seen == [("KMART 123", Decimal("-20"), None)]

    declining = _FixedClassifier(None)
    out = categorize("Countdown Groceries", -45.5, classifier=declining)
    assert out.category == "Groceries"
    assert out.source == "rules"
