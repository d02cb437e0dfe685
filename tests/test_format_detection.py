import pytest

from statement_ingest import InsufficientColumnsError, IngestSettings, detect_format
from statement_ingest.format_detection import (
    header_similarity,
    infer_date_hint,
    score_profile,
    select_profile,
)
from statement_ingest.bank_formats import get_profile
from statement_ingest.models import RawRow


def _rows(*rows: tuple[str, ...]) -> list[RawRow]:
    return [RawRow(line_number=i + 2, cells=r) for i, r in enumerate(rows)]


def test_known_layout_selects_profile_with_full_score():
    headers = ("Date", "Description", "Amount")
    sample = _rows(("01/03/2024", "Countdown Groceries", "-45.50"))

    mapping = detect_format(headers, sample)

    assert mapping.profile is not None
    assert mapping.profile.id == "nz-anz"
    assert mapping.profile_score == 100
    assert mapping.index_of("date") == 0
    assert mapping.index_of("description") == 1
    assert mapping.index_of("amount") == 2
    assert mapping.date_hint == "DD/MM/YYYY"
    assert mapping.confidence == pytest.approx(1.0)


def test_score_is_capped_and_pattern_points_need_sample():
    anz = get_profile("nz-anz")
    assert anz is not None
    headers = ("Date", "Description", "Amount")
    assert score_profile(anz, headers, []) == 80
    assert score_profile(anz, headers, _rows(("01/03/2024", "x", "-1.00"))) == 100


def test_month_first_sample_breaks_tie_toward_us_profile():
    headers = ("Posting Date", "Description", "Amount")
    sample = _rows(("01/31/2024", "NETFLIX.COM", "-15.99"))

    profile, score = select_profile(headers, sample)

    assert profile is not None and profile.id == "us-chase"
    assert score == 100


def test_fuzzy_resolution_without_profile():
    headers = ("Booking Dt", "Memo", "Amt")

    mapping = detect_format(headers, [])

    assert mapping.profile is None
    assert mapping.index_of("date") == 0
    assert mapping.index_of("description") == 1
    assert mapping.index_of("amount") == 2
    assert mapping.get("date").method == "fuzzy"
    assert 0.2 < mapping.get("date").confidence < 1.0


def test_profile_threshold_is_configurable():
    headers = ("Date", "Description", "Amount")
    strict = IngestSettings(profile_threshold=100)
    mapping = detect_format(headers, [], settings=strict)
    assert mapping.profile is None
    # Fuzzy matching still finds every role.
    assert mapping.found_key_roles() == ["date", "description", "amount"]


def test_split_debit_credit_columns():
    headers = ("Date", "Description", "Debit", "Credit", "Balance")
    sample = _rows(("05/03/2024", "Coffee", "4.50", "", "100.00"))

    mapping = detect_format(headers, sample)

    assert mapping.amount is None
    assert mapping.has_split_amount
    assert mapping.index_of("debit") == 2
    assert mapping.index_of("credit") == 3
    assert mapping.index_of("balance") == 4
    assert "amount" in mapping.found_key_roles()


def test_optional_reference_and_merchant_columns():
    headers = ("Date", "Amount", "Payee", "Particulars", "Reference")
    mapping = detect_format(headers, _rows(("01/02/2024", "-5.00", "Cafe", "Latte", "123")))
    assert mapping.index_of("reference") == 4
    assert mapping.index_of("description") is not None
    assert mapping.index_of("merchant") is not None
    assert mapping.index_of("merchant") != mapping.index_of("description")


def test_two_roles_are_enough():
    mapping = detect_format(("Date", "Amount", "Foo"), [])
    assert mapping.found_key_roles() == ["date", "amount"]


def test_insufficient_columns_names_headers():
    with pytest.raises(InsufficientColumnsError) as ei:
        detect_format(("Foo", "Bar", "Baz"), [])
    assert ei.value.headers == ("Foo", "Bar", "Baz")
    assert "Foo, Bar, Baz" in str(ei.value)


def test_header_similarity_scores():
    assert header_similarity("Amount", "amount") == 1.0
    assert header_similarity("Transaction Date", "date") == pytest.approx(4 / 15 * 0.9)
    assert header_similarity("Amt", "transaction amount") == 0.0
    assert header_similarity("", "date") == 0.0


@pytest.mark.parametrize(
    ("values", "expected"),
    [
        (["13/01/2024"], "DD/MM/YYYY"),
        (["01/02/2024", "01/13/2024"], "MM/DD/YYYY"),
        (["2024-01-31"], "YYYY-MM-DD"),
        (["01/02/2024"], None),
        ([], None),
    ],
)
def test_infer_date_hint(values, expected):
    assert infer_date_hint(values) == expected
