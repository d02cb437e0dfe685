import pytest

from statement_ingest import standardize_merchant
from statement_ingest.merchants import UNKNOWN_MERCHANT, clean_description


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("COUNTDOWN AUCKLAND", "Countdown"),
        ("PAK N SAVE ALBANY", "Pak'nSave"),
        ("AMAZON.COM*AB12CD", "Amazon"),
        ("SPOTIFY P1234567", "Spotify"),
        ("POS UBER EATS 123456", "Uber Eats"),
        ("EFTPOS Z ENERGY 4421", "Z Energy"),
        ("TST* Joe's Coffee 123456", "Joe's Coffee"),
        ("CARD 1234 Corner Dairy", "Corner Dairy"),
    ],
)
def test_standardize_merchant(raw, expected):
    assert standardize_merchant(raw) == expected


def test_unknown_merchant_is_cleaned_and_truncated():
    assert standardize_merchant("   ") == UNKNOWN_MERCHANT
    assert standardize_merchant("!!!") == UNKNOWN_MERCHANT
    long = "Very Long Local Business Name " * 5
    out = standardize_merchant(long, max_length=20)
    assert len(out) <= 20
    assert out.startswith("Very Long Local")


def test_clean_description_collapses_whitespace_and_punctuation():
    assert clean_description("  DIRECT DEBIT   Gym  Membership #55 ") == "Gym Membership 55"
