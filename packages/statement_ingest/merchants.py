"""Merchant name standardization from raw bank descriptions."""

from __future__ import annotations

import re
import unicodedata

from .config import DEFAULT_SETTINGS

# Card-processor and bank prefixes that precede the real merchant name.
_PREFIXES = re.compile(
    r"^(?:TST\*|SQ \*|SQ\*|AMZN MKTP|PAYPAL \*|PAYPAL\*|POS |ATM |EFTPOS |VISA PURCHASE |"
    r"PURCHASE |PAYMENT |DEBIT |CREDIT |CARD \d{4} |DIRECT DEBIT |DD )+",
    re.IGNORECASE,
)
# Trailing "*REF123" style codes and long digit runs (card/terminal numbers).
_TRAILING_REF = re.compile(r"(?:\s*\*\w+|\s+\d{4,}[\w-]*)+$")
_NON_NAME = re.compile(r"[^\w\s&'-]")

# Case-insensitive substring → canonical display name. First hit wins.
MERCHANT_ALIASES: tuple[tuple[str, str], ...] = (
    ("AMZN", "Amazon"),
    ("AMAZON", "Amazon"),
    ("SPOTIFY", "Spotify"),
    ("NETFLIX", "Netflix"),
    ("UBER EATS", "Uber Eats"),
    ("UBER", "Uber"),
    ("MCDONALD", "McDonald's"),
    ("STARBUCKS", "Starbucks"),
    ("PAYPAL", "PayPal"),
    ("COUNTDOWN", "Countdown"),
    ("PAKNSAVE", "Pak'nSave"),
    ("PAK N SAVE", "Pak'nSave"),
    ("NEW WORLD", "New World"),
    ("WOOLWORTHS", "Woolworths"),
    ("Z ENERGY", "Z Energy"),
)

UNKNOWN_MERCHANT = "Unknown Merchant"


def clean_description(description: str) -> str:
    """Strip POS prefixes, trailing reference codes and stray punctuation."""

    s = unicodedata.normalize("NFKC", description or "")
    s = " ".join(s.split())
    s = _PREFIXES.sub("", s)
    s = _TRAILING_REF.sub("", s)
    s = _NON_NAME.sub("", s)
    return " ".join(s.split()).strip()


def standardize_merchant(
    description: str,
    *,
    max_length: int = DEFAULT_SETTINGS.merchant_max_length,
) -> str:
    """Return a display merchant name for ``description``.

    Known merchants map to their canonical name; anything else is the cleaned
    text truncated to ``max_length`` characters.
    """

    cleaned = clean_description(description)
    upper = cleaned.upper()
    for needle, name in MERCHANT_ALIASES:
        if needle in upper:
            return name
    return cleaned[:max_length].strip() or UNKNOWN_MERCHANT


__all__ = ["MERCHANT_ALIASES", "UNKNOWN_MERCHANT", "clean_description", "standardize_merchant"]
