"""Catalog of known bank CSV export layouts.

Entries are read-only reference data. Header synonyms are lower-case and
matched by containment against lower-cased header cells, so ``"date"`` also
matches ``"Transaction Date"``. Add a bank by appending a
:class:`~statement_ingest.models.BankFormatProfile` to ``BANK_FORMATS``.
"""

from __future__ import annotations

import re

from .models import BankFormatProfile

_NUMERIC_SLASH_OR_DASH_DATE = re.compile(r"^\d{1,2}[/\-]\d{1,2}[/\-]\d{4}$")
_NUMERIC_SLASH_DATE = re.compile(r"^\d{1,2}/\d{1,2}/\d{4}$")
_DMY_OR_ISO = re.compile(r"^(\d{1,2}/\d{1,2}/\d{4}|\d{4}-\d{2}-\d{2})$")

_AMOUNT_DOLLAR = re.compile(r"^-?\$?[\d,]+\.?\d*$")
_AMOUNT_PLAIN = re.compile(r"^-?[\d,]+\.?\d*$")
_AMOUNT_POUND = re.compile(r"^-?£?[\d,]+\.?\d*$")

_NEG_MINUS = re.compile(r"^-")
_NEG_MINUS_OR_BRACKETS = re.compile(r"^-|\(.*\)$")


BANK_FORMATS: tuple[BankFormatProfile, ...] = (
    # New Zealand
    BankFormatProfile(
        id="nz-anz",
        name="ANZ New Zealand",
        country="NZ",
        date_formats=("DD/MM/YYYY", "DD-MM-YYYY"),
        date_headers=("date", "transaction date", "date processed"),
        description_headers=("description", "details", "transaction details"),
        amount_headers=("amount", "debit", "credit", "value"),
        balance_headers=("balance", "running balance"),
        reference_headers=("reference", "ref", "transaction id"),
        date_pattern=_NUMERIC_SLASH_OR_DASH_DATE,
        amount_pattern=_AMOUNT_DOLLAR,
        negative_pattern=_NEG_MINUS_OR_BRACKETS,
    ),
    BankFormatProfile(
        id="nz-asb",
        name="ASB Bank",
        country="NZ",
        date_formats=("DD/MM/YYYY",),
        date_headers=("date", "transaction date", "processed date"),
        description_headers=("description", "particulars", "other party"),
        amount_headers=("amount", "debit amount", "credit amount"),
        balance_headers=("balance",),
        reference_headers=("reference", "analysis code", "code"),
        date_pattern=_NUMERIC_SLASH_DATE,
        amount_pattern=_AMOUNT_PLAIN,
        negative_pattern=_NEG_MINUS,
    ),
    BankFormatProfile(
        id="nz-bnz",
        name="Bank of New Zealand",
        country="NZ",
        date_formats=("DD/MM/YYYY", "YYYY-MM-DD"),
        date_headers=("date", "transaction date", "value date"),
        description_headers=("description", "transaction type", "details"),
        amount_headers=("amount", "debit", "credit"),
        balance_headers=("balance", "account balance"),
        reference_headers=("reference", "transaction reference"),
        date_pattern=_DMY_OR_ISO,
        amount_pattern=_AMOUNT_PLAIN,
        negative_pattern=_NEG_MINUS,
    ),
    BankFormatProfile(
        id="nz-westpac",
        name="Westpac New Zealand",
        country="NZ",
        date_formats=("DD/MM/YYYY",),
        date_headers=("date", "transaction date"),
        description_headers=("transaction details", "description", "narrative"),
        amount_headers=("amount", "credit/debit amount"),
        balance_headers=("balance", "running balance"),
        reference_headers=("reference",),
        date_pattern=_NUMERIC_SLASH_DATE,
        amount_pattern=_AMOUNT_PLAIN,
        negative_pattern=_NEG_MINUS,
    ),
    BankFormatProfile(
        id="nz-kiwibank",
        name="Kiwibank",
        country="NZ",
        date_formats=("DD/MM/YYYY", "DD-MM-YYYY"),
        date_headers=("date", "transaction date"),
        description_headers=("description", "memo", "payee"),
        amount_headers=("amount",),
        balance_headers=("balance",),
        reference_headers=("reference", "code"),
        date_pattern=_NUMERIC_SLASH_OR_DASH_DATE,
        amount_pattern=_AMOUNT_PLAIN,
        negative_pattern=_NEG_MINUS,
    ),
    # Australia
    BankFormatProfile(
        id="au-cba",
        name="Commonwealth Bank",
        country="AU",
        date_formats=("DD/MM/YYYY",),
        date_headers=("date", "transaction date"),
        description_headers=("description", "transaction description"),
        amount_headers=("amount", "debit amount", "credit amount"),
        balance_headers=("balance", "account balance"),
        reference_headers=("reference", "transaction id"),
        date_pattern=_NUMERIC_SLASH_DATE,
        amount_pattern=_AMOUNT_DOLLAR,
        negative_pattern=_NEG_MINUS_OR_BRACKETS,
    ),
    # United Kingdom
    BankFormatProfile(
        id="uk-hsbc",
        name="HSBC UK",
        country="UK",
        date_formats=("DD/MM/YYYY", "DD-MM-YYYY"),
        date_headers=("date", "transaction date", "posting date"),
        description_headers=("description", "transaction description", "details"),
        amount_headers=("amount", "debit amount", "credit amount", "paid out", "paid in"),
        balance_headers=("balance", "account balance"),
        reference_headers=("reference", "transaction reference"),
        date_pattern=_NUMERIC_SLASH_OR_DASH_DATE,
        amount_pattern=_AMOUNT_POUND,
        negative_pattern=_NEG_MINUS,
    ),
    # United States
    BankFormatProfile(
        id="us-chase",
        name="Chase Bank",
        country="US",
        date_formats=("MM/DD/YYYY",),
        date_headers=("posting date", "post date", "transaction date", "date"),
        description_headers=("description", "transaction description"),
        amount_headers=("amount", "debit", "credit"),
        balance_headers=("balance", "running balance"),
        reference_headers=("reference", "check number", "check or slip #"),
        date_pattern=_NUMERIC_SLASH_DATE,
        amount_pattern=_AMOUNT_DOLLAR,
        negative_pattern=_NEG_MINUS,
    ),
)


def get_profile(profile_id: str) -> BankFormatProfile | None:
    key = profile_id.strip().lower()
    for profile in BANK_FORMATS:
        if profile.id == key:
            return profile
    return None


__all__ = ["BANK_FORMATS", "get_profile"]
