"""Prompt construction for single-transaction classification.

This module builds:
- The system instructions for the classification task.
- The user content embedding one transaction as JSON between
  ``BEGIN_TRANSACTION_JSON`` / ``END_TRANSACTION_JSON`` markers.
- The strict JSON Schema ``text`` config for the OpenAI Responses API.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from decimal import Decimal
from typing import Any

from openai.types.responses.response_format_text_json_schema_config_param import (
    ResponseFormatTextJSONSchemaConfigParam,
)

BEGIN_MARKER = "BEGIN_TRANSACTION_JSON"
END_MARKER = "END_TRANSACTION_JSON"


def serialize_transaction(description: str, amount: Decimal, merchant: str | None) -> str:
    """Serialize the fields the model sees, in a fixed order."""

    return json.dumps(
        {
            "description": description,
            "amount": f"{amount:.2f}",
            "direction": "credit" if amount > 0 else "debit",
            "merchant": merchant,
        },
        ensure_ascii=False,
    )


def build_system_instructions() -> str:
    return (
        "You categorize bank statement transactions. Choose exactly one category from the "
        "provided list. Positive amounts are income, negative amounts are expenses; only "
        "pick an income category for income. Never invent categories. Output JSON only "
        "that conforms to the specified schema."
    )


def build_user_content(
    transaction_json: str,
    *,
    expense_categories: Sequence[str],
    income_categories: Sequence[str],
) -> str:
    return (
        "Categorize the transaction below.\n\n"
        f"Expense categories: {', '.join(expense_categories)}\n"
        f"Income categories: {', '.join(income_categories)}\n\n"
        "Respond with an object containing: category, confidence (0..1), isIncome, "
        "merchant (clean display name or null), tags (short lowercase strings) and "
        "reasoning (one sentence).\n\n"
        f"{BEGIN_MARKER}\n{transaction_json}\n{END_MARKER}"
    )


def build_response_format(categories: Sequence[str]) -> ResponseFormatTextJSONSchemaConfigParam:
    """Return the strict JSON Schema config for the Responses API ``text.format``."""

    schema: dict[str, Any] = {
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "category": {"type": "string", "enum": list(categories)},
            "confidence": {"type": "number", "minimum": 0, "maximum": 1},
            "isIncome": {"type": "boolean"},
            "merchant": {"type": ["string", "null"]},
            "tags": {"type": "array", "items": {"type": "string"}},
            "reasoning": {"type": "string"},
        },
        "required": ["category", "confidence", "isIncome", "merchant", "tags", "reasoning"],
    }
    return {
        "type": "json_schema",
        "name": "transaction_category",
        "schema": schema,
        "strict": True,
    }


__all__ = [
    "BEGIN_MARKER",
    "END_MARKER",
    "build_response_format",
    "build_system_instructions",
    "build_user_content",
    "serialize_transaction",
]
