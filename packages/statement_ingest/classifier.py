"""Optional OpenAI-backed transaction classifier.

Public API:
    - :class:`OpenAIClassifier`
    - :func:`build_classifier`

The classifier is best effort. Every failure (missing API key, transport
error, timeout, non-JSON output, schema violation, unknown category or an
income/expense mismatch) makes :meth:`OpenAIClassifier.classify` return
``None`` so the caller falls back to the rule-based categorizer. There are no
retries; the client is created with ``max_retries=0`` and a hard timeout so
a single row never blocks the pipeline for long.

No side effects occur at import time (no client creation, no environment
reads).
"""

from __future__ import annotations

import json
import os
import re
import time
from collections.abc import Mapping
from decimal import Decimal
from typing import Any

import openai
from openai import OpenAI
from pydantic import ValidationError

from . import prompting
from .categorization import EXPENSE_CATEGORIES, INCOME_CATEGORIES
from .config import DEFAULT_SETTINGS, IngestSettings
from .logging_setup import get_logger
from .merchants import standardize_merchant
from .models import CategoryAnalysis, ClassifierVerdict

_logger = get_logger("statement_ingest.classifier")

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def _extract_response_text(resp: Any) -> str:
    """Locate the text payload on a Responses SDK result.

    Prefers ``resp.output_text``; falls back to ``resp.output[0].content[0].text``.
    Raises ``ValueError`` when no text is present.
    """

    text: str | None = getattr(resp, "output_text", None)
    if not text:
        output = getattr(resp, "output", None)
        content = getattr(output[0], "content", None) if output else None
        if content:
            txt_obj = getattr(content[0], "text", None)
            if isinstance(txt_obj, str):
                text = txt_obj
            else:
                maybe_val = getattr(txt_obj, "value", None)
                if isinstance(maybe_val, str):
                    text = maybe_val
    if not text or not isinstance(text, str):
        raise ValueError("Unexpected Responses API shape; unable to locate text output")
    return text


def parse_verdict(text: str) -> ClassifierVerdict:
    """Pull the first ``{...}`` object out of free text and validate it.

    Raises ``ValueError`` (or pydantic ``ValidationError``) on malformed output.
    """

    m = _JSON_OBJECT.search(text)
    if m is None:
        raise ValueError("classifier output contained no JSON object")
    try:
        decoded: Mapping[str, Any] = json.loads(m.group(0))
    except json.JSONDecodeError as e:
        raise ValueError("classifier output was not valid JSON") from e
    if not isinstance(decoded, Mapping):
        raise ValueError("classifier output was not a JSON object")
    return ClassifierVerdict.model_validate(decoded)


def _create_client(timeout: float) -> OpenAI:
    return OpenAI(timeout=timeout, max_retries=0)


class OpenAIClassifier:
    """Single-transaction classifier over the OpenAI Responses API.

    Verdicts are memoized per ``(description, direction)`` for the lifetime
    of the instance. After the first transport failure the instance stops
    calling the service and declines every remaining transaction.
    """

    def __init__(
        self,
        *,
        model: str = DEFAULT_SETTINGS.classifier_model,
        timeout: float = DEFAULT_SETTINGS.classifier_timeout,
        merchant_max_length: int = DEFAULT_SETTINGS.merchant_max_length,
        client: OpenAI | None = None,
    ) -> None:
        self._model = model
        self._timeout = timeout
        self._merchant_max_length = merchant_max_length
        self._client = client
        self._disabled = False
        self._memo: dict[tuple[str, bool], CategoryAnalysis | None] = {}
        self.calls = 0
        self.failures = 0

    @property
    def disabled(self) -> bool:
        return self._disabled

    def _get_client(self) -> OpenAI:
        if self._client is None:
            self._client = _create_client(self._timeout)
        return self._client

    def classify(
        self, description: str, amount: Decimal, merchant: str | None = None
    ) -> CategoryAnalysis | None:
        if self._disabled:
            return None
        is_income = amount > 0
        key = (" ".join(description.split()).casefold(), is_income)
        if key in self._memo:
            return self._memo[key]

        allowed = INCOME_CATEGORIES if is_income else EXPENSE_CATEGORIES
        user_content = prompting.build_user_content(
            prompting.serialize_transaction(description, amount, merchant),
            expense_categories=EXPENSE_CATEGORIES,
            income_categories=INCOME_CATEGORIES,
        )
        t0 = time.perf_counter()
        self.calls += 1
        try:
            resp = self._get_client().responses.create(
                model=self._model,
                instructions=prompting.build_system_instructions(),
                input=user_content,
                text={"format": prompting.build_response_format(EXPENSE_CATEGORIES
                                                                + INCOME_CATEGORIES)},
            )
            verdict = parse_verdict(_extract_response_text(resp))
        except openai.OpenAIError as e:
            self.failures += 1
            self._disabled = True
            _logger.warning(
                "classifier:disabled latency_ms=%.2f error=%s",
                (time.perf_counter() - t0) * 1000.0,
                e.__class__.__name__,
            )
            return None
        except (ValueError, ValidationError) as e:
            self.failures += 1
            _logger.warning("classifier:bad_output error=%s detail=%s", e.__class__.__name__, e)
            self._memo[key] = None
            return None

        if verdict.category not in allowed or verdict.is_income != is_income:
            self.failures += 1
            _logger.warning(
                "classifier:rejected category=%r is_income=%s amount_sign_income=%s",
                verdict.category,
                verdict.is_income,
                is_income,
            )
            self._memo[key] = None
            return None

        merchant_name = (verdict.merchant or "").strip()[: self._merchant_max_length].strip()
        if not merchant_name:
            merchant_name = standardize_merchant(
                merchant or description, max_length=self._merchant_max_length
            )
        analysis = CategoryAnalysis(
            category=verdict.category,
            confidence=verdict.confidence,
            is_income=is_income,
            merchant=merchant_name,
            tags=tuple(verdict.tags),
            reasoning=verdict.reasoning,
            source="ai",
        )
        _logger.debug(
            "classifier:done category=%s confidence=%.2f latency_ms=%.2f",
            analysis.category,
            analysis.confidence,
            (time.perf_counter() - t0) * 1000.0,
        )
        self._memo[key] = analysis
        return analysis


def build_classifier(
    settings: IngestSettings = DEFAULT_SETTINGS,
    *,
    environ: Mapping[str, str] | None = None,
) -> OpenAIClassifier | None:
    """Return a classifier when enabled and an API key is configured, else ``None``."""

    if not settings.use_classifier:
        return None
    env = os.environ if environ is None else environ
    if not env.get("OPENAI_API_KEY"):
        _logger.warning("classifier:skipped reason=missing_openai_api_key")
        return None
    return OpenAIClassifier(
        model=settings.classifier_model,
        timeout=settings.classifier_timeout,
        merchant_max_length=settings.merchant_max_length,
    )


__all__ = ["OpenAIClassifier", "build_classifier", "parse_verdict"]
