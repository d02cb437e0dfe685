"""Tunable settings for the ingestion pipeline.

All thresholds are empirical. They live on an explicit, immutable settings
object that callers pass into :func:`statement_ingest.api.process_csv` rather
than module globals, so two concurrent imports never share mutable state.

Environment overrides (read only by :meth:`IngestSettings.from_env`):

``STATEMENT_INGEST_PROFILE_THRESHOLD``      int, bank profile score cut-off (default 50)
``STATEMENT_INGEST_FUZZY_THRESHOLD``        float, fuzzy header match floor (default 0.2)
``STATEMENT_INGEST_DUPLICATE_THRESHOLD``    float, duplicate report cut-off (default 0.7)
``STATEMENT_INGEST_AMOUNT_TOLERANCE``       float, "near amount" band (default 1.0)
``STATEMENT_INGEST_USE_CLASSIFIER``         bool, enable the OpenAI categorizer (default off)
``STATEMENT_INGEST_CLASSIFIER_MODEL``       str, Responses API model (default ``gpt-5``)
``STATEMENT_INGEST_CLASSIFIER_TIMEOUT``     float seconds (default 10)
"""

from __future__ import annotations

import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass, fields, replace
from typing import Any

_ENV_PREFIX = "STATEMENT_INGEST_"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def _parse_bool(raw: str) -> bool:
    s = raw.strip().lower()
    if s in _TRUE:
        return True
    if s in _FALSE:
        return False
    raise ValueError(f"expected a boolean, got {raw!r}")


@dataclass(frozen=True, slots=True)
class IngestSettings:
    """Immutable pipeline configuration. Defaults mirror the bank importer."""

    # Tokenizer
    delimiter_sample_lines: int = 5
    header_scan_lines: int = 10

    # Format detection
    profile_threshold: int = 50
    fuzzy_threshold: float = 0.2

    # Normalization
    description_max_length: int = 200
    merchant_max_length: int = 50

    # Duplicate detection
    duplicate_threshold: float = 0.7
    amount_tolerance: float = 1.0
    date_window_days: int = 1

    # Optional AI categorization
    use_classifier: bool = False
    classifier_model: str = "gpt-5"
    classifier_timeout: float = 10.0

    def __post_init__(self) -> None:
        if self.delimiter_sample_lines <= 0 or self.header_scan_lines <= 0:
            raise ValueError("sample/scan line counts must be positive")
        if not 0.0 <= self.fuzzy_threshold <= 1.0:
            raise ValueError("fuzzy_threshold must be within [0,1]")
        if not 0.0 <= self.duplicate_threshold <= 1.0:
            raise ValueError("duplicate_threshold must be within [0,1]")
        if self.classifier_timeout <= 0:
            raise ValueError("classifier_timeout must be positive")
        if self.description_max_length <= 0 or self.merchant_max_length <= 0:
            raise ValueError("maximum lengths must be positive")

    @classmethod
    def from_env(
        cls, environ: Mapping[str, str] | None = None, **overrides: Any
    ) -> IngestSettings:
        """Build settings from ``STATEMENT_INGEST_*`` variables.

        Explicit keyword ``overrides`` win over the environment. Malformed
        values raise ``ValueError`` naming the offending variable.
        """

        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        for f in fields(cls):
            key = _ENV_PREFIX + f.name.upper()
            raw = env.get(key)
            if raw is None:
                continue
            conv: Callable[[str], Any]
            if f.type == "bool":
                conv = _parse_bool
            elif f.type == "int":
                conv = int
            elif f.type == "float":
                conv = float
            else:
                conv = str.strip
            try:
                values[f.name] = conv(raw)
            except ValueError as exc:
                raise ValueError(f"invalid value for {key}: {raw!r}") from exc
        values.update(overrides)
        return cls(**values)

    def with_overrides(self, **changes: Any) -> IngestSettings:
        return replace(self, **changes)


DEFAULT_SETTINGS = IngestSettings()


__all__ = ["IngestSettings", "DEFAULT_SETTINGS"]
