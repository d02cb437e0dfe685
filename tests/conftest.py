"""Pytest configuration for test isolation.

Settings, the classifier switch and logging levels are all read from the
environment, so a developer's shell (or a local ``.env``) could change test
behavior. An autouse fixture removes every ``STATEMENT_INGEST_*`` variable,
``OPENAI_API_KEY`` and ``DATABASE_URL`` for each test, and the shared
database engine and the CLI's logging handler are torn down afterwards.
"""

from __future__ import annotations

import os
import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

# Make sure the workspace `packages/` dir is on sys.path so `statement_ingest` is importable
_ROOT = Path(__file__).resolve().parents[1]
_PKG_DIR = _ROOT / "packages"
sys.path[:0] = [p for p in [str(_PKG_DIR), str(_ROOT)] if p not in sys.path]


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    for key in list(os.environ):
        if key.startswith("STATEMENT_INGEST_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    yield
    from statement_ingest.db import dispose_engine
    from statement_ingest.logging_setup import reset_logging

    dispose_engine()
    reset_logging()
