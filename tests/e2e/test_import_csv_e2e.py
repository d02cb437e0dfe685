# ruff: noqa: E402, I001
from __future__ import annotations

import sys
from datetime import date
from pathlib import Path
from typing import Any

import pytest

# Make sure the workspace `packages/` dir is on sys.path so `statement_ingest` is importable
_ROOT = Path(__file__).resolve().parents[2]
_PKG_DIR = _ROOT / "packages"
sys.path[:0] = [p for p in [str(_PKG_DIR), str(_ROOT)] if p not in sys.path]

from statement_ingest import IngestSettings, process_csv  # noqa: E402
from statement_ingest.db import session_scope  # noqa: E402
from statement_ingest.persistence import load_recent_snapshot, upsert_transactions  # noqa: E402
import statement_ingest.classifier as classifier_mod  # noqa: E402

from tests.helpers.db import bootstrap_sqlite_db, stored_categories  # noqa: E402
from tests.helpers.openai_stub import OpenAIStub, verdict_text  # noqa: E402

CSV_PATH = Path(__file__).resolve().parents[1] / "data/anz_march_2024.csv"


def test_e2e_import_csv_with_rules():
    report = process_csv(CSV_PATH.read_text(encoding="utf-8"), source=CSV_PATH.name)

    assert report.ok
    assert len(report.transactions) == 2
    assert len(report.skipped_rows) == 1
    assert report.skipped_rows[0].row_number == 4

    groceries, salary = report.transactions
    assert (groceries.category, groceries.is_income) == ("Groceries", False)
    assert (salary.category, salary.is_income) == ("Salary", True)
    assert [t.date for t in report.transactions] == ["2024-03-01", "2024-03-02"]
    assert report.summary.success_rate == 66.7
    assert report.summary.bank_id == "nz-anz"


def test_e2e_classifier_then_store_then_reimport(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    # -------------------------
    # Stub the classification service
    # -------------------------
    def decide(tx: dict[str, Any]) -> str:
        if tx["direction"] == "credit":
            return verdict_text("Salary", confidence=0.97, is_income=True, merchant="Employer")
        return verdict_text("Groceries", confidence=0.96, merchant="Countdown")

    stub = OpenAIStub(decide)
    monkeypatch.setattr(classifier_mod, "OpenAI", stub.factory())
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    settings = IngestSettings(use_classifier=True)
    text = CSV_PATH.read_text(encoding="utf-8")

    # -------------------------
    # First import, persisted
    # -------------------------
    db_url = bootstrap_sqlite_db(tmp_path / "ingest-e2e.db")
    first = process_csv(text, settings=settings, source=CSV_PATH.name, today=date(2024, 6, 30))
    assert all("ai" in t.tags for t in first.transactions)
    assert len(stub.calls) == 2

    with session_scope(database_url=db_url) as session:
        upsert_transactions(session, first.transactions, source=first.source)

    assert stored_categories(db_url) == {
        "Countdown Groceries": "Groceries",
        "Salary Payment": "Salary",
    }

    # -------------------------
    # Re-import against the stored snapshot
    # -------------------------
    with session_scope(database_url=db_url) as session:
        snapshot = load_recent_snapshot(session)
    again = process_csv(text, existing=snapshot, settings=settings, today=date(2024, 6, 30))

    exact = {d.transaction.id: d.existing.id for d in again.duplicates if d.confidence == 1.0}
    assert exact == {t.id: t.id for t in first.transactions}
    assert len(again.transactions) == 2
