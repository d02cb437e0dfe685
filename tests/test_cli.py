from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from statement_ingest.cli import app
from tests.helpers.db import count_transactions

CSV = (
    "Date,Description,Amount\n"
    "01/03/2024,Countdown Groceries,-45.50\n"
    "02/03/2024,Salary Payment,+3000.00\n"
)

runner = CliRunner()


@pytest.fixture(autouse=True)
def _cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    # Keep a developer's .env out of the CLI runs and INFO logs out of stdout.
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("STATEMENT_INGEST_LOG_LEVEL", "WARNING")


def _write(tmp_path: Path, name: str, text: str) -> Path:
    p = tmp_path / name
    p.write_text(text, encoding="utf-8")
    return p


def test_import_renders_summary(tmp_path: Path):
    path = _write(tmp_path, "march.csv", CSV)

    result = runner.invoke(app, ["import", str(path)])

    assert result.exit_code == 0, result.output
    assert "transactions: 2" in result.output
    assert "Groceries" in result.output
    assert "Salary" in result.output


def test_import_json_output(tmp_path: Path):
    path = _write(tmp_path, "march.csv", "\ufeff" + CSV + ",,\n")

    result = runner.invoke(app, ["import", "--json", str(path)])

    assert result.exit_code == 0, result.output
    reports = json.loads(result.stdout)
    assert len(reports) == 1
    assert reports[0]["summary"]["totalTransactions"] == 2
    assert reports[0]["summary"]["successRate"] == 66.7
    assert reports[0]["source"] == str(path)


def test_import_empty_file_fails(tmp_path: Path):
    path = _write(tmp_path, "empty.csv", "")
    result = runner.invoke(app, ["import", str(path)])
    assert result.exit_code == 1
    assert "CSV file is empty" in result.output


def test_import_missing_file_fails(tmp_path: Path):
    result = runner.invoke(app, ["import", str(tmp_path / "nope.csv")])
    assert result.exit_code == 1


def test_invalid_env_configuration_fails(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("STATEMENT_INGEST_DUPLICATE_THRESHOLD", "lots")
    path = _write(tmp_path, "march.csv", CSV)
    result = runner.invoke(app, ["import", str(path)])
    assert result.exit_code == 1
    assert "STATEMENT_INGEST_DUPLICATE_THRESHOLD" in result.output


def test_detect_prints_mapping(tmp_path: Path):
    path = _write(tmp_path, "semi.csv", "Date;Description;Amount\n31/01/2024;Rent;-1.234,56\n")

    result = runner.invoke(app, ["detect", str(path)])

    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data["delimiter"] == ";"
    assert data["headers"] == ["Date", "Description", "Amount"]
    assert data["rows"] == 1
    assert data["mapping"]["roles"]["amount"]["index"] == 2


def test_detect_reports_structural_error(tmp_path: Path):
    path = _write(tmp_path, "bad.csv", "Foo,Bar\n1,2\n")
    result = runner.invoke(app, ["detect", str(path)])
    assert result.exit_code == 1
    assert "Insufficient key columns" in result.output


def test_persist_twice_flags_duplicates_and_keeps_rows_unique(tmp_path: Path):
    path = _write(tmp_path, "march.csv", CSV)
    url = f"sqlite+pysqlite:///{tmp_path / 'ingest.db'}"

    first = runner.invoke(app, ["import", "--persist", "--database-url", url, "--json", str(path)])
    assert first.exit_code == 0, first.output
    assert json.loads(first.stdout)[0]["summary"]["duplicates"] == 0

    second = runner.invoke(app, ["import", "--persist", "--database-url", url, "--json", str(path)])
    assert second.exit_code == 0, second.output
    report = json.loads(second.stdout)[0]
    exact = [d for d in report["duplicates"] if d["confidence"] == 1.0]
    assert len(exact) == 2

    assert count_transactions(url) == 2


def test_cross_file_duplicates_in_one_run(tmp_path: Path):
    a = _write(tmp_path, "a.csv", CSV)
    b = _write(tmp_path, "b.csv", "Date,Description,Amount\n01/03/2024,Countdown Groceries,-45.50\n")

    result = runner.invoke(app, ["import", "--json", str(a), str(b)])

    assert result.exit_code == 0, result.output
    first, second = json.loads(result.stdout)
    assert first["summary"]["duplicates"] == 0
    assert second["summary"]["duplicates"] == 1
