import io
import logging

import pytest

from statement_ingest import process_batch
from statement_ingest.logging_setup import (
    configure_logging,
    get_logger,
    resolve_level,
    source_context,
)


def test_resolve_level_order(monkeypatch: pytest.MonkeyPatch):
    assert resolve_level(logging.DEBUG) == logging.DEBUG
    assert resolve_level("warning") == logging.WARNING
    assert resolve_level("10") == 10
    assert resolve_level() == logging.INFO
    monkeypatch.setenv("STATEMENT_INGEST_LOG_LEVEL", "ERROR")
    assert resolve_level() == logging.ERROR
    assert resolve_level("nonsense") == logging.ERROR


def test_configure_once_and_tag_source():
    buf = io.StringIO()
    configure_logging("INFO", fmt="%(source)s|%(message)s", stream=buf)
    configure_logging("DEBUG", stream=io.StringIO())

    log = get_logger("statement_ingest.test")
    log.debug("hidden")
    log.info("outside")
    with source_context("march.csv"):
        log.info("inside")

    assert buf.getvalue().splitlines() == ["-|outside", "march.csv|inside"]


def test_batch_logs_carry_each_file_name():
    buf = io.StringIO()
    configure_logging("INFO", fmt="%(source)s %(message)s", stream=buf)
    csv_text = "Date,Description,Amount\n01/03/2024,Coffee,-4.50\n"

    process_batch([("a.csv", csv_text), ("b.csv", "")])

    lines = buf.getvalue().splitlines()
    assert any(line.startswith("a.csv tokenize:done") for line in lines)
    assert any(line.startswith("b.csv process_csv:failed") for line in lines)
