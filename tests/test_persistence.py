from __future__ import annotations

from collections.abc import Iterator
from datetime import date

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session

from statement_ingest import StoredTransaction, process_csv
from statement_ingest.db import Base, IngestedTransaction
from statement_ingest.persistence import load_recent_snapshot, upsert_transactions

CSV = (
    "Date,Description,Amount\n"
    "01/03/2024,Countdown Groceries,-45.50\n"
    "02/03/2024,Salary Payment,+3000.00\n"
    "03/03/2024,Netflix,-15.99\n"
)


@pytest.fixture()
def session() -> Iterator[Session]:
    engine = create_engine("sqlite://")
    Base.metadata.create_all(engine)
    with Session(engine, expire_on_commit=False) as s:
        yield s
    engine.dispose()


def test_upsert_is_idempotent(session: Session):
    report = process_csv(CSV, today=date(2024, 6, 30))

    assert upsert_transactions(session, report.transactions, source="march.csv") == 3
    session.commit()
    assert upsert_transactions(session, report.transactions, source="march.csv") == 3
    session.commit()

    rows = session.execute(select(IngestedTransaction)).scalars().all()
    assert len(rows) == 3
    salary = next(r for r in rows if r.is_income)
    assert salary.category == "Salary"
    assert float(salary.amount) == 3000.0
    groceries = next(r for r in rows if r.category == "Groceries")
    # Stored amounts are signed.
    assert float(groceries.amount) == -45.5
    assert groceries.source == "march.csv"
    assert groceries.raw_record["rowNumber"] == 2


def test_upsert_updates_existing_rows(session: Session):
    report = process_csv(CSV, today=date(2024, 6, 30))
    upsert_transactions(session, report.transactions, source="a.csv")
    session.commit()
    upsert_transactions(session, report.transactions[:1], source="b.csv")
    session.commit()

    sources = dict(session.execute(select(IngestedTransaction.id, IngestedTransaction.source)).all())
    assert sources[report.transactions[0].id] == "b.csv"
    assert sources[report.transactions[1].id] == "a.csv"


def test_upsert_nothing_returns_zero(session: Session):
    assert upsert_transactions(session, []) == 0


def test_snapshot_is_recent_first_and_limited(session: Session):
    report = process_csv(CSV, today=date(2024, 6, 30))
    upsert_transactions(session, report.transactions)
    session.commit()

    snapshot = load_recent_snapshot(session, limit=2)

    assert [r["transaction_date"] for r in snapshot] == ["2024-03-03", "2024-03-02"]
    assert set(snapshot[0]) == {
        "id",
        "transaction_date",
        "description",
        "amount",
        "merchant",
        "is_income",
    }
    for rec in snapshot:
        StoredTransaction.model_validate(rec)
    assert load_recent_snapshot(session, limit=0) == []


def test_snapshot_feeds_duplicate_detection(session: Session):
    first = process_csv(CSV, today=date(2024, 6, 30))
    upsert_transactions(session, first.transactions)
    session.commit()

    again = process_csv(CSV, existing=load_recent_snapshot(session), today=date(2024, 6, 30))

    exact = [d for d in again.duplicates if d.confidence == 1.0]
    assert len(exact) == 3
    assert {d.existing.id for d in exact} == {t.id for t in first.transactions}


def test_identical_rows_in_one_file_are_both_stored(session: Session):
    report = process_csv(
        "Date,Description,Amount\n01/03/2024,Coffee Cart,-4.50\n01/03/2024,Coffee Cart,-4.50\n",
        today=date(2024, 6, 30),
    )

    assert upsert_transactions(session, report.transactions) == 2
    session.commit()

    rows = session.execute(select(IngestedTransaction)).scalars().all()
    assert sorted(r.raw_record["rowNumber"] for r in rows) == [2, 3]


def test_snapshot_keeps_direction_so_refunds_are_not_duplicates(session: Session):
    purchase = process_csv(
        "Date,Description,Amount\n01/03/2024,Countdown Groceries,-45.50\n",
        today=date(2024, 6, 30),
    )
    upsert_transactions(session, purchase.transactions)
    session.commit()

    refund = process_csv(
        "Date,Description,Amount\n01/03/2024,Countdown Groceries,45.50\n",
        existing=load_recent_snapshot(session),
        today=date(2024, 6, 30),
    )

    assert all(d.confidence < 1.0 for d in refund.duplicates)
    assert "exact match" not in [r for d in refund.duplicates for r in d.reasons]
