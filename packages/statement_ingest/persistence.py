"""Transaction store adapter.

Functions here write pipeline output to ``ingested_transactions`` and read
back the snapshot used for duplicate detection. They take an explicit
SQLAlchemy session (see :func:`statement_ingest.db.session_scope`).

Scope:
- Upsert :class:`NormalizedTransaction` rows keyed by their deterministic id.
- Load the most recent N rows in the store record shape
  (``id, transaction_date, description, amount, merchant, is_income``).
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from .db import IngestedTransaction
from .logging_setup import get_logger
from .models import NormalizedTransaction

_logger = get_logger("statement_ingest.persistence")

_UPDATABLE = (
    "transaction_date",
    "description",
    "amount",
    "is_income",
    "merchant",
    "category",
    "category_confidence",
    "source",
    "raw_record",
)


def _insert_for(session: Session) -> Any:
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert
    if dialect == "sqlite":
        return sqlite_insert
    raise RuntimeError(f"unsupported database dialect for upsert: {dialect}")


def _row_values(tx: NormalizedTransaction, source: str | None) -> dict[str, Any]:
    return {
        "id": tx.id,
        "transaction_date": date.fromisoformat(tx.date),
        "description": tx.description,
        "amount": tx.signed_amount.quantize(Decimal("0.01")),
        "is_income": tx.is_income,
        "merchant": tx.merchant or None,
        "category": tx.category,
        "category_confidence": float(tx.confidence),
        "source": source,
        "raw_record": tx.to_dict(),
    }


def upsert_transactions(
    session: Session,
    transactions: Iterable[NormalizedTransaction],
    *,
    source: str | None = None,
) -> int:
    """Insert or update transactions; returns the number of rows written.

    Idempotent: re-importing the same CSV rewrites the same ids.
    """

    payloads: dict[str, dict[str, Any]] = {}
    for tx in transactions:
        if tx.id in payloads:
            # Later rows with the same id win, matching upsert semantics.
            _logger.warning(
                "persistence:id_collision id=%s row=%d source=%s", tx.id, tx.row_number, source
            )
        payloads[tx.id] = _row_values(tx, source)
    if not payloads:
        return 0

    insert = _insert_for(session)
    stmt = insert(IngestedTransaction).values(list(payloads.values()))
    stmt = stmt.on_conflict_do_update(
        index_elements=[IngestedTransaction.id],
        set_={**{c: getattr(stmt.excluded, c) for c in _UPDATABLE}, "updated_at": func.now()},
    )
    session.execute(stmt)
    _logger.info("persistence:upsert rows=%d source=%s", len(payloads), source)
    return len(payloads)


def load_recent_snapshot(session: Session, *, limit: int = 500) -> list[dict[str, Any]]:
    """Return the ``limit`` most recent stored transactions as store records."""

    if limit <= 0:
        return []
    stmt = (
        select(IngestedTransaction)
        .order_by(
            IngestedTransaction.transaction_date.desc(),
            IngestedTransaction.created_at.desc(),
            IngestedTransaction.id,
        )
        .limit(limit)
    )
    rows = session.execute(stmt).scalars().all()
    return [
        {
            "id": r.id,
            "transaction_date": r.transaction_date.isoformat(),
            "description": r.description,
            "amount": r.amount,
            "merchant": r.merchant,
            "is_income": r.is_income,
        }
        for r in rows
    ]


__all__ = ["load_recent_snapshot", "upsert_transactions"]
