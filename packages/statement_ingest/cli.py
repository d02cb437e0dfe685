"""CLI for the ``statement_ingest`` package.

This module exposes callable command handlers (``cmd_import``,
``cmd_detect``) and a Typer-based console interface. Environment variables
(``OPENAI_API_KEY``, ``DATABASE_URL``, ``STATEMENT_INGEST_*``) are loaded
from a local ``.env`` using ``python-dotenv`` before delegating to command
logic. Business logic lives in :mod:`statement_ingest.api`.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Annotated, Any

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from typer.models import ArgumentInfo

from .api import inspect_csv, process_batch
from .config import IngestSettings
from .errors import IngestError
from .logging_setup import configure_logging
from .models import ProcessingReport


def _read_csv_text(path: Path) -> str:
    # utf-8-sig drops a leading BOM, which some bank exports include.
    with open(path, encoding="utf-8-sig", newline="") as f:
        return f.read()


def _load_files(paths: list[Path]) -> list[tuple[str, str]] | None:
    files: list[tuple[str, str]] = []
    for p in paths:
        try:
            files.append((str(p), _read_csv_text(p)))
        except FileNotFoundError:
            print(f"Error: File not found: {p}", file=sys.stderr)
            return None
        except PermissionError:
            print(f"Error: Permission denied: {p}", file=sys.stderr)
            return None
        except UnicodeDecodeError as e:
            print(f"Error: {p} is not UTF-8 text: {e}", file=sys.stderr)
            return None
    return files


def _render_report(console: Console, report: ProcessingReport) -> None:
    s = report.summary
    title = escape(report.source or "<stdin>")
    if report.errors:
        console.print(f"[red]Error:[/red] {title}")
        for e in report.errors:
            console.print(f"  {escape(e)}", highlight=False)
        return

    console.print(
        Panel(
            "\n".join(
                [
                    f"bank: {escape(s.bank_name or 'unknown')} "
                    f"(confidence {s.format_confidence:.0%}), delimiter {s.delimiter!r}",
                    f"rows: {s.total_rows}  transactions: {s.total_transactions}  "
                    f"skipped: {s.skipped_rows}  success: {s.success_rate}%",
                    f"dates: {s.date_range.start} .. {s.date_range.end}  "
                    f"net: {s.net_amount:.2f}  possible duplicates: {s.duplicates}",
                ]
            ),
            title=title,
            border_style="green" if not s.skipped_rows else "yellow",
        ),
        highlight=False,
    )
    if report.transactions:
        table = Table(show_edge=False)
        table.add_column("Date")
        table.add_column("Amount", justify="right")
        table.add_column("Category")
        table.add_column("Description", overflow="fold")
        for t in report.transactions:
            sign = "+" if t.is_income else "-"
            table.add_row(t.date, f"{sign}{t.amount:.2f}", t.category, escape(t.description))
        console.print(table)
    for sk in report.skipped_rows:
        console.print(
            f"[yellow]skipped row {sk.row_number}:[/yellow] {escape(sk.reason)}", highlight=False
        )
    for d in report.duplicates:
        console.print(
            f"[magenta]possible duplicate:[/magenta] {d.transaction.id} ~ "
            f"{escape(d.existing.id)} ({d.confidence:.0%}: {escape(', '.join(d.reasons))})",
            highlight=False,
        )


def cmd_import(
    paths: list[Path],
    *,
    persist: bool = False,
    database_url: str | None = None,
    snapshot_limit: int = 500,
    use_classifier: bool | None = None,
    as_json: bool = False,
) -> int:
    """Process CSV files in order and optionally persist the transactions.

    Returns 1 when any file could not be read or produced a file-level error.
    """

    try:
        overrides: dict[str, Any] = {}
        if use_classifier is not None:
            overrides["use_classifier"] = use_classifier
        settings = IngestSettings.from_env(**overrides)
    except ValueError as e:
        print(f"Error: invalid configuration: {e}", file=sys.stderr)
        return 1

    files = _load_files(paths)
    if files is None:
        return 1

    use_store = persist or database_url is not None
    snapshot: list[dict[str, Any]] = []
    if use_store:
        try:
            from .db import session_scope
            from .persistence import load_recent_snapshot

            with session_scope(database_url=database_url) as session:
                snapshot = load_recent_snapshot(session, limit=snapshot_limit)
        except Exception as e:
            print(f"Error: failed to load stored transactions: {e}", file=sys.stderr)
            return 1

    reports = process_batch(files, existing=snapshot, settings=settings)

    if persist:
        try:
            from .db import session_scope
            from .persistence import upsert_transactions

            with session_scope(database_url=database_url) as session:
                for report in reports:
                    upsert_transactions(session, report.transactions, source=report.source)
        except Exception as e:
            print(f"Error: persistence (upsert) failed: {e}", file=sys.stderr)
            return 1

    if as_json:
        print(json.dumps([r.to_dict() for r in reports], indent=2, ensure_ascii=False))
    else:
        console = Console()
        for report in reports:
            _render_report(console, report)

    return 1 if any(r.errors for r in reports) else 0


def cmd_detect(path: Path) -> int:
    """Print the delimiter, headers and column mapping detected for one file."""

    files = _load_files([path])
    if files is None:
        return 1
    try:
        settings = IngestSettings.from_env()
    except ValueError as e:
        print(f"Error: invalid configuration: {e}", file=sys.stderr)
        return 1
    try:
        tokenized, mapping = inspect_csv(files[0][1], settings=settings)
    except IngestError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(
        json.dumps(
            {
                "delimiter": tokenized.delimiter,
                "headerLine": tokenized.header_line,
                "headers": list(tokenized.headers),
                "rows": len(tokenized.rows),
                "mapping": mapping.to_dict(),
            },
            indent=2,
            ensure_ascii=False,
        )
    )
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Import bank statement CSVs: detect the layout, normalize dates and amounts, "
        "categorize and flag likely duplicates. Loads a local .env before running."
    ),
)

# Module-level argument objects to satisfy ruff B008 (no calls in parameter
# defaults).
CSV_FILES_ARGUMENT: ArgumentInfo = typer.Argument(
    ..., help="CSV files to import, processed in the given order", dir_okay=False
)
CSV_FILE_ARGUMENT: ArgumentInfo = typer.Argument(
    ..., help="CSV file to inspect", dir_okay=False
)


@app.command("import")
def import_cmd(
    csv_paths: Annotated[list[Path], CSV_FILES_ARGUMENT],
    *,
    persist: bool = typer.Option(False, help="Upsert the parsed transactions to the database."),
    database_url: str | None = typer.Option(
        None, help="Override DATABASE_URL (falls back to env var)."
    ),
    snapshot_limit: int = typer.Option(
        500, min=0, help="Number of recent stored transactions to check duplicates against."
    ),
    use_classifier: bool | None = typer.Option(
        None,
        "--use-classifier/--no-classifier",
        help="Categorize with OpenAI (falls back to rules). Defaults to env setting.",
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the full reports as JSON."),
) -> None:
    code = cmd_import(
        csv_paths,
        persist=persist,
        database_url=database_url,
        snapshot_limit=snapshot_limit,
        use_classifier=use_classifier,
        as_json=as_json,
    )
    raise typer.Exit(code)


@app.command("detect")
def detect_cmd(csv_path: Annotated[Path, CSV_FILE_ARGUMENT]) -> None:
    raise typer.Exit(cmd_detect(csv_path))


@app.callback()
def _root(
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        help="Logging level (DEBUG, INFO, ...). Defaults to STATEMENT_INGEST_LOG_LEVEL or INFO.",
    ),
) -> None:
    """Loads ``.env`` from the current working directory (without overriding
    already-set variables) and configures logging for every subcommand."""

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging(log_level)


if __name__ == "__main__":  # pragma: no cover
    app()
