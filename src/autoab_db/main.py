import csv
import json
from pathlib import Path
from typing import Annotated, Any, NoReturn

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from typer import Argument, Exit, Option, Typer

from .config import get_settings, resolve_db_path
from .errors import AutoabError, PartialBatchFailure, ValidationError
from .logging_setup import setup_logging
from .search.query import RecordQuery, RecordQueryEngine
from .services import BiomarkerService, RecordCatalog
from .storage import DuckDBStorage

app = Typer(help="Autoantibody reference database.")
console = Console()

DbPathOption = Annotated[
    str | None,
    Option("--db-path", help="DuckDB file. Defaults to AUTOAB_DB_PATH or ~/.autoab_db/autoab.duckdb."),
]


def _open(db_path: str | None) -> tuple[DuckDBStorage, RecordQueryEngine]:
    settings = get_settings()
    storage = DuckDBStorage(resolve_db_path(db_path))
    engine = RecordQueryEngine(
        storage,
        default_page_size=settings.default_page_size,
        max_page_size=settings.max_page_size,
        max_quick_search=settings.max_quick_search,
        max_advanced_results=settings.max_advanced_results,
    )
    return storage, engine


def _read_rows(path: Path) -> list[dict[str, Any]]:
    """Load import rows from a CSV file or a JSON array of objects."""
    try:
        if path.suffix.lower() == ".json":
            data = json.loads(path.read_text(encoding="utf-8"))
            if not isinstance(data, list) or not all(isinstance(row, dict) for row in data):
                raise ValidationError("JSON import file must contain an array of objects")
            return [dict(row) for row in data]
        with path.open(newline="", encoding="utf-8-sig") as handle:
            return list(csv.DictReader(handle))
    except (ValueError, csv.Error) as exc:
        # Covers malformed JSON and files that are not UTF-8.
        raise ValidationError(f"Could not read {path.name}: {exc}") from exc


def _fail(exc: AutoabError) -> NoReturn:
    console.print(f"[bold red]Error:[/] {exc.message}")
    for line in getattr(exc, "errors", []) or []:
        console.print(f"  - {line}")
    raise Exit(code=1)


@app.callback()
def main(
    log_level: Annotated[str | None, Option("--log-level", help="Override AUTOAB_LOG_LEVEL.")] = None,
) -> None:
    setup_logging(log_level)


@app.command()
def serve(
    host: Annotated[str | None, Option("--host")] = None,
    port: Annotated[int | None, Option("--port")] = None,
) -> None:
    """Run the HTTP API."""
    from .server import run_server

    run_server(host=host, port=port)


@app.command()
def search(
    term: Annotated[str, Argument(help="Text to search for.")],
    field: Annotated[str, Option("--field", "-f", help='Field to search, or "all".')] = "all",
    page: Annotated[int, Option("--page")] = 1,
    limit: Annotated[int, Option("--limit", "-n")] = 10,
    db_path: DbPathOption = None,
) -> None:
    """Search records, highest priority first."""
    storage, engine = _open(db_path)
    try:
        result = engine.query(RecordQuery(search=term, field=field, page=page, limit=limit))
    finally:
        storage.close()

    table = Table(title=f"{result.total_count} match(es), page {result.page}/{max(result.total_pages, 1)}")
    for column in ("Disease", "Autoantibody", "Autoantigen", "UniProt ID", "Priority"):
        table.add_column(column)
    for record in result.records:
        table.add_row(
            str(record.get("disease", "")),
            str(record.get("autoantibody", "")),
            str(record.get("autoantigen", "")),
            str(record.get("uniprotId", "")),
            str(record.get("priority", "")),
        )
    console.print(table)


@app.command("import")
def import_file(
    path: Annotated[Path, Argument(exists=True, dir_okay=False, help="CSV or JSON file.")],
    biomarkers: Annotated[
        bool, Option("--biomarkers", help="Import into the biomarker catalog instead.")
    ] = False,
    replace: Annotated[
        bool, Option("--replace", help="Clear the biomarker catalog first.")
    ] = False,
    db_path: DbPathOption = None,
) -> None:
    """Import spreadsheet rows exported as CSV or JSON."""
    try:
        rows = _read_rows(path)
    except AutoabError as exc:
        _fail(exc)
    storage, engine = _open(db_path)
    try:
        if biomarkers:
            summary = BiomarkerService(storage).import_rows(rows, replace=replace)
            inserted, total = summary["inserted"], summary["total"]
        else:
            catalog = RecordCatalog(
                storage, engine, max_bulk_entries=max(len(rows), 1)
            )
            result = catalog.import_rows(rows)
            inserted, total = result.inserted, len(rows)
    except PartialBatchFailure as exc:
        console.print(
            Panel(
                "\n".join(exc.errors),
                title=f"Imported {exc.inserted}, {exc.failed} failed",
                border_style="bold yellow",
            )
        )
        raise Exit(code=1)
    except AutoabError as exc:
        _fail(exc)
    finally:
        storage.close()

    console.print(
        Panel(
            f"Imported {inserted} of {total} row(s) from `{path.name}`",
            title="Import complete",
            border_style="bold green",
        )
    )


@app.command()
def stats(db_path: DbPathOption = None) -> None:
    """Show catalog statistics."""
    storage, engine = _open(db_path)
    try:
        data = RecordCatalog(storage, engine).statistics()
    finally:
        storage.close()

    overview = Table(title="Overview", show_header=False)
    overview.add_column("Metric")
    overview.add_column("Value", justify="right")
    for key, value in data["overview"].items():
        overview.add_row(key, str(value))
    console.print(overview)

    diseases = Table(title="Top diseases")
    diseases.add_column("Disease")
    diseases.add_column("Records", justify="right")
    for item in data["diseaseBreakdown"]:
        diseases.add_row(str(item["value"]), str(item["count"]))
    console.print(diseases)
