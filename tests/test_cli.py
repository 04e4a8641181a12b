"""CLI tests for import, search and stats."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

import autoab_db.main as main_module
from autoab_db.search.predicates import MatchAll
from autoab_db.storage import DuckDBStorage

CSV_ROWS = (
    "Disease,Autoantibody,Autoantigen,Epitope,UniProt ID,Priority\n"
    "Sjögren Syndrome,Anti-Ro52,TRIM21,Coiled coil,P19474,5\n"
    "Rheumatoid Arthritis,Anti-CCP,Citrullinated peptides,Cit,Multiple,\n"
    "Incomplete,,,,,\n"
)


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    # The root handler would otherwise keep a reference to the runner's closed stdout.
    monkeypatch.setattr(main_module, "setup_logging", lambda *args, **kwargs: None)


def test_import_csv_then_search(tmp_path: Path) -> None:
    source = tmp_path / "records.csv"
    source.write_text(CSV_ROWS, encoding="utf-8")
    db_path = str(tmp_path / "cli.duckdb")
    runner = CliRunner()

    imported = runner.invoke(main_module.app, ["import", str(source), "--db-path", db_path])

    assert imported.exit_code == 0, imported.output
    assert "Imported 2 of 3" in imported.output

    searched = runner.invoke(
        main_module.app, ["search", "ro52", "--field", "autoantibody", "--db-path", db_path]
    )
    assert searched.exit_code == 0, searched.output
    assert "Anti-Ro52" in searched.output
    assert "Anti-CCP" not in searched.output


def test_import_reports_missing_columns(tmp_path: Path) -> None:
    source = tmp_path / "bad.csv"
    source.write_text("Disease,Notes\nSLE,x\n", encoding="utf-8")

    result = CliRunner().invoke(
        main_module.app, ["import", str(source), "--db-path", str(tmp_path / "cli.duckdb")]
    )

    assert result.exit_code == 1
    assert "Missing required column: autoantibody" in result.output


def test_import_biomarkers_from_json(tmp_path: Path) -> None:
    source = tmp_path / "biomarkers.json"
    source.write_text(
        json.dumps([{"Autoantibody": "Anti-Ro52", "Disease": "Sjögren Syndrome"}]),
        encoding="utf-8",
    )
    db_path = str(tmp_path / "cli.duckdb")

    result = CliRunner().invoke(
        main_module.app, ["import", str(source), "--biomarkers", "--db-path", db_path]
    )

    assert result.exit_code == 0, result.output
    storage = DuckDBStorage(db_path)
    try:
        assert storage.count("biomarkers", MatchAll()) == 1
        assert storage.count("records", MatchAll()) == 0
    finally:
        storage.close()


def test_stats_lists_top_diseases(tmp_path: Path) -> None:
    source = tmp_path / "records.csv"
    source.write_text(CSV_ROWS, encoding="utf-8")
    db_path = str(tmp_path / "cli.duckdb")
    runner = CliRunner()
    runner.invoke(main_module.app, ["import", str(source), "--db-path", db_path])

    result = runner.invoke(main_module.app, ["stats", "--db-path", db_path])

    assert result.exit_code == 0, result.output
    assert "totalEntries" in result.output
    assert "Rheumatoid Arthritis" in result.output


@pytest.mark.parametrize(
    ("name", "payload"),
    [
        ("broken.json", b"[{\"Disease\": "),
        ("objects.json", b"{\"Disease\": \"SLE\"}"),
        ("latin1.csv", "Disease,Autoantibody\nSjögren,Anti-Ro\n".encode("latin-1")),
    ],
)
def test_import_reports_unreadable_files(tmp_path: Path, name: str, payload: bytes) -> None:
    source = tmp_path / name
    source.write_bytes(payload)
    db_path = tmp_path / "cli.duckdb"

    result = CliRunner().invoke(main_module.app, ["import", str(source), "--db-path", str(db_path)])

    assert result.exit_code == 1
    assert "Error:" in result.output
    assert result.exception is None or isinstance(result.exception, SystemExit)
    assert not db_path.exists()
