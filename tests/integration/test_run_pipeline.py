"""Integration tests for the one-shot pipeline and command-line entry points."""

from __future__ import annotations

from pathlib import Path

import pytest
from sqlalchemy.engine import Engine

from config import config
from netflix_insights import clean_titles, load_netflix_to_db, run_pipeline, run_reports


def test_run_pipeline_end_to_end(db_engine: Engine, sample_csv: Path, tmp_path: Path) -> None:
    """Load, clean and report should chain and export every result."""
    run = run_pipeline.run_pipeline(
        sample_csv,
        bind=db_engine,
        batch_size=4,
        export_dir=tmp_path / "reports",
        export_format="json",
        plot_dir=tmp_path / "figures",
    )

    assert run.loaded_rows == 12
    assert run.clean.stats["titles"] == 10
    assert list(run.reports) == list(run_reports.REPORTS)
    assert (tmp_path / "reports" / "top_directors.json").exists()
    assert (tmp_path / "figures" / "genre_trends.png").exists()


def test_run_pipeline_rerun_gives_same_reports(db_engine: Engine, sample_csv: Path) -> None:
    """A second full run over the same file should reproduce every report."""
    first = run_pipeline.run_pipeline(sample_csv, bind=db_engine)
    second = run_pipeline.run_pipeline(sample_csv, bind=db_engine)

    for name, frame in first.reports.items():
        assert frame.equals(second.reports[name]), name


def test_run_pipeline_skip_load_reuses_staging(loaded_engine: Engine, tmp_path: Path) -> None:
    """With skip_load the existing staging rows should be cleaned."""
    run = run_pipeline.run_pipeline(
        tmp_path / "never-read.csv",
        bind=loaded_engine,
        skip_load=True,
        run_report_stage=False,
    )

    assert run.loaded_rows is None
    assert run.clean.stats["raw_rows"] == 12
    assert run.reports == {}


def test_run_pipeline_missing_file_aborts(db_engine: Engine, tmp_path: Path) -> None:
    """A missing input file should abort before the transform."""
    with pytest.raises(FileNotFoundError):
        run_pipeline.run_pipeline(tmp_path / "absent.csv", bind=db_engine)


def test_command_line_scripts(sample_csv: Path) -> None:
    """The entry points should run against the configured database."""
    assert load_netflix_to_db.main(["--csv", str(sample_csv), "--verify"]) == 0
    assert clean_titles.main([]) == 0
    assert run_reports.main(["--report", "top_directors", "--export"]) == 0
    assert (config.paths.reports_dir / f"top_directors.{config.processing.export_format}").exists()
    assert run_pipeline.main(["--csv", str(sample_csv), "--no-reports"]) == 0


def test_command_line_reports_missing_file(tmp_path: Path) -> None:
    """A missing input file should exit with status 1."""
    assert load_netflix_to_db.main(["--csv", str(tmp_path / "absent.csv")]) == 1
    assert run_pipeline.main(["--csv", str(tmp_path / "absent.csv")]) == 1


def test_pipeline_banner_hides_database_password(
    sample_csv: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    """The pipeline banner should mask the password of the configured URL."""
    monkeypatch.setattr(config.database, "database_url", "postgresql://netflix:s3cret@db/netflix")

    assert run_pipeline.main(["--csv", str(sample_csv), "--no-reports"]) == 0

    output = capsys.readouterr().out
    assert "s3cret" not in output
    assert "postgresql://netflix:***@db/netflix" in output
