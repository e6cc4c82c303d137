"""Unit tests for configuration models and logging setup."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
from pydantic import ValidationError

from config import (
    DatabaseConfig,
    LoggingConfig,
    PathsConfig,
    ProcessingConfig,
    config,
    load_config,
    setup_logging,
)


def test_global_config_reads_test_environment() -> None:
    """The module-level config should pick up the variables set by conftest."""
    assert config.environment == "testing"
    assert config.database.is_sqlite
    assert config.paths.reports_dir.exists()


def test_load_config_reads_processing_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    """load_config should map environment variables onto the models."""
    monkeypatch.setenv("BATCH_SIZE", "250")
    monkeypatch.setenv("EXPORT_FORMAT", "JSON")
    monkeypatch.setenv("TOP_N", "3")

    loaded = load_config()

    assert loaded.processing.batch_size == 250
    assert loaded.processing.export_format == "json"
    assert loaded.report.top_n == 3


def test_load_config_exits_on_invalid_value(monkeypatch: pytest.MonkeyPatch) -> None:
    """Invalid settings should stop the program with status 1."""
    monkeypatch.setenv("BATCH_SIZE", "0")

    with pytest.raises(SystemExit) as excinfo:
        load_config()

    assert excinfo.value.code == 1


def test_processing_config_rejects_unknown_export_format() -> None:
    """Only csv and json exports are supported."""
    with pytest.raises(ValidationError):
        ProcessingConfig(export_format="parquet")


def test_blank_sentinel_means_drop() -> None:
    """A blank sentinel should be normalized to None."""
    assert ProcessingConfig(missing_country_sentinel="  ").missing_country_sentinel is None
    assert ProcessingConfig(missing_country_sentinel=" Unknown ").missing_country_sentinel == "Unknown"


def test_logging_config_normalizes_level() -> None:
    """Log level should be upper-cased and validated."""
    assert LoggingConfig(log_level="debug").log_level == "DEBUG"
    with pytest.raises(ValidationError):
        LoggingConfig(log_level="verbose")


def test_database_path_for_sqlite_urls() -> None:
    """SQLite URLs should expose their file path; others should not."""
    assert DatabaseConfig(database_url="sqlite:///data/netflix.db").database_path == Path("data/netflix.db")
    assert DatabaseConfig(database_url="sqlite://").database_path is None
    postgres = DatabaseConfig(database_url="postgresql://user:pw@localhost/netflix")
    assert postgres.is_postgresql
    assert postgres.database_path is None


def test_paths_config_creates_directories(tmp_path: Path) -> None:
    """Every configured directory should exist after validation."""
    paths = PathsConfig(
        data_dir=tmp_path / "data",
        raw_data_dir=tmp_path / "data" / "raw",
        processed_data_dir=tmp_path / "data" / "processed",
        reports_dir=tmp_path / "data" / "reports",
        logs_dir=tmp_path / "data" / "logs",
    )

    assert paths.raw_data_dir.is_dir()
    assert paths.reports_dir.is_dir()


def test_setup_logging_writes_file_without_duplicate_handlers(tmp_path: Path) -> None:
    """Repeated setup should keep a single file handler."""
    log_file = tmp_path / "logs" / "run.log"
    logging_config = LoggingConfig(log_file=log_file)

    setup_logging(logging_config)
    root = setup_logging(logging_config)
    logging.getLogger("netflix_insights.test").info("hello from the test")

    owned = [h for h in root.handlers if getattr(h, "_netflix_insights", False)]
    for handler in owned:
        handler.flush()

    assert len(owned) == 1
    assert "hello from the test" in log_file.read_text(encoding="utf-8")
