"""Pytest configuration for repository test runs."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

# config.py reads the environment and creates directories on import, so the
# test environment must be in place before any project module is imported.
_TEST_ROOT = Path(tempfile.mkdtemp(prefix="netflix-insights-tests-"))
os.environ["DATA_DIR"] = str(_TEST_ROOT / "data")
os.environ["RAW_DATA_DIR"] = str(_TEST_ROOT / "data" / "raw")
os.environ["PROCESSED_DATA_DIR"] = str(_TEST_ROOT / "data" / "processed")
os.environ["REPORTS_DIR"] = str(_TEST_ROOT / "data" / "reports")
os.environ["LOGS_DIR"] = str(_TEST_ROOT / "data" / "logs")
os.environ["LOG_FILE"] = str(_TEST_ROOT / "data" / "logs" / "test.log")
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_ROOT / 'netflix.db'}"
os.environ["ENVIRONMENT"] = "testing"

import pytest  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from netflix_insights.clean_titles import clean_titles  # noqa: E402
from netflix_insights.load_netflix_to_db import (  # noqa: E402
    build_engine,
    create_tables,
    load_raw_titles,
)


def fixture_path(relative_path: str) -> Path:
    """Resolve a fixture path relative to tests/fixtures."""
    return Path(__file__).resolve().parent / "fixtures" / relative_path


@pytest.fixture
def sample_csv() -> Path:
    """Small titles file with duplicates, missing keys and malformed values."""
    return fixture_path("netflix_titles_sample.csv")


@pytest.fixture
def db_engine(tmp_path: Path) -> Engine:
    """Fresh SQLite database with every table created."""
    engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def loaded_engine(db_engine: Engine, sample_csv: Path) -> Engine:
    """Database whose staging table holds the sample file."""
    with Session(db_engine) as session:
        load_raw_titles(session, sample_csv, batch_size=5)
    return db_engine


@pytest.fixture
def cleaned_engine(loaded_engine: Engine) -> Engine:
    """Database with the cleaned and association tables built."""
    clean_titles(loaded_engine, delimiter=",", missing_country_sentinel="Not Given")
    return loaded_engine
