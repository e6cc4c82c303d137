"""Unit tests for the reporting queries, export and charts."""

from __future__ import annotations

import json
from pathlib import Path

import pandas as pd
import pytest
from sqlalchemy import insert
from sqlalchemy.engine import Engine

from netflix_insights.load_netflix_to_db import NetflixDirector, NetflixTitle
from netflix_insights.run_reports import (
    REPORTS,
    ReportOptions,
    export_report,
    main,
    plot_report,
    run_reports,
)


def _report(engine: Engine, name: str, **options) -> pd.DataFrame:
    """Run one report and return its frame."""
    return run_reports(engine, [name], ReportOptions(**options))[name]


def test_titles_by_type(cleaned_engine: Engine) -> None:
    """Movies and shows should be counted separately."""
    frame = _report(cleaned_engine, "titles_by_type")

    assert dict(zip(frame["type"], frame["title_count"])) == {"Movie": 8, "TV Show": 2}


def test_top_directors_limits_and_orders(cleaned_engine: Engine) -> None:
    """Top-K should order by count, then by name."""
    frame = _report(cleaned_engine, "top_directors", top_n=3)

    assert frame.to_dict("records") == [
        {"director": "Jane Roe", "title_count": 4},
        {"director": "Zed Alpha", "title_count": 2},
        {"director": "Kirsten Johnson", "title_count": 1},
    ]


def test_directors_movies_and_shows(cleaned_engine: Engine) -> None:
    """Only directors with both kinds of titles should appear."""
    frame = _report(cleaned_engine, "directors_movies_and_shows")

    assert frame.to_dict("records") == [
        {"director": "Jane Roe", "movie_count": 3, "tv_show_count": 1},
    ]


def test_top_countries_for_genre(cleaned_engine: Engine) -> None:
    """Filled-in countries should count toward the genre ranking."""
    frame = _report(cleaned_engine, "top_countries_for_genre", genre="Comedies", top_n=3)

    assert frame.to_dict("records") == [
        {"country": "United States", "movie_count": 3},
        {"country": "India", "movie_count": 1},
        {"country": "Mexico", "movie_count": 1},
    ]


def test_top_director_per_year_breaks_ties_by_name(cleaned_engine: Engine) -> None:
    """In 2019 two directors tie; the alphabetically first one wins."""
    frame = _report(cleaned_engine, "top_director_per_year")
    by_year = {row["year_added"]: (row["director"], row["movie_count"]) for row in frame.to_dict("records")}

    assert by_year == {
        2017: ("Louis C.K.", 1),
        2018: ("Zed Alpha", 1),
        2019: ("Mystery Person", 1),
        2020: ("Jane Roe", 3),
        2021: ("Kirsten Johnson", 1),
    }


def test_top_director_per_year_tie_on_inserted_rows(db_engine: Engine) -> None:
    """Equal counts should resolve to the smallest name."""
    with db_engine.begin() as conn:
        conn.execute(insert(NetflixTitle), [
            {"show_id": "x1", "type": "Movie", "year_added": 2015},
            {"show_id": "x2", "type": "Movie", "year_added": 2015},
        ])
        conn.execute(insert(NetflixDirector), [
            {"show_id": "x1", "position": 1, "director": "Bravo"},
            {"show_id": "x2", "position": 1, "director": "Alpha"},
        ])

    frame = _report(db_engine, "top_director_per_year")

    assert frame["director"].tolist() == ["Alpha"]


def test_average_duration_by_genre(cleaned_engine: Engine) -> None:
    """Only movies with a parsed duration in minutes should be averaged."""
    frame = _report(cleaned_engine, "average_duration_by_genre").set_index("genre")

    assert frame.loc["Comedies", "avg_duration_minutes"] == pytest.approx(95.7)
    assert frame.loc["Comedies", "movie_count"] == 3
    assert frame.loc["Horror Movies", "avg_duration_minutes"] == pytest.approx(94.0)
    assert frame.loc["Movies", "avg_duration_minutes"] == pytest.approx(74.0)
    assert "Dramas" not in frame.index


def test_directors_horror_and_comedy(cleaned_engine: Engine) -> None:
    """Directors need at least one movie in each genre."""
    frame = _report(cleaned_engine, "directors_horror_and_comedy")

    assert frame.to_dict("records") == [
        {"director": "Jane Roe", "comedy_count": 3, "horror_count": 1},
        {"director": "Zed Alpha", "comedy_count": 1, "horror_count": 1},
    ]


def test_genre_trends(cleaned_engine: Engine) -> None:
    """Titles should be counted per year added and genre."""
    frame = _report(cleaned_engine, "genre_trends")
    counts = {(row["year_added"], row["genre"]): row["title_count"] for row in frame.to_dict("records")}

    assert counts[(2020, "Comedies")] == 3
    assert counts[(2021, "TV Dramas")] == 1
    assert all(year is not None for year, _ in counts)


def test_run_reports_runs_all_by_default(cleaned_engine: Engine) -> None:
    """Without names every registered report should run."""
    results = run_reports(cleaned_engine)

    assert list(results) == list(REPORTS)


def test_run_reports_rejects_unknown_name(cleaned_engine: Engine) -> None:
    """Unknown report names should raise KeyError."""
    with pytest.raises(KeyError, match="no_such_report"):
        run_reports(cleaned_engine, ["no_such_report"])


def test_reports_on_empty_tables(db_engine: Engine) -> None:
    """Reports over empty tables should return empty frames."""
    results = run_reports(db_engine)

    assert all(frame.empty for frame in results.values())


def test_export_report_csv_and_json(tmp_path: Path) -> None:
    """Exports should round the frame through the chosen format."""
    frame = pd.DataFrame({"director": ["Jane Roe"], "title_count": [4]})

    csv_file = export_report("top_directors", frame, tmp_path, "csv")
    json_file = export_report("top_directors", frame, tmp_path, "json")

    assert pd.read_csv(csv_file).to_dict("records") == [{"director": "Jane Roe", "title_count": 4}]
    assert json.loads(json_file.read_text()) == [{"director": "Jane Roe", "title_count": 4}]


def test_export_report_rejects_unknown_format(tmp_path: Path) -> None:
    """Unsupported formats should raise ValueError."""
    with pytest.raises(ValueError):
        export_report("top_directors", pd.DataFrame(), tmp_path, "xlsx")


def test_plot_report_writes_png(cleaned_engine: Engine, tmp_path: Path) -> None:
    """Reports with a chart should produce a PNG; others should not."""
    results = run_reports(cleaned_engine, ["genre_trends", "directors_movies_and_shows"])

    chart = plot_report("genre_trends", results["genre_trends"], tmp_path)
    no_chart = plot_report("directors_movies_and_shows", results["directors_movies_and_shows"], tmp_path)

    assert chart is not None and chart.suffix == ".png" and chart.stat().st_size > 0
    assert no_chart is None


def test_main_lists_reports(capsys: pytest.CaptureFixture[str]) -> None:
    """--list should print every report name."""
    assert main(["--list"]) == 0

    output = capsys.readouterr().out
    for name in REPORTS:
        assert name in output
