"""
============================================================================
NETFLIX INSIGHTS - Reporting Queries
============================================================================
Fixed catalog of aggregation queries over the cleaned tables. Every report
is stateless and can be re-derived from netflix_titles and the association
tables at any time.

📊 REPORTS:
    1. titles_by_type               - Movies vs TV shows
    2. top_directors                - Most prolific directors
    3. directors_movies_and_shows   - Directors with both movies and shows
    4. top_countries_for_genre      - Countries with most movies in a genre
    5. top_director_per_year        - Director with most movies, per year added
    6. average_duration_by_genre    - Average movie length per genre
    7. directors_horror_and_comedy  - Directors of both horror and comedy movies
    8. genre_trends                 - Titles added per year and genre

🔧 USAGE:
    python -m netflix_insights.run_reports [--report NAME ...] [--export] [--plot]

    Options:
        --report NAME   Run only the named report(s)
        --top N         Rows kept by top-K reports (default: TOP_N)
        --genre GENRE   Genre of top_countries_for_genre (default: REPORT_GENRE)
        --export        Write each result to REPORTS_DIR as csv/json
        --plot          Save a PNG chart for reports that have one
        --list          List available reports and exit

📊 OUTPUT:
    - data/reports/<report>.csv (or .json)
    - data/reports/figures/<report>.png

============================================================================
"""

import sys
import logging
import argparse
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import pandas as pd
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
import seaborn as sns
from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from config import config, setup_logging
from netflix_insights.load_netflix_to_db import engine

logger = logging.getLogger(__name__)

# Set style
plt.style.use('seaborn-v0_8-darkgrid')
sns.set_palette("husl")


@dataclass(frozen=True)
class ReportOptions:
    """Parameters shared by the reports that take any."""
    top_n: int = 10
    genre: str = "Comedies"


# ============================================================================
# REPORT QUERIES
# ============================================================================

def titles_by_type(conn: Connection, options: ReportOptions) -> pd.DataFrame:
    """Number of titles per type (Movie, TV Show)."""
    sql = text("""
        SELECT type, COUNT(*) AS title_count
        FROM netflix_titles
        GROUP BY type
        ORDER BY title_count DESC, type
    """)
    return pd.read_sql(sql, conn)


def top_directors(conn: Connection, options: ReportOptions) -> pd.DataFrame:
    """Top-K directors by number of titles, ties in name order."""
    sql = text("""
        SELECT director, COUNT(*) AS title_count
        FROM netflix_directors
        GROUP BY director
        ORDER BY title_count DESC, director
        LIMIT :top_n
    """)
    return pd.read_sql(sql, conn, params={'top_n': options.top_n})


def directors_movies_and_shows(conn: Connection, options: ReportOptions) -> pd.DataFrame:
    """Directors credited on both movies and TV shows, with a count of each."""
    sql = text("""
        SELECT d.director,
               SUM(CASE WHEN t.type = 'Movie' THEN 1 ELSE 0 END) AS movie_count,
               SUM(CASE WHEN t.type = 'TV Show' THEN 1 ELSE 0 END) AS tv_show_count
        FROM netflix_directors d
        JOIN netflix_titles t ON t.show_id = d.show_id
        GROUP BY d.director
        HAVING SUM(CASE WHEN t.type = 'Movie' THEN 1 ELSE 0 END) > 0
           AND SUM(CASE WHEN t.type = 'TV Show' THEN 1 ELSE 0 END) > 0
        ORDER BY d.director
    """)
    return pd.read_sql(sql, conn)


def top_countries_for_genre(conn: Connection, options: ReportOptions) -> pd.DataFrame:
    """Top-K countries by number of movies in options.genre."""
    sql = text("""
        SELECT c.country, COUNT(DISTINCT t.show_id) AS movie_count
        FROM netflix_genres g
        JOIN netflix_titles t ON t.show_id = g.show_id
        JOIN netflix_countries c ON c.show_id = g.show_id
        WHERE t.type = 'Movie' AND g.genre = :genre
        GROUP BY c.country
        ORDER BY movie_count DESC, c.country
        LIMIT :top_n
    """)
    return pd.read_sql(sql, conn, params={'genre': options.genre, 'top_n': options.top_n})


def top_director_per_year(conn: Connection, options: ReportOptions) -> pd.DataFrame:
    """
    For each year added, the director with the most movies.

    Ties go to the director whose name sorts first.
    """
    sql = text("""
        WITH yearly AS (
            SELECT t.year_added, d.director, COUNT(*) AS movie_count
            FROM netflix_titles t
            JOIN netflix_directors d ON d.show_id = t.show_id
            WHERE t.type = 'Movie' AND t.year_added IS NOT NULL
            GROUP BY t.year_added, d.director
        ),
        ranked AS (
            SELECT year_added, director, movie_count,
                   ROW_NUMBER() OVER (
                       PARTITION BY year_added
                       ORDER BY movie_count DESC, director ASC
                   ) AS rn
            FROM yearly
        )
        SELECT year_added, director, movie_count
        FROM ranked
        WHERE rn = 1
        ORDER BY year_added
    """)
    return pd.read_sql(sql, conn)


def average_duration_by_genre(conn: Connection, options: ReportOptions) -> pd.DataFrame:
    """Average movie duration in minutes per genre."""
    sql = text("""
        SELECT g.genre,
               ROUND(AVG(t.duration_value), 1) AS avg_duration_minutes,
               COUNT(*) AS movie_count
        FROM netflix_genres g
        JOIN netflix_titles t ON t.show_id = g.show_id
        WHERE t.type = 'Movie'
          AND t.duration_unit = 'min'
          AND t.duration_value IS NOT NULL
        GROUP BY g.genre
        ORDER BY avg_duration_minutes DESC, g.genre
    """)
    frame = pd.read_sql(sql, conn)
    frame['avg_duration_minutes'] = frame['avg_duration_minutes'].astype(float)
    return frame


def directors_horror_and_comedy(conn: Connection, options: ReportOptions) -> pd.DataFrame:
    """Directors of both comedy and horror movies, with a count of each."""
    sql = text("""
        SELECT d.director,
               SUM(CASE WHEN g.genre = 'Comedies' THEN 1 ELSE 0 END) AS comedy_count,
               SUM(CASE WHEN g.genre = 'Horror Movies' THEN 1 ELSE 0 END) AS horror_count
        FROM netflix_titles t
        JOIN netflix_genres g ON g.show_id = t.show_id
        JOIN netflix_directors d ON d.show_id = t.show_id
        WHERE t.type = 'Movie' AND g.genre IN ('Comedies', 'Horror Movies')
        GROUP BY d.director
        HAVING COUNT(DISTINCT g.genre) = 2
        ORDER BY d.director
    """)
    return pd.read_sql(sql, conn)


def genre_trends(conn: Connection, options: ReportOptions) -> pd.DataFrame:
    """Titles added per year and genre."""
    sql = text("""
        SELECT t.year_added, g.genre, COUNT(*) AS title_count
        FROM netflix_titles t
        JOIN netflix_genres g ON g.show_id = t.show_id
        WHERE t.year_added IS NOT NULL
        GROUP BY t.year_added, g.genre
        ORDER BY t.year_added, title_count DESC, g.genre
    """)
    return pd.read_sql(sql, conn)


ReportFunc = Callable[[Connection, ReportOptions], pd.DataFrame]

REPORTS: Dict[str, Tuple[ReportFunc, str]] = {
    'titles_by_type': (titles_by_type, 'Titles per type'),
    'top_directors': (top_directors, 'Most prolific directors'),
    'directors_movies_and_shows': (directors_movies_and_shows, 'Directors of both movies and TV shows'),
    'top_countries_for_genre': (top_countries_for_genre, 'Countries with most movies in a genre'),
    'top_director_per_year': (top_director_per_year, 'Director with most movies per year added'),
    'average_duration_by_genre': (average_duration_by_genre, 'Average movie duration per genre'),
    'directors_horror_and_comedy': (directors_horror_and_comedy, 'Directors of both horror and comedy movies'),
    'genre_trends': (genre_trends, 'Titles added per year and genre'),
}


def run_reports(
    bind: Engine,
    names: Optional[List[str]] = None,
    options: Optional[ReportOptions] = None,
) -> Dict[str, pd.DataFrame]:
    """
    Run the selected reports (all of them by default).

    Raises:
        KeyError: If a name is not in REPORTS
    """
    names = list(names) if names else list(REPORTS)
    unknown = [name for name in names if name not in REPORTS]
    if unknown:
        raise KeyError(f"Unknown report(s): {', '.join(unknown)}. Available: {', '.join(REPORTS)}")

    options = options or ReportOptions()
    results = {}
    with bind.connect() as conn:
        for name in names:
            report_func, _ = REPORTS[name]
            results[name] = report_func(conn, options)
            logger.info("Report %s returned %d rows", name, len(results[name]))
    return results


# ============================================================================
# EXPORT & CHARTS
# ============================================================================

def export_report(name: str, frame: pd.DataFrame, output_dir: Path, fmt: str = 'csv') -> Path:
    """
    Write a report result set to output_dir/<name>.<fmt>.

    Raises:
        ValueError: If fmt is not csv or json
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    output_file = output_dir / f"{name}.{fmt}"

    if fmt == 'csv':
        frame.to_csv(output_file, index=False)
    elif fmt == 'json':
        frame.to_json(output_file, orient='records', indent=2)
    else:
        raise ValueError(f"Unsupported export format: {fmt}")

    return output_file


def _bar_chart(frame: pd.DataFrame, x: str, y: str, title: str) -> plt.Figure:
    fig, ax = plt.subplots(figsize=(12, max(4, 0.4 * len(frame))))
    sns.barplot(data=frame, x=x, y=y, ax=ax)
    ax.set_title(title, fontsize=14, fontweight='bold')
    plt.tight_layout()
    return fig


def plot_genre_trends(frame: pd.DataFrame, top_genres: int = 6) -> plt.Figure:
    """Line chart of the most common genres over the years."""
    leaders = frame.groupby('genre')['title_count'].sum().nlargest(top_genres).index
    fig, ax = plt.subplots(figsize=(14, 7))
    sns.lineplot(
        data=frame[frame['genre'].isin(leaders)],
        x='year_added', y='title_count', hue='genre', marker='o', ax=ax,
    )
    ax.set_xlabel('Year Added', fontsize=12)
    ax.set_ylabel('Titles', fontsize=12)
    ax.set_title('📈 Genre Trends', fontsize=14, fontweight='bold')
    plt.tight_layout()
    return fig


CHARTS: Dict[str, Callable[[pd.DataFrame], plt.Figure]] = {
    'titles_by_type': lambda f: _bar_chart(f, 'title_count', 'type', 'Titles by Type'),
    'top_directors': lambda f: _bar_chart(f, 'title_count', 'director', 'Top Directors'),
    'average_duration_by_genre': lambda f: _bar_chart(
        f, 'avg_duration_minutes', 'genre', 'Average Movie Duration by Genre (min)'
    ),
    'genre_trends': plot_genre_trends,
}


def plot_report(name: str, frame: pd.DataFrame, output_dir: Path) -> Optional[Path]:
    """
    Save a PNG chart of a report.

    Returns:
        Path of the image, or None when the report has no chart or no rows
    """
    if name not in CHARTS or frame.empty:
        return None

    output_dir.mkdir(parents=True, exist_ok=True)
    output_file = output_dir / f"{name}.png"
    fig = CHARTS[name](frame)
    fig.savefig(output_file, dpi=150, bbox_inches='tight')
    plt.close(fig)
    return output_file


def print_report(name: str, frame: pd.DataFrame, max_rows: int = 20) -> None:
    """Print a report to the console."""
    _, description = REPORTS[name]
    print(f"\n📊 {name} - {description} ({len(frame):,} rows)")
    print("-"*70)
    if frame.empty:
        print("   (no rows)")
    else:
        print(frame.head(max_rows).to_string(index=False))


# ============================================================================
# COMMAND-LINE INTERFACE
# ============================================================================

def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description='Run the reporting queries over the cleaned tables'
    )

    parser.add_argument(
        '--report',
        action='append',
        choices=list(REPORTS),
        help='Run only this report (repeatable)'
    )

    parser.add_argument(
        '--top',
        type=int,
        default=config.report.top_n,
        help=f'Rows kept by top-K reports (default: {config.report.top_n})'
    )

    parser.add_argument(
        '--genre',
        type=str,
        default=config.report.genre,
        help=f'Genre of top_countries_for_genre (default: {config.report.genre})'
    )

    parser.add_argument(
        '--export',
        action='store_true',
        help=f'Export results as {config.processing.export_format} to {config.paths.reports_dir}'
    )

    parser.add_argument(
        '--plot',
        action='store_true',
        help='Save PNG charts'
    )

    parser.add_argument(
        '--list',
        action='store_true',
        help='List available reports and exit'
    )

    args = parser.parse_args(argv)

    if args.list:
        for name, (_, description) in REPORTS.items():
            print(f"   • {name}: {description}")
        return 0

    setup_logging(config.logging)

    print("\n" + "="*70)
    print("🎬 NETFLIX INSIGHTS - Reports")
    print("="*70)
    print(f"📅 Started: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")

    try:
        results = run_reports(engine, args.report, ReportOptions(top_n=args.top, genre=args.genre))
    except SQLAlchemyError as e:
        logger.exception("Reports failed")
        print(f"\n❌ Reports failed: {e}")
        print("   Run 'python -m netflix_insights.clean_titles' first!")
        return 1

    for name, frame in results.items():
        print_report(name, frame)
        if args.export:
            path = export_report(name, frame, config.paths.reports_dir, config.processing.export_format)
            print(f"   💾 Exported: {path}")
        if args.plot:
            path = plot_report(name, frame, config.paths.reports_dir / 'figures')
            if path:
                print(f"   🖼️  Chart: {path}")

    print(f"\n📅 Finished: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("="*70 + "\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
