"""
============================================================================
NETFLIX INSIGHTS - Cleaning & Normalization Transform
============================================================================
Turns the staging table into the cleaned title table and the genre,
country and director association tables.

🎯 STAGES (each takes the previous output and returns a new frame):
    1. read_raw_snapshot      - staging rows, read once, ordered by load_order
    2. deduplicate_titles     - one row per show_id, first occurrence wins
    3. normalize_titles       - date_added -> DATE, duration -> value + unit
    4. split_multi_value      - listed_in / country / director -> child rows
    5. fill_missing_countries - director lookup, else sentinel
    6. write_clean_result     - replace all derived tables in one transaction

🔧 USAGE:
    python -m netflix_insights.clean_titles

📝 NOTES:
    - Unparseable dates and durations become NULL; the row is kept
    - Rows without show_id are dropped
    - Reruns are idempotent: derived tables are replaced, never appended

============================================================================
"""

import re
import sys
import logging
import argparse
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd
from sqlalchemy import select, delete, insert
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from config import config, setup_logging
from netflix_insights.load_netflix_to_db import (
    engine, create_tables,
    NetflixTitleRaw, NetflixTitle, NetflixGenre, NetflixCountry, NetflixDirector,
)

logger = logging.getLogger(__name__)

# Textual formats seen in date_added across dataset exports
DATE_ADDED_FORMATS = ("%B %d, %Y", "%b %d, %Y", "%Y-%m-%d", "%d-%b-%y")

DURATION_PATTERN = re.compile(r'^(\d+)\s*([a-z]+)\.?$', re.IGNORECASE)

DURATION_UNITS = {
    'min': 'min',
    'mins': 'min',
    'minute': 'min',
    'minutes': 'min',
    'season': 'season',
    'seasons': 'season',
}

CLEAN_COLUMNS = [
    'show_id', 'type', 'title', 'date_added', 'year_added', 'release_year',
    'rating', 'duration_value', 'duration_unit', 'description',
]

# Text columns of the cleaned frame; missing values are None, never NaN
TEXT_COLUMNS = ['show_id', 'type', 'title', 'rating', 'duration_unit', 'description']

# Default of clean_titles(): take the missing-country sentinel from config
FROM_CONFIG = object()


@dataclass(frozen=True)
class RawSnapshot:
    """Staging rows captured once and handed to every transform stage."""
    source: str
    frame: pd.DataFrame

    @property
    def loaded_rows(self) -> int:
        return len(self.frame)


@dataclass(frozen=True)
class CleanResult:
    """Output of the transform: one frame per derived table."""
    titles: pd.DataFrame
    genres: pd.DataFrame
    countries: pd.DataFrame
    directors: pd.DataFrame
    stats: Dict[str, int] = field(default_factory=dict)


# ============================================================================
# SNAPSHOT
# ============================================================================

def read_raw_snapshot(bind: Engine) -> RawSnapshot:
    """
    Read the staging table into an immutable snapshot.

    Args:
        bind: Engine holding netflix_titles_raw

    Returns:
        RawSnapshot ordered by load_order
    """
    stmt = select(NetflixTitleRaw.__table__).order_by(NetflixTitleRaw.load_order)
    with bind.connect() as conn:
        frame = pd.read_sql_query(stmt, conn)

    logger.info("Read %d staging rows", len(frame))
    return RawSnapshot(source=NetflixTitleRaw.__tablename__, frame=frame)


# ============================================================================
# DEDUPLICATION
# ============================================================================

def _has_key(frame: pd.DataFrame) -> pd.Series:
    """True for rows whose show_id is present and not blank."""
    return frame['show_id'].fillna('').astype(str).str.strip().ne('')


def deduplicate_titles(raw: pd.DataFrame) -> pd.DataFrame:
    """
    Keep exactly one row per show_id: the one with the lowest load_order.

    Rows with a null or blank show_id are excluded entirely.

    Args:
        raw: Staging rows (needs show_id and load_order)

    Returns:
        New frame, ordered by load_order
    """
    has_key = _has_key(raw)
    missing = int((~has_key).sum())
    if missing:
        logger.warning("Dropped %d rows without show_id", missing)

    frame = raw.loc[has_key].copy()
    frame['show_id'] = frame['show_id'].astype(str).str.strip()
    frame = frame.sort_values('load_order', kind='stable')

    duplicated = frame.duplicated(subset='show_id', keep='first')
    if duplicated.any():
        logger.warning("Dropped %d duplicate rows", int(duplicated.sum()))

    return frame.loc[~duplicated].reset_index(drop=True)


# ============================================================================
# FIELD NORMALIZATION
# ============================================================================

def parse_date_added(value: Optional[str]) -> Optional[date]:
    """
    Parse a textual date such as 'September 25, 2021'.

    Returns:
        The calendar date, or None when no known format matches
    """
    if value is None or pd.isna(value):
        return None
    text = str(value).strip()
    if not text:
        return None

    for fmt in DATE_ADDED_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def parse_duration(value: Optional[str]) -> Tuple[Optional[int], Optional[str]]:
    """
    Split a duration such as '90 min' or '2 Seasons' into (90, 'min').

    Returns:
        (value, unit) with unit 'min' or 'season', or (None, None)
    """
    if value is None or pd.isna(value):
        return None, None

    match = DURATION_PATTERN.match(str(value).strip())
    if not match:
        return None, None

    unit = DURATION_UNITS.get(match.group(2).lower())
    if unit is None:
        return None, None
    return int(match.group(1)), unit


def _is_duration(value: Optional[str]) -> bool:
    return parse_duration(value)[0] is not None


def normalize_titles(deduped: pd.DataFrame) -> pd.DataFrame:
    """
    Build the cleaned title frame from deduplicated staging rows.

    - Durations misplaced in the rating column are moved back
    - date_added parsed to a date, year_added derived from it
    - duration split into an integer value and a unit
    - release_year coerced to a nullable integer

    Returns:
        New frame with CLEAN_COLUMNS
    """
    frame = deduped.copy()

    misplaced = frame['duration'].isna() & frame['rating'].map(_is_duration)
    if misplaced.any():
        logger.info("Moved %d durations out of the rating column", int(misplaced.sum()))
        frame.loc[misplaced, 'duration'] = frame.loc[misplaced, 'rating']
        frame.loc[misplaced, 'rating'] = None

    durations = [parse_duration(value) for value in frame['duration']]
    frame['duration_value'] = pd.array([value for value, _ in durations], dtype='Int64')
    frame['duration_unit'] = [unit for _, unit in durations]

    bad_durations = int((frame['duration'].notna() & frame['duration_value'].isna()).sum())
    if bad_durations:
        logger.warning("%d durations could not be parsed, stored as NULL", bad_durations)

    dates = [parse_date_added(value) for value in frame['date_added']]
    bad_dates = sum(
        1 for raw_value, parsed in zip(frame['date_added'], dates)
        if parsed is None and raw_value is not None and not pd.isna(raw_value)
    )
    if bad_dates:
        logger.warning("%d date_added values could not be parsed, stored as NULL", bad_dates)

    frame['date_added'] = pd.Series(dates, index=frame.index, dtype=object)
    frame['year_added'] = pd.array(
        [parsed.year if isinstance(parsed, date) else None for parsed in dates],
        dtype='Int64',
    )
    frame['release_year'] = pd.to_numeric(frame['release_year'], errors='coerce').astype('Int64')

    for column in TEXT_COLUMNS:
        values = frame[column].astype(object)
        frame[column] = values.where(values.notna(), None)

    return frame[CLEAN_COLUMNS].reset_index(drop=True)


# ============================================================================
# MULTI-VALUE FIELD SPLITTING
# ============================================================================

def split_multi_value(
    frame: pd.DataFrame,
    key: str,
    column: str,
    value_name: str,
    delimiter: str = ",",
) -> pd.DataFrame:
    """
    Split a delimiter-separated column into one row per element.

    Example:
        show_id='s1', listed_in='Comedies, Horror Movies'
        -> ('s1', 1, 'Comedies'), ('s1', 2, 'Horror Movies')

    Args:
        frame: Source rows
        key: Column identifying the owning record
        column: Multi-valued text column
        value_name: Name of the value column in the output
        delimiter: Element separator

    Returns:
        Frame with columns [key, 'position', value_name]; elements are
        trimmed, empty elements dropped, positions run 1..N per key
    """
    values = frame[column].apply(
        lambda x: [v.strip() for v in str(x).split(delimiter) if v.strip()] if pd.notna(x) else []
    )
    exploded = pd.DataFrame({
        key: frame[key].to_numpy(),
        value_name: values.to_numpy(),
    }).explode(value_name)
    exploded = exploded.dropna(subset=[value_name])

    exploded['position'] = exploded.groupby(level=0).cumcount() + 1
    return exploded[[key, 'position', value_name]].reset_index(drop=True)


# ============================================================================
# MISSING COUNTRY LOOKUP
# ============================================================================

def build_director_country_lookup(countries: pd.DataFrame, directors: pd.DataFrame) -> pd.DataFrame:
    """
    Map each director to the country of most of their titles.

    Ties are broken alphabetically on country.

    Returns:
        Frame with columns ['director', 'country']
    """
    pairs = directors.merge(countries, on='show_id', suffixes=('_director', '_country'))
    if pairs.empty:
        return pd.DataFrame(columns=['director', 'country'])

    counts = pairs.groupby(['director', 'country']).size().reset_index(name='title_count')
    counts = counts.sort_values(
        ['director', 'title_count', 'country'],
        ascending=[True, False, True],
    )
    return counts.drop_duplicates('director')[['director', 'country']].reset_index(drop=True)


def fill_missing_countries(
    show_ids: pd.Series,
    countries: pd.DataFrame,
    directors: pd.DataFrame,
    sentinel: Optional[str] = "Not Given",
) -> Tuple[pd.DataFrame, Dict[str, int]]:
    """
    Add a country row for every title that has none.

    The country comes from the title's first credited director with a
    known country elsewhere in the dataset; otherwise the sentinel is used.
    With sentinel=None or a blank sentinel those titles get no country row.

    Returns:
        (complete country frame, counts of rows filled by each rule)
    """
    if sentinel is not None:
        sentinel = sentinel.strip() or None

    missing_ids = show_ids[~show_ids.isin(countries['show_id'])]

    lookup = build_director_country_lookup(countries, directors)
    candidates = directors[directors['show_id'].isin(missing_ids)].merge(lookup, on='director')
    from_director = (
        candidates.sort_values(['show_id', 'position'], kind='stable')
        .drop_duplicates('show_id')[['show_id', 'country']]
    )

    still_missing = missing_ids[~missing_ids.isin(from_director['show_id'])]
    filled = [from_director]
    if sentinel is not None:
        filled.append(pd.DataFrame({'show_id': still_missing.to_numpy(), 'country': sentinel}))

    additions = pd.concat(filled, ignore_index=True)
    additions['position'] = 1

    stats = {
        'countries_from_director': len(from_director),
        'countries_sentinel': len(still_missing) if sentinel is not None else 0,
        'countries_dropped': 0 if sentinel is not None else len(still_missing),
    }
    if len(missing_ids):
        logger.info(
            "Filled %d missing countries from directors, %d with sentinel, dropped %d",
            stats['countries_from_director'], stats['countries_sentinel'], stats['countries_dropped'],
        )

    complete = pd.concat(
        [countries, additions[['show_id', 'position', 'country']]],
        ignore_index=True,
    )
    return complete, stats


# ============================================================================
# ORCHESTRATION
# ============================================================================

def build_clean_result(
    snapshot: RawSnapshot,
    delimiter: str = ",",
    missing_country_sentinel: Optional[str] = "Not Given",
) -> CleanResult:
    """
    Run every transform stage over a snapshot. Touches no database.
    """
    raw = snapshot.frame
    deduped = deduplicate_titles(raw)
    titles = normalize_titles(deduped)

    genres = split_multi_value(deduped, 'show_id', 'listed_in', 'genre', delimiter)
    directors = split_multi_value(deduped, 'show_id', 'director', 'director', delimiter)
    countries = split_multi_value(deduped, 'show_id', 'country', 'country', delimiter)
    countries, country_stats = fill_missing_countries(
        titles['show_id'], countries, directors, missing_country_sentinel
    )

    missing_keys = int((~_has_key(raw)).sum())
    stats = {
        'raw_rows': len(raw),
        'missing_keys': missing_keys,
        'duplicates': len(raw) - missing_keys - len(deduped),
        'titles': len(titles),
        'genres': len(genres),
        'countries': len(countries),
        'directors': len(directors),
        **country_stats,
    }
    return CleanResult(titles=titles, genres=genres, countries=countries, directors=directors, stats=stats)


def _to_records(frame: pd.DataFrame) -> List[Dict]:
    """DataFrame rows as plain dicts with None for missing values."""
    return frame.astype(object).where(frame.notna(), None).to_dict('records')


def write_clean_result(bind: Engine, result: CleanResult) -> None:
    """
    Replace every derived table with the contents of result.

    Runs in a single transaction: on failure the previous tables survive.
    """
    with bind.begin() as conn:
        for model in (NetflixGenre, NetflixCountry, NetflixDirector, NetflixTitle):
            conn.execute(delete(model))

        for model, frame in (
            (NetflixTitle, result.titles),
            (NetflixGenre, result.genres),
            (NetflixCountry, result.countries),
            (NetflixDirector, result.directors),
        ):
            records = _to_records(frame)
            if records:
                conn.execute(insert(model), records)

    logger.info("Wrote derived tables: %s", result.stats)


def clean_titles(
    bind: Optional[Engine] = None,
    delimiter: Optional[str] = None,
    missing_country_sentinel: Any = FROM_CONFIG,
) -> CleanResult:
    """
    Snapshot staging, build the cleaned tables and write them.

    bind and delimiter left as None, and missing_country_sentinel left
    unset, fall back to the processing configuration. Passing None or ''
    as missing_country_sentinel drops titles that have no country.
    """
    bind = bind or engine
    delimiter = delimiter or config.processing.multi_value_delimiter
    if missing_country_sentinel is FROM_CONFIG:
        missing_country_sentinel = config.processing.missing_country_sentinel

    snapshot = read_raw_snapshot(bind)
    result = build_clean_result(snapshot, delimiter, missing_country_sentinel)
    write_clean_result(bind, result)
    return result


def print_clean_summary(result: CleanResult) -> None:
    """Print the stats of a transform run."""
    stats = result.stats
    print("\n" + "="*70)
    print("🧹 CLEANING SUMMARY")
    print("="*70)
    print(f"   • Raw rows: {stats['raw_rows']:,}")
    print(f"   • Dropped (no show_id): {stats['missing_keys']:,}")
    print(f"   • Dropped (duplicates): {stats['duplicates']:,}")
    print(f"   • Titles: {stats['titles']:,}")
    print(f"   • Genre rows: {stats['genres']:,}")
    print(f"   • Country rows: {stats['countries']:,} "
          f"({stats['countries_from_director']:,} from directors, "
          f"{stats['countries_sentinel']:,} sentinel)")
    print(f"   • Director rows: {stats['directors']:,}")


# ============================================================================
# COMMAND-LINE INTERFACE
# ============================================================================

def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description='Build the cleaned and association tables from the staging table'
    )
    parser.parse_args(argv)
    setup_logging(config.logging)

    print("\n" + "="*70)
    print("🎬 NETFLIX INSIGHTS - Clean & Normalize")
    print("="*70)
    print(f"📅 Started: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")

    try:
        create_tables(engine)
        result = clean_titles(engine)
    except SQLAlchemyError as e:
        logger.exception("Transform failed")
        print(f"\n❌ Transform failed: {e}")
        return 1

    print_clean_summary(result)
    print(f"\n📅 Finished: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("="*70 + "\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
