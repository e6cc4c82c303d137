"""
============================================================================
NETFLIX INSIGHTS - Database Schema and Raw Loader
============================================================================
Creates the database schema and loads netflix_titles.csv into the staging
table verbatim. Cleaning happens later (see clean_titles.py).

🎯 PURPOSE:
    - Define the staging, cleaned and association tables
    - Load the CSV into netflix_titles_raw in batches
    - Record the original row order (load_order) for deduplication
    - Convert blank cells to NULL and release_year to INTEGER
    - Track progress for long operations

📊 DATABASE TABLES:
    1. netflix_titles_raw  - Staging copy of the CSV (one row per CSV row)
    2. netflix_titles      - One row per unique show_id after cleaning
    3. netflix_genres      - (show_id, genre) pairs from listed_in
    4. netflix_countries   - (show_id, country) pairs
    5. netflix_directors   - (show_id, director) pairs

🔧 USAGE:
    python -m netflix_insights.load_netflix_to_db [--csv PATH] [--recreate]

    Options:
        --csv PATH      Input file (default: TITLES_CSV from .env)
        --recreate      Drop and recreate all tables (careful!)
        --yes           Do not ask for confirmation with --recreate
        --batch SIZE    Custom batch size (default: BATCH_SIZE from .env)
        --verify        Run verification queries after loading

📝 OUTPUT:
    - Database: DATABASE_URL (default data/netflix.db)
    - Load log: LOG_FILE (default data/logs/netflix_insights.log)

============================================================================
"""

import sys
import csv
import time
import logging
import argparse
from pathlib import Path
from datetime import datetime
from typing import Optional, Dict, List, Any, Iterator, Union

from config import config, setup_logging
from sqlalchemy import (
    create_engine, Column, Integer, String, Text, Date,
    Index, ForeignKey, PrimaryKeyConstraint, event, func, select, delete
)
from sqlalchemy.engine import Engine, URL, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from tqdm import tqdm

# Long cast lists exceed the default csv field limit (131072 bytes)
csv.field_size_limit(10 * 1024 * 1024)

logger = logging.getLogger(__name__)

# Columns of netflix_titles.csv, in file order
CSV_COLUMNS = [
    'show_id', 'type', 'title', 'director', 'cast', 'country',
    'date_added', 'release_year', 'rating', 'duration', 'listed_in',
    'description',
]


# ============================================================================
# DATABASE SETUP
# ============================================================================

Base = declarative_base()


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create a SQLAlchemy engine, tuned for bulk inserts when on SQLite.

    Args:
        database_url: SQLAlchemy connection URL
        echo: Log every SQL statement

    Returns:
        Engine bound to the database
    """
    is_sqlite = database_url.startswith('sqlite')
    new_engine = create_engine(
        database_url,
        echo=echo,
        connect_args={'timeout': 30} if is_sqlite else {},
    )

    if is_sqlite:
        @event.listens_for(new_engine, "connect")
        def set_sqlite_pragma(dbapi_conn, connection_record):
            """
            🔧 PERFORMANCE TUNING:
            - synchronous=NORMAL: Balance between safety and speed
            - temp_store=MEMORY: Keep temporary tables in memory
            - foreign_keys=ON: Enforce association -> title references
            """
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.execute("PRAGMA temp_store=MEMORY")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return new_engine


def masked_url(url: Union[str, URL]) -> str:
    """Connection URL for display, with any password replaced by ***."""
    return make_url(url).render_as_string(hide_password=True)


# Module-level engine and session factory used by the command-line scripts
engine = build_engine(config.database.database_url, echo=config.database.echo)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


# ============================================================================
# TABLE DEFINITIONS
# ============================================================================

# ----------------------------------------------------------------------------
# 1. STAGING - Verbatim CSV rows
# ----------------------------------------------------------------------------
class NetflixTitleRaw(Base):
    """
    One row per CSV data row, as it appears in the file.

    🎯 PRIMARY USE: Input of the cleaning transform (read once as a snapshot)
    🔧 NOTE: show_id is NOT unique here; duplicates are resolved by
             clean_titles.deduplicate_titles using load_order.
    """
    __tablename__ = 'netflix_titles_raw'

    load_order = Column(
        Integer,
        primary_key=True,
        autoincrement=False,
        comment='1-based position of the row in the source file'
    )
    show_id = Column(Text, nullable=True, comment='Natural key (may repeat or be missing)')
    type = Column(Text, nullable=True, comment='Movie or TV Show')
    title = Column(Text, nullable=True)
    director = Column(Text, nullable=True, comment='Comma-separated directors')
    cast = Column(Text, nullable=True, comment='Comma-separated cast members')
    country = Column(Text, nullable=True, comment='Comma-separated countries')
    date_added = Column(Text, nullable=True, comment='Text date, e.g. September 25, 2021')
    release_year = Column(Integer, nullable=True, comment='Release year (INTEGER)')
    rating = Column(Text, nullable=True, comment='Maturity rating, sometimes a duration')
    duration = Column(Text, nullable=True, comment='Text duration, e.g. 90 min or 2 Seasons')
    listed_in = Column(Text, nullable=True, comment='Comma-separated genres')
    description = Column(Text, nullable=True)

    __table_args__ = (
        Index('idx_raw_show_id', 'show_id'),
    )

    def __repr__(self):
        return f"<NetflixTitleRaw(load_order={self.load_order}, show_id='{self.show_id}')>"


# ----------------------------------------------------------------------------
# 2. CLEANED TITLES - One row per show_id
# ----------------------------------------------------------------------------
class NetflixTitle(Base):
    """
    Deduplicated and normalized titles.

    📊 DATA TYPES: date_added as DATE, duration split into value + unit
    """
    __tablename__ = 'netflix_titles'

    show_id = Column(String(20), primary_key=True)
    type = Column(String(20), nullable=True)
    title = Column(Text, nullable=True)
    date_added = Column(Date, nullable=True, comment='NULL when the source date was unparseable')
    year_added = Column(Integer, nullable=True, comment='Year of date_added')
    release_year = Column(Integer, nullable=True)
    rating = Column(String(20), nullable=True)
    duration_value = Column(Integer, nullable=True, comment='Minutes for movies, seasons for shows')
    duration_unit = Column(String(10), nullable=True, comment="'min' or 'season'")
    description = Column(Text, nullable=True)

    __table_args__ = (
        Index('idx_titles_type_year', 'type', 'year_added'),
    )

    def __repr__(self):
        return f"<NetflixTitle(show_id='{self.show_id}', title='{self.title}')>"


# ----------------------------------------------------------------------------
# 3-5. ASSOCIATION TABLES - One row per (title, value)
# ----------------------------------------------------------------------------
class NetflixGenre(Base):
    """Genres split out of listed_in."""
    __tablename__ = 'netflix_genres'

    show_id = Column(String(20), ForeignKey('netflix_titles.show_id', ondelete='CASCADE'), nullable=False)
    position = Column(Integer, nullable=False, comment='1-based position within listed_in')
    genre = Column(String(100), nullable=False)

    __table_args__ = (
        PrimaryKeyConstraint('show_id', 'position', name='pk_netflix_genres'),
        Index('idx_genres_genre', 'genre'),
    )


class NetflixCountry(Base):
    """Countries split out of country (with missing values filled)."""
    __tablename__ = 'netflix_countries'

    show_id = Column(String(20), ForeignKey('netflix_titles.show_id', ondelete='CASCADE'), nullable=False)
    position = Column(Integer, nullable=False)
    country = Column(String(100), nullable=False)

    __table_args__ = (
        PrimaryKeyConstraint('show_id', 'position', name='pk_netflix_countries'),
        Index('idx_countries_country', 'country'),
    )


class NetflixDirector(Base):
    """Directors split out of director."""
    __tablename__ = 'netflix_directors'

    show_id = Column(String(20), ForeignKey('netflix_titles.show_id', ondelete='CASCADE'), nullable=False)
    position = Column(Integer, nullable=False)
    director = Column(String(200), nullable=False)

    __table_args__ = (
        PrimaryKeyConstraint('show_id', 'position', name='pk_netflix_directors'),
        Index('idx_directors_director', 'director'),
    )


# ============================================================================
# DATA LOADING FUNCTIONS WITH PROPER TYPE HANDLING
# ============================================================================

def clean_value(value: Optional[str]) -> Optional[str]:
    """
    Strip a CSV cell, converting blank cells to None.
    """
    if value is None:
        return None
    value = value.strip()
    return value or None


def parse_integer(value: Optional[str]) -> Optional[int]:
    """
    Parse an integer cell; anything non-numeric becomes None.
    """
    cleaned = clean_value(value)
    if cleaned is None:
        return None
    try:
        return int(cleaned)
    except (ValueError, TypeError):
        return None


def read_csv_in_batches(
    file_path: Path,
    batch_size: int = 5000
) -> Iterator[List[Dict[str, Any]]]:
    """
    Read the titles CSV in batches to bound memory use.

    Args:
        file_path: Path to CSV file
        batch_size: Number of rows per batch

    Yields:
        Batches of rows as list of dictionaries

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If required columns are missing from the header
    """
    if not file_path.exists():
        raise FileNotFoundError(f"Titles file not found: {file_path}")

    # utf-8-sig drops the BOM some exports of the dataset carry
    with open(file_path, 'r', encoding='utf-8-sig', newline='') as f:
        reader = csv.DictReader(f)

        header = [name.strip() for name in (reader.fieldnames or [])]
        missing = [name for name in CSV_COLUMNS if name not in header]
        if missing:
            raise ValueError(f"{file_path.name} is missing columns: {', '.join(missing)}")
        reader.fieldnames = header

        batch = []
        for row in reader:
            batch.append(row)

            if len(batch) >= batch_size:
                yield batch
                batch = []

        if batch:
            yield batch


def count_data_rows(file_path: Path) -> int:
    """Count CSV records (not lines: quoted cells may span several lines)."""
    with open(file_path, 'r', encoding='utf-8-sig', newline='') as f:
        return sum(1 for _ in csv.reader(f)) - 1


def build_raw_record(row: Dict[str, Any], load_order: int) -> NetflixTitleRaw:
    """Map one CSV row onto a staging record."""
    return NetflixTitleRaw(
        load_order=load_order,
        show_id=clean_value(row['show_id']),
        type=clean_value(row['type']),
        title=clean_value(row['title']),
        director=clean_value(row['director']),
        cast=clean_value(row['cast']),
        country=clean_value(row['country']),
        date_added=clean_value(row['date_added']),
        release_year=parse_integer(row['release_year']),  # INTEGER
        rating=clean_value(row['rating']),
        duration=clean_value(row['duration']),
        listed_in=clean_value(row['listed_in']),
        description=clean_value(row['description']),
    )


def load_raw_titles(session: Session, file_path: Path, batch_size: int = 5000) -> int:
    """
    Replace the staging table with the contents of the titles CSV.

    The previous staging rows are deleted in the same transaction, so the
    table always holds exactly one load.

    🎯 LOADS: ~8.8K titles for the public dataset
    📊 DATA TYPES: release_year as INTEGER, everything else as text

    Returns:
        Number of rows loaded
    """
    print(f"\n📥 Loading Netflix titles from {file_path.name}")

    total_rows = count_data_rows(file_path) if file_path.exists() else 0
    loaded = 0

    try:
        session.execute(delete(NetflixTitleRaw))

        with tqdm(total=total_rows, desc="   Progress", unit=" titles") as pbar:
            for batch in read_csv_in_batches(file_path, batch_size):
                records = [
                    build_raw_record(row, loaded + offset)
                    for offset, row in enumerate(batch, 1)
                ]
                session.bulk_save_objects(records)
                loaded += len(records)
                pbar.update(len(batch))

        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info("Loaded %d raw rows from %s", loaded, file_path)
    print(f"   ✅ Loaded {loaded:,} raw title records")
    return loaded


# ============================================================================
# MAIN LOADING ORCHESTRATION
# ============================================================================

def create_tables(bind: Engine, recreate: bool = False, assume_yes: bool = False) -> bool:
    """Create all database tables, optionally dropping them first."""
    if recreate:
        print("\n⚠️  WARNING: Dropping all existing tables!")
        if not assume_yes:
            response = input("Are you sure? This will DELETE all data! (yes/no): ")
            if response.lower() != 'yes':
                print("❌ Cancelled")
                return False

        Base.metadata.drop_all(bind)
        logger.warning("Dropped all tables")
        print("   🗑️  Dropped all tables")

    Base.metadata.create_all(bind)
    print("   ✅ Created all tables with proper schemas and indexes")
    return True


def count_rows(session: Session) -> Dict[str, int]:
    """Row count of every table, keyed by table name."""
    models = [NetflixTitleRaw, NetflixTitle, NetflixGenre, NetflixCountry, NetflixDirector]
    return {
        model.__tablename__: session.scalar(select(func.count()).select_from(model))
        for model in models
    }


def verify_database(session: Session) -> Dict[str, int]:
    """
    Run verification queries to ensure data loaded correctly.

    🔧 VERIFIES:
        - Record counts
        - release_year stored as INTEGER
        - Duplicate and missing show_id counts in staging
    """
    print("\n" + "="*70)
    print("🔍 DATABASE VERIFICATION")
    print("="*70)

    counts = count_rows(session)
    print(f"\n📊 Record counts in database:")
    for table, count in counts.items():
        print(f"   • {table}: {count:,}")

    sample = session.scalars(
        select(NetflixTitleRaw).where(NetflixTitleRaw.release_year.isnot(None)).limit(1)
    ).first()
    if sample is not None:
        print(f"   • release_year as INTEGER: {type(sample.release_year).__name__} = {sample.release_year}")

    distinct_ids = session.scalar(select(func.count(func.distinct(NetflixTitleRaw.show_id))))
    missing_ids = session.scalar(
        select(func.count()).select_from(NetflixTitleRaw).where(NetflixTitleRaw.show_id.is_(None))
    )
    duplicates = counts['netflix_titles_raw'] - missing_ids - distinct_ids
    print(f"\n   • Distinct show_id: {distinct_ids:,}")
    print(f"   • Duplicate rows: {duplicates:,}")
    print(f"   • Rows without show_id: {missing_ids:,}")

    return counts


def load_titles(
    file_path: Path,
    batch_size: int,
    bind: Optional[Engine] = None,
    verify: bool = False,
) -> int:
    """Load the titles CSV into staging and print a summary."""
    bind = bind or engine

    print("\n" + "="*70)
    print("🎬 NETFLIX INSIGHTS - Raw Loader")
    print("="*70)
    print(f"📅 Started: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"💾 Database: {masked_url(bind.url)}")
    print(f"📦 Batch size: {batch_size:,} records")

    start_time = time.time()
    with Session(bind) as session:
        loaded = load_raw_titles(session, file_path, batch_size)

        if verify:
            verify_database(session)

    print(f"\n⏱️  Completed in {time.time() - start_time:.1f} seconds")
    print(f"📅 Finished: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("="*70 + "\n")
    return loaded


# ============================================================================
# COMMAND-LINE INTERFACE
# ============================================================================

def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description='Load netflix_titles.csv into the staging table',
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        '--csv',
        type=Path,
        default=config.paths.titles_csv,
        help=f'Input CSV (default: {config.paths.titles_csv})'
    )

    parser.add_argument(
        '--recreate',
        action='store_true',
        help='Drop and recreate all tables (⚠️ DESTRUCTIVE!)'
    )

    parser.add_argument(
        '--yes',
        action='store_true',
        help='Skip the confirmation prompt of --recreate'
    )

    parser.add_argument(
        '--batch',
        type=int,
        default=config.processing.batch_size,
        help=f'Batch size for loading (default: {config.processing.batch_size})'
    )

    parser.add_argument(
        '--verify',
        action='store_true',
        help='Run verification queries after loading'
    )

    args = parser.parse_args(argv)
    setup_logging(config.logging)

    try:
        if not create_tables(engine, recreate=args.recreate, assume_yes=args.yes):
            return 1
        load_titles(args.csv, args.batch, verify=args.verify)
    except (OSError, ValueError, SQLAlchemyError) as e:
        logger.exception("Load failed")
        print(f"\n❌ Load failed: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
