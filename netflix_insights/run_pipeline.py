"""
============================================================================
NETFLIX INSIGHTS - One-shot Pipeline
============================================================================
Runs the whole ELT sequence against the configured database:

    netflix_titles.csv -> netflix_titles_raw -> cleaned tables -> reports

🔧 USAGE:
    python -m netflix_insights.run_pipeline [--csv PATH] [--skip-load]

    Options:
        --csv PATH       Input file (default: TITLES_CSV from .env)
        --skip-load      Reuse the current staging table
        --no-reports     Stop after the cleaning stage
        --export         Export report results to REPORTS_DIR
        --plot           Save report charts

⚠️  Any failure aborts the run. The cleaning stage writes in a single
    transaction, so the previous cleaned tables survive a failed rerun.

============================================================================
"""

import sys
import time
import logging
import argparse
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import config, setup_logging
from netflix_insights.load_netflix_to_db import (
    engine, create_tables, load_raw_titles, masked_url,
)
from netflix_insights.clean_titles import CleanResult, clean_titles, print_clean_summary
from netflix_insights.run_reports import (
    ReportOptions, run_reports, export_report, plot_report, print_report,
)

logger = logging.getLogger(__name__)


@dataclass
class PipelineRun:
    """What one pipeline run produced."""
    loaded_rows: Optional[int]
    clean: CleanResult
    reports: Dict[str, pd.DataFrame] = field(default_factory=dict)
    exported: List[Path] = field(default_factory=list)


def run_pipeline(
    csv_path: Path,
    bind: Optional[Engine] = None,
    batch_size: int = 5000,
    skip_load: bool = False,
    report_names: Optional[List[str]] = None,
    run_report_stage: bool = True,
    report_options: Optional[ReportOptions] = None,
    export_dir: Optional[Path] = None,
    export_format: str = 'csv',
    plot_dir: Optional[Path] = None,
) -> PipelineRun:
    """
    Load, clean and report in sequence.

    Args:
        csv_path: Titles CSV
        bind: Target engine (module engine by default)
        batch_size: CSV rows per insert batch
        skip_load: Keep the existing staging table
        report_names: Reports to run (all by default)
        run_report_stage: Set False to stop after cleaning
        report_options: Parameters of the reports
        export_dir: Write report results here when set
        export_format: csv or json
        plot_dir: Write report charts here when set

    Returns:
        PipelineRun with the stage outputs
    """
    bind = bind or engine
    create_tables(bind)

    loaded_rows = None
    if not skip_load:
        with Session(bind) as session:
            loaded_rows = load_raw_titles(session, csv_path, batch_size)

    clean = clean_titles(bind)
    run = PipelineRun(loaded_rows=loaded_rows, clean=clean)

    if run_report_stage:
        run.reports = run_reports(bind, report_names, report_options)
        for name, frame in run.reports.items():
            if export_dir is not None:
                run.exported.append(export_report(name, frame, export_dir, export_format))
            if plot_dir is not None:
                chart = plot_report(name, frame, plot_dir)
                if chart is not None:
                    run.exported.append(chart)

    logger.info("Pipeline finished: loaded=%s titles=%d reports=%d",
                loaded_rows, clean.stats['titles'], len(run.reports))
    return run


# ============================================================================
# COMMAND-LINE INTERFACE
# ============================================================================

def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description='Load, clean and report on the Netflix titles dataset'
    )
    parser.add_argument('--csv', type=Path, default=config.paths.titles_csv,
                        help=f'Input CSV (default: {config.paths.titles_csv})')
    parser.add_argument('--batch', type=int, default=config.processing.batch_size,
                        help=f'Batch size for loading (default: {config.processing.batch_size})')
    parser.add_argument('--skip-load', action='store_true',
                        help='Reuse the current staging table')
    parser.add_argument('--no-reports', action='store_true',
                        help='Stop after the cleaning stage')
    parser.add_argument('--export', action='store_true',
                        help=f'Export report results to {config.paths.reports_dir}')
    parser.add_argument('--plot', action='store_true',
                        help='Save report charts')
    args = parser.parse_args(argv)

    setup_logging(config.logging)

    print("\n" + "="*70)
    print("🎬 NETFLIX INSIGHTS - Pipeline")
    print("="*70)
    print(f"📅 Started: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"💾 Database: {masked_url(config.database.database_url)}")

    start_time = time.time()
    try:
        run = run_pipeline(
            args.csv,
            batch_size=args.batch,
            skip_load=args.skip_load,
            run_report_stage=not args.no_reports,
            report_options=ReportOptions(top_n=config.report.top_n, genre=config.report.genre),
            export_dir=config.paths.reports_dir if args.export else None,
            export_format=config.processing.export_format,
            plot_dir=config.paths.reports_dir / 'figures' if args.plot else None,
        )
    except (OSError, ValueError, SQLAlchemyError) as e:
        logger.exception("Pipeline failed")
        print(f"\n❌ Pipeline failed: {e}")
        return 1

    print_clean_summary(run.clean)
    for name, frame in run.reports.items():
        print_report(name, frame)
    for path in run.exported:
        print(f"   💾 {path}")

    print(f"\n⏱️  Total time: {time.time() - start_time:.1f} seconds")
    print("="*70)
    print("✅ PIPELINE COMPLETE!")
    print("="*70 + "\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
