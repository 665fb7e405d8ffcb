"""
Manual / backfill ingestion run.

Examples:
    python scripts/fetch_data.py                       # last 7 days, all sources
    python scripts/fetch_data.py --days 3 --sources MODIS_NRT VIIRS_SNPP_NRT
    python scripts/fetch_data.py --start 2025-03-01 --end 2025-03-10
"""

import argparse
import logging
import sys
import os
from datetime import date

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from fire_tracker.catalog.sources import SATELLITE_SOURCES
from fire_tracker.data_ingestion.pipeline import default_date_range
from fire_tracker.database import init_db
from fire_tracker.exceptions import ConfigurationError
from fire_tracker.scheduler.tasks import run_ingestion


logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(name)s: %(message)s')
logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Fetch FIRMS hotspots for Maranhão and store them')
    parser.add_argument('--days', type=int, default=None,
                        help='Days back from --end or today (ignored when --start is given)')
    parser.add_argument('--start', type=date.fromisoformat, default=None, help='First day, YYYY-MM-DD')
    parser.add_argument('--end', type=date.fromisoformat, default=None, help='Last day, YYYY-MM-DD')
    parser.add_argument('--sources', nargs='+', default=None,
                        choices=[source.id for source in SATELLITE_SOURCES],
                        help='FIRMS sources (default: all)')
    parser.add_argument('--init-db', action='store_true', help='Create tables before fetching')
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    if args.start is not None:
        start, end = args.start, args.end or date.today()
    else:
        # --end alone anchors the default window
        start, end = default_date_range(today=args.end, days=args.days)

    if args.init_db:
        init_db()

    try:
        report = run_ingestion(trigger='backfill', start_date=start, end_date=end, sources=args.sources)
    except ConfigurationError as e:
        logger.error(f"Refusing to run: {e}")
        return 2

    if report is None:
        logger.error("Another ingestion run is in progress")
        return 1

    logger.info(f"Fetched {report.attempted} fires, {report.inserted} new incidents")
    if report.failed_sources:
        logger.warning(f"Sources that could not be fetched: {', '.join(report.failed_sources)}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
