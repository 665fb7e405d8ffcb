"""
Ingestion pipeline: fetch → normalize → resolve locality → persist, one source at a time.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import date, timedelta

from fire_tracker import config
from fire_tracker.catalog.localities import get_locality_index
from fire_tracker.catalog.sources import MARANHAO_BOUNDS, SATELLITE_SOURCES
from fire_tracker.exceptions import ConfigurationError, FetchError
from fire_tracker.geo.resolver import LocalityResolver
from .firms import (
    NormalizeStats,
    create_session,
    deduplicate_detections,
    fetch_source_csv,
    normalize_records,
    validate_date_range,
)
from .persistence import ResolvedDetection, persist_detections


logger = logging.getLogger(__name__)


@dataclass
class SourceReport:
    source: str
    fetched: bool = False
    error: str = None
    rows: int = 0
    normalized: int = 0
    dropped: int = 0
    unresolved: int = 0
    attempted: int = 0
    inserted: int = 0
    duplicates: int = 0
    failed: int = 0


@dataclass
class PipelineReport:
    start_date: date
    end_date: date
    sources: list = field(default_factory=list)

    @property
    def attempted(self):
        return sum(s.attempted for s in self.sources)

    @property
    def inserted(self):
        return sum(s.inserted for s in self.sources)

    @property
    def failed_sources(self):
        return [s.source for s in self.sources if s.error]

    def to_dict(self):
        return {
            'start_date': self.start_date.isoformat(),
            'end_date': self.end_date.isoformat(),
            'attempted': self.attempted,
            'inserted': self.inserted,
            'failed_sources': self.failed_sources,
            'sources': [vars(s).copy() for s in self.sources],
        }


def default_date_range(today=None, days=None):
    """Last `days` days ending today (inclusive)."""
    if today is None:
        today = date.today()
    if days is None:
        days = config.DEFAULT_LOOKBACK_DAYS
    return today - timedelta(days=days - 1), today


def run_pipeline(start_date=None, end_date=None, sources=None, region=None,
                 map_key=None, index=None, resolver=None, session=None,
                 session_factory=None, inter_source_delay=None):
    """
    Run one full ingestion cycle.

    Configuration is validated before any I/O. A failure to fetch one source is
    logged and recorded in the report; the remaining sources still run.

    Args:
        start_date: First day (default: DEFAULT_LOOKBACK_DAYS ago)
        end_date: Last day, inclusive (default: today)
        sources: FIRMS source ids (default: the whole catalog)
        region: BoundingRegion (default: Maranhão)
        map_key: FIRMS MAP_KEY (default: from environment)
        index: LocalityIndex (default: the process-wide index)
        resolver: LocalityResolver (default: built from config)
        session: requests session for FIRMS
        session_factory: SQLAlchemy session factory
        inter_source_delay: Seconds to wait between sources

    Returns:
        PipelineReport

    Raises:
        ConfigurationError: Missing MAP_KEY, empty locality index or invalid date range
    """
    if start_date is None or end_date is None:
        default_start, default_end = default_date_range()
        start_date = start_date or default_start
        end_date = end_date or default_end

    start, end = validate_date_range(start_date, end_date)
    map_key = config.require_map_key(map_key)

    if region is None:
        region = MARANHAO_BOUNDS
    if index is None:
        index = get_locality_index()
    if len(index) == 0:
        raise ConfigurationError("Locality index is empty")
    if resolver is None:
        resolver = LocalityResolver.from_config(index=index, region=region)
    if sources is None:
        sources = [source.id for source in SATELLITE_SOURCES]
    if session is None:
        session = create_session()
    if inter_source_delay is None:
        inter_source_delay = config.INTER_SOURCE_DELAY

    report = PipelineReport(start_date=start, end_date=end)
    logger.info(f"Pipeline started for {start}..{end} over {len(sources)} sources")

    for position, source_id in enumerate(sources):
        if position > 0 and inter_source_delay > 0:
            # Respect FIRMS rate limits
            time.sleep(inter_source_delay)

        source_report = SourceReport(source=source_id)
        report.sources.append(source_report)

        try:
            text = fetch_source_csv(
                source_id, start, end,
                region=region, map_key=map_key, session=session,
            )
        except FetchError as e:
            logger.error(f"Error fetching data from {source_id}: {e}")
            source_report.error = str(e) or type(e).__name__
            continue

        source_report.fetched = True
        try:
            _ingest_source(text, source_id, start, end, region, resolver,
                           session_factory, source_report)
        except Exception as e:
            logger.error(f"Error ingesting data from {source_id}: {e}")
            source_report.error = str(e) or type(e).__name__

    logger.info(
        f"Pipeline finished: {report.attempted} detections attempted, "
        f"{report.inserted} inserted, failed sources: {report.failed_sources or 'none'}"
    )
    return report


def _ingest_source(text, source_id, start, end, region, resolver, session_factory, source_report):
    stats = NormalizeStats()
    detections = deduplicate_detections(
        normalize_records(text, start, end, source_id, region=region, stats=stats)
    )

    # Geocoding happens here, before any database transaction is opened
    resolved = []
    for det in detections:
        locality = resolver.resolve(det.latitude, det.longitude)
        if locality is None:
            logger.info(f"Could not find municipality for coordinates: {det.latitude},{det.longitude}")
            source_report.unresolved += 1
            continue
        resolved.append(ResolvedDetection(det, locality.municipality, locality.state))

    source_report.rows = stats.rows
    source_report.normalized = stats.accepted
    source_report.dropped = stats.malformed + stats.out_of_range + stats.out_of_region
    logger.info(
        f"Parsed {stats.accepted} fires from {source_id} within date range "
        f"({source_report.dropped} rows dropped)"
    )

    result = persist_detections(resolved, source_id, session_factory=session_factory, region=region)
    source_report.attempted = result.attempted
    source_report.inserted = result.inserted
    source_report.duplicates = result.duplicates
    source_report.failed = result.failed
