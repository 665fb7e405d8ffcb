"""
FIRMS (Fire Information for Resource Management System) data ingestion.
Fetches hotspot CSV from the NASA FIRMS area API and normalizes it into detections.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from io import StringIO

import numpy as np
import pandas as pd
import requests
from retry_requests import retry

from fire_tracker import config
from fire_tracker.catalog.sources import MARANHAO_BOUNDS
from fire_tracker.exceptions import DateRangeError, FetchError


logger = logging.getLogger(__name__)

# FIRMS answers some request errors with HTTP 200 and a plain-text message
FIRMS_ERROR_PREFIXES = ('Invalid', 'Error')

# VIIRS reports confidence as low/nominal/high
CONFIDENCE_CODES = {'l': 0, 'n': 50, 'h': 80}

NUMERIC_FIELDS = ['brightness', 'scan', 'track', 'frp', 'confidence']


@dataclass(frozen=True)
class Detection:
    """One normalized hotspot observation, not yet tied to a locality."""
    latitude: float
    longitude: float
    acquired_at: datetime
    brightness: float
    scan: float
    track: float
    satellite: str
    instrument: str
    confidence: int
    frp: float
    daynight: str = 'D'
    type: str = 'hotspot'
    version: str = '1.0'


@dataclass
class NormalizeStats:
    """Row accounting for one normalization pass."""
    rows: int = 0
    accepted: int = 0
    malformed: int = 0
    out_of_range: int = 0
    out_of_region: int = 0


def _as_date(value):
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value[:10])
    raise DateRangeError(f"Not a date: {value!r}")


def validate_date_range(start_date, end_date, max_days=None):
    """
    Normalize a request range to whole days and check it against the lookback window.

    Args:
        start_date: First day (date, datetime or ISO string)
        end_date: Last day, inclusive
        max_days: Widest allowed range (default: config.FIRMS_MAX_DAYS)

    Returns:
        tuple: (start_date, end_date) as date objects

    Raises:
        DateRangeError: If the range is inverted or wider than max_days
    """
    if max_days is None:
        max_days = config.FIRMS_MAX_DAYS

    try:
        start = _as_date(start_date)
        end = _as_date(end_date)
    except ValueError as e:
        raise DateRangeError(f"Invalid date: {e}") from e

    if start > end:
        raise DateRangeError(f"Start date {start} is after end date {end}")

    day_range = (end - start).days + 1
    if day_range > max_days:
        raise DateRangeError(
            f"Date range {start}..{end} spans {day_range} days; "
            f"FIRMS accepts at most {max_days}"
        )

    return start, end


def build_area_url(source_id, region, start_date, end_date, map_key, base_url=None):
    """
    Build the FIRMS area API URL for one source.

    Format: {base}/{MAP_KEY}/{SOURCE}/{west,south,east,north}/{DAY_RANGE}/{START_DATE}
    """
    if base_url is None:
        base_url = config.FIRMS_BASE_URL
    day_range = (end_date - start_date).days + 1
    return (f"{base_url.rstrip('/')}/{map_key}/{source_id}/"
            f"{region.as_area_string()}/{day_range}/{start_date.isoformat()}")


def create_session(retries=None, backoff_factor=None):
    """requests session that retries connection errors and 5xx with exponential backoff."""
    if retries is None:
        retries = config.FIRMS_RETRIES
    if backoff_factor is None:
        backoff_factor = config.FIRMS_BACKOFF_FACTOR
    return retry(
        requests.Session(),
        retries=retries,
        backoff_factor=backoff_factor,
        status_to_retry=(429, 500, 502, 503, 504),
    )


def fetch_source_csv(source_id, start_date, end_date, region=None, map_key=None,
                     session=None, timeout=None):
    """
    Fetch the raw hotspot CSV for one source.

    Args:
        source_id: FIRMS source identifier, e.g. 'VIIRS_SNPP_NRT'
        start_date: First day of the range
        end_date: Last day of the range (inclusive)
        region: BoundingRegion to query (default: Maranhão)
        map_key: FIRMS MAP_KEY (default: from environment)
        session: requests session (default: a retrying session)
        timeout: Per-request timeout in seconds

    Returns:
        str: CSV payload with a header row

    Raises:
        DateRangeError: If the range is invalid; raised before any request
        ConfigurationError: If no MAP_KEY is configured
        FetchError: If the source could not be fetched
    """
    start, end = validate_date_range(start_date, end_date)
    map_key = config.require_map_key(map_key)

    if region is None:
        region = MARANHAO_BOUNDS
    if session is None:
        session = create_session()
    if timeout is None:
        timeout = config.FIRMS_TIMEOUT

    url = build_area_url(source_id, region, start, end, map_key)
    logger.info(f"Requesting {source_id} for {start}..{end}")

    try:
        response = session.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.exceptions.RequestException as e:
        raise FetchError(source_id, f"request failed: {e}") from e

    text = response.text
    if text.lstrip().startswith(FIRMS_ERROR_PREFIXES):
        raise FetchError(source_id, text.strip()[:200])

    logger.info(f"Received {len(text)} bytes from {source_id}")
    return text


def parse_acquisition_datetime(acq_date, acq_time):
    """
    Parse FIRMS acquisition date and time into Python datetime.

    Args:
        acq_date: Date string (YYYY-MM-DD)
        acq_time: Time string (HHMM, UTC); unparseable values default to 00:00

    Returns:
        datetime: Combined naive UTC datetime, or None if the date is invalid
    """
    try:
        date_obj = datetime.strptime(str(acq_date).strip(), '%Y-%m-%d').date()
    except (ValueError, TypeError):
        return None

    try:
        time_str = str(int(float(acq_time))).zfill(4)
        acq = time(int(time_str[:2]), int(time_str[2:4]))
    except (ValueError, TypeError):
        acq = time(0, 0)

    return datetime.combine(date_obj, acq)


def _finite_or_zero(series):
    """Parse numbers; unparseable and infinite values become 0."""
    numeric = pd.to_numeric(series, errors='coerce')
    return numeric.replace([np.inf, -np.inf], np.nan).fillna(0)


def _coerce_confidence(series):
    codes = series.str.strip().str.lower().map(CONFIDENCE_CODES)
    numeric = pd.to_numeric(series, errors='coerce').replace([np.inf, -np.inf], np.nan)
    return numeric.fillna(codes).fillna(0)


def _read_rows(text):
    """
    Read CSV text as strings, keeping only rows whose field count matches the header.

    FIRMS never quotes fields, so a row with an unbalanced quote is malformed too.

    Returns:
        tuple: (DataFrame, number of malformed rows)
    """
    lines = [line for line in text.strip().splitlines() if line.strip()]
    if len(lines) < 2:
        return pd.DataFrame(), 0

    header = [col.strip() for col in lines[0].split(',')]
    well_formed = [
        line for line in lines[1:]
        if len(line.split(',')) == len(header) and line.count('"') % 2 == 0
    ]
    malformed = len(lines) - 1 - len(well_formed)

    if not well_formed:
        return pd.DataFrame(columns=header), malformed

    try:
        df = pd.read_csv(
            StringIO('\n'.join([lines[0]] + well_formed)),
            dtype=str,
            keep_default_na=False,
            skipinitialspace=True,
            engine='python',
            on_bad_lines='skip',
        )
    except pd.errors.ParserError as e:
        logger.warning(f"Unreadable CSV payload, {len(lines) - 1} rows dropped: {e}")
        return pd.DataFrame(columns=header), len(lines) - 1

    malformed += len(well_formed) - len(df)
    df.columns = [col.strip() for col in df.columns]
    return df, malformed


def normalize_records(text, start_date, end_date, source_id, region=None, stats=None):
    """
    Turn a FIRMS CSV payload into Detection records.

    The payload is parsed into a DataFrame on the first `next()`; detections are
    then yielded one at a time, so filtering and resolution downstream stay lazy.

    Rows with a field count different from the header, unparseable coordinates
    or an unparseable acquisition date are skipped. Numeric measurement fields
    default to zero when unparseable. Rows outside [start_date, end_date] or
    outside the region are dropped silently.

    Args:
        text: CSV payload with header row
        start_date: First accepted acquisition day
        end_date: Last accepted acquisition day (inclusive)
        source_id: Source the payload came from; fills missing satellite/instrument
        region: BoundingRegion filter (default: Maranhão)
        stats: Optional NormalizeStats updated as rows are consumed

    Yields:
        Detection
    """
    if region is None:
        region = MARANHAO_BOUNDS
    if stats is None:
        stats = NormalizeStats()

    start = _as_date(start_date)
    end = _as_date(end_date)

    df, malformed = _read_rows(text or '')
    stats.rows += len(df) + malformed
    stats.malformed += malformed

    if len(df) == 0:
        return

    # Standardize column names (VIIRS reports brightness as bright_ti4)
    if 'brightness' not in df.columns and 'bright_ti4' in df.columns:
        df = df.rename(columns={'bright_ti4': 'brightness'})

    for col in NUMERIC_FIELDS + ['latitude', 'longitude']:
        if col not in df.columns:
            df[col] = ''

    latitudes = pd.to_numeric(df['latitude'], errors='coerce')
    longitudes = pd.to_numeric(df['longitude'], errors='coerce')

    numeric = pd.DataFrame({
        col: _finite_or_zero(df[col])
        for col in ['brightness', 'scan', 'track', 'frp']
    })
    numeric['confidence'] = _coerce_confidence(df['confidence'])

    default_instrument = source_id.split('_')[0]

    for i, row in enumerate(df.to_dict('records')):
        lat = latitudes.iat[i]
        lon = longitudes.iat[i]
        if pd.isna(lat) or pd.isna(lon):
            stats.malformed += 1
            continue

        acquired_at = parse_acquisition_datetime(row.get('acq_date'), row.get('acq_time'))
        if acquired_at is None:
            stats.malformed += 1
            continue

        if not start <= acquired_at.date() <= end:
            stats.out_of_range += 1
            continue

        lat = round(float(lat), 6)
        lon = round(float(lon), 6)
        if not region.contains(lat, lon):
            stats.out_of_region += 1
            continue

        stats.accepted += 1
        yield Detection(
            latitude=lat,
            longitude=lon,
            acquired_at=acquired_at,
            brightness=float(numeric['brightness'].iat[i]),
            scan=float(numeric['scan'].iat[i]),
            track=float(numeric['track'].iat[i]),
            satellite=row.get('satellite') or source_id,
            instrument=row.get('instrument') or default_instrument,
            confidence=int(numeric['confidence'].iat[i]),
            frp=float(numeric['frp'].iat[i]),
            daynight=row.get('daynight') or 'D',
            type=row.get('type') or 'hotspot',
            version=row.get('version') or '1.0',
        )


def deduplicate_detections(detections):
    """
    Remove repeated detections within one batch.

    Duplicates are defined as same latitude, longitude, acquisition time,
    satellite and instrument; the first occurrence is kept.

    Args:
        detections: Iterable of Detection

    Returns:
        list: Deduplicated detections in original order
    """
    seen = set()
    unique = []
    for det in detections:
        key = (det.latitude, det.longitude, det.acquired_at, det.satellite, det.instrument)
        if key in seen:
            continue
        seen.add(key)
        unique.append(det)
    return unique
