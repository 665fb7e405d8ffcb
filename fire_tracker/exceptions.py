"""
Exception types shared across the ingestion pipeline.
"""


class FireTrackerError(Exception):
    """Base class for all fire tracker errors."""


class ConfigurationError(FireTrackerError):
    """Missing credentials, empty reference data or invalid run parameters.

    Raised at call entry; the pipeline refuses to run instead of producing
    partial data.
    """


class DateRangeError(ConfigurationError, ValueError):
    """Requested date range is inverted or wider than the upstream lookback window."""


class FetchError(FireTrackerError):
    """A hotspot source could not be fetched."""

    def __init__(self, source, message):
        super().__init__(f"{source}: {message}")
        self.source = source
