"""Data ingestion modules for the Maranhão Fire Tracker."""

from .firms import Detection, fetch_source_csv, normalize_records
from .persistence import ResolvedDetection, save_fires_to_db, persist_detections
from .pipeline import run_pipeline

__all__ = [
    'Detection',
    'fetch_source_csv',
    'normalize_records',
    'ResolvedDetection',
    'save_fires_to_db',
    'persist_detections',
    'run_pipeline',
]
