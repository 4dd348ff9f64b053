"""Track store: the record surface read and written by enrichment runs."""

from .base import TrackStore
from .errors import TrackStoreConnectionError, TrackStoreError, TrackStoreNotOpenError
from .postgres import PostgresTrackStore

__all__ = [
    "PostgresTrackStore",
    "TrackStore",
    "TrackStoreConnectionError",
    "TrackStoreError",
    "TrackStoreNotOpenError",
]
