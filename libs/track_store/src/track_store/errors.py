"""Domain errors for track store operations."""


class TrackStoreError(RuntimeError):
    """Base class for track store failures."""


class TrackStoreConnectionError(TrackStoreError):
    """Raised when the store cannot be reached or the connection drops."""


class TrackStoreNotOpenError(TrackStoreError):
    """Raised when the store is used before ``open()``."""
