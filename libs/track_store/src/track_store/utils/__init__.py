"""Utilities for the track store."""

from track_store.utils.retry import default_is_transient_error, retry_with_backoff

__all__ = ["default_is_transient_error", "retry_with_backoff"]
