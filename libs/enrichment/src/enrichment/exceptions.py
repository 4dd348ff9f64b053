"""Exceptions for the enrichment pipeline and its API helpers."""


class EnrichmentError(Exception):
    """Base exception for enrichment errors."""

    pass


class TransientEnrichmentError(EnrichmentError):
    """Raised when a record could not be resolved now but may succeed on a later pass."""

    pass


class MalformedResponseError(TransientEnrichmentError):
    """Raised when an external service returns a payload that cannot be used."""

    pass


class OdesliAPIError(TransientEnrichmentError):
    """Raised when an Odesli request fails due to network errors or 5xx responses."""

    pass


class OdesliRateLimitError(OdesliAPIError):
    """Raised when the Odesli rate limit is still exhausted after retries."""

    pass


class OdesliNotFoundError(EnrichmentError):
    """Raised when Odesli has no entity for the requested identifier."""

    pass


class InvalidTransitionError(EnrichmentError):
    """Raised when a task status change is not allowed by the lifecycle."""

    pass


class TaskNotFoundError(EnrichmentError, KeyError):
    """Raised when a task id is not known to the registry."""

    pass
