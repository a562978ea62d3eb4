"""
Error taxonomy for routing, handoff, and feedback operations.

ValidationError is raised synchronously and never retried. Upstream and
corpus errors are raised by collaborators and converted into lower-confidence
decisions by the routing tiers; they do not escape ``RoutingEngine.route``.
"""

from typing import Optional


class RoutingError(Exception):
    """Base class for all errors raised by the routing core."""


class ValidationError(RoutingError):
    """Malformed role, missing required field, or disallowed transition."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class UpstreamError(RoutingError):
    """An external collaborator (embedding generator, classifier) failed."""

    def __init__(self, service: str, message: str):
        super().__init__(f"{service}: {message}")
        self.service = service


class UpstreamTimeout(UpstreamError):
    """An external collaborator exceeded its deadline."""

    def __init__(self, service: str, timeout: float):
        super().__init__(service, f"timed out after {timeout:.2f}s")
        self.timeout = timeout


class CorpusUnavailable(RoutingError):
    """The example corpus could not be read from the durable store."""


class ConcurrencyConflict(RoutingError):
    """Another writer published a corpus version first."""

    def __init__(self, expected_version: int, actual_version: Optional[int] = None):
        super().__init__(
            f"Corpus version moved: expected {expected_version}, found {actual_version}"
        )
        self.expected_version = expected_version
        self.actual_version = actual_version
