"""
Exception hierarchy for report generation.
"""

from typing import Optional


class ReportError(RuntimeError):
    """Base class for every error raised while building a report."""


class ConfigurationError(ReportError):
    """Nothing to do: no projects, no assignees or an invalid worker count."""


class SourceUnavailable(ReportError):
    """OpenProject could not be reached (transport error, timeout)."""


class FetchCancelled(SourceUnavailable):
    """The fetch was abandoned because cancellation was requested."""


class SourceProtocolError(ReportError):
    """OpenProject answered, but not with a usable work package collection."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class CollectionCancelled(ReportError):
    """Collection stopped before all jobs were processed."""
