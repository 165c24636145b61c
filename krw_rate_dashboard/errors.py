"""Exceptions raised across the rate pipeline."""


class RateDashboardError(Exception):
    """Base error for the application."""


class RateSourceError(RateDashboardError):
    """Raised when the upstream rate feed cannot be used."""


class UpstreamUnavailable(RateSourceError):
    """Network failure, timeout or non-success HTTP response."""


class MalformedResponse(RateSourceError):
    """Payload could not be parsed into date -> rate entries."""


class AnalysisError(RateDashboardError):
    """Base error for the AI analysis calls."""


class AnalysisUnavailable(AnalysisError):
    """The analysis collaborator failed or returned something unusable."""


class InsufficientData(AnalysisError):
    """Fewer than two normalized points are available for analysis."""
