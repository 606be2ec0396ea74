"""
Error taxonomy for the personalization engine.

The core never raises for data-quality problems: malformed records are
skipped, empty inputs produce neutral outputs. Only the boundary adapters
raise ``UpstreamUnavailable``; the orchestration service catches it and
returns a degraded result.
"""


class PersonalizationError(Exception):
    """Base class for personalization errors."""
    pass


class MalformedRecord(PersonalizationError):
    """Raised when an interaction row is missing its kind or timestamp."""

    def __init__(self, reason: str, row=None):
        super().__init__(reason)
        self.reason = reason
        self.row = row


class UpstreamUnavailable(PersonalizationError):
    """Raised by store/retriever adapters when the backing service fails."""

    def __init__(self, service: str, reason: str):
        super().__init__(f"{service} unavailable: {reason}")
        self.service = service
        self.reason = reason
