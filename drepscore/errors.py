"""Exception types for the sync pipeline.

Scoring functions never raise for missing data. Only the collector and the
orchestrator raise, and only these types cross module boundaries.
"""

from typing import Optional


class DRepScoreError(Exception):
    """Base class for pipeline errors."""


class TransientFetchError(DRepScoreError):
    """Upstream call failed in a way that is worth retrying (timeout, 429, 5xx)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class UpstreamError(DRepScoreError):
    """Upstream call failed permanently (4xx other than 429, bad payload)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class FatalSyncError(DRepScoreError):
    """The sync pass cannot continue (health check failed, no representative list)."""


class ConfigError(DRepScoreError):
    """Invalid scoring or sync configuration."""
