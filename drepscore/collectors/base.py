"""
Base collector interface for the sync pipeline.

The orchestrator only talks to this interface, so any upstream (Koios, a
recorded fixture, a fake in tests) can drive a sync pass. Every fetch is
fallible: per-representative methods degrade to empty results, while
check_health() and list_representatives() raise FatalSyncError.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Generic, Optional, Sequence, TypeVar

from ..constants import MAX_VALIDATION_ERRORS_KEPT

T = TypeVar("T")


@dataclass
class FetchResult(Generic[T]):
    """Result of one logical fetch (possibly several HTTP calls)."""

    success: bool
    records: list[T] = field(default_factory=list)
    error: Optional[str] = None
    invalid_count: int = 0
    validation_errors: list[str] = field(default_factory=list)


@dataclass
class FetchMetrics:
    """Counters for one collector session."""

    requests: int = 0
    retries: int = 0
    failed_requests: int = 0
    rep_fetch_errors: int = 0
    dropped_records: int = 0
    validation_errors: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    elapsed_ms: int = 0

    def record_validation(self, invalid_count: int, messages: Sequence[str]):
        self.dropped_records += invalid_count
        room = MAX_VALIDATION_ERRORS_KEPT - len(self.validation_errors)
        if room > 0:
            self.validation_errors.extend(messages[:room])

    def as_dict(self) -> dict:
        return {
            "requests": self.requests,
            "retries": self.retries,
            "failed_requests": self.failed_requests,
            "rep_fetch_errors": self.rep_fetch_errors,
            "dropped_records": self.dropped_records,
            "validation_errors": list(self.validation_errors),
            "elapsed_ms": self.elapsed_ms,
        }


class BaseCollector(ABC):
    """
    Upstream governance data source.

    Subclasses return validated Koios-shaped records (see
    drepscore/schemas/koios.py); the enrichment service does the rest.
    """

    metrics: FetchMetrics

    @property
    @abstractmethod
    def source_name(self) -> str:
        """Canonical source name (e.g., 'koios')."""
        ...

    @abstractmethod
    async def check_health(self):
        """Return the chain tip. Raises FatalSyncError when the source is down."""
        ...

    @abstractmethod
    async def list_representatives(self) -> list:
        """All DRep ids with registration state. Raises FatalSyncError on failure."""
        ...

    @abstractmethod
    async def fetch_info(self, rep_ids: Sequence[str]) -> FetchResult:
        ...

    @abstractmethod
    async def fetch_metadata(self, rep_ids: Sequence[str]) -> FetchResult:
        ...

    @abstractmethod
    async def fetch_votes(self, rep_id: str) -> FetchResult:
        """One representative's vote history; failure yields an empty list."""
        ...

    @abstractmethod
    async def fetch_votes_batched(self, rep_ids: Sequence[str]) -> dict[str, list]:
        """rep_id → votes for every id, batches run sequentially."""
        ...

    @abstractmethod
    async def fetch_proposals(self) -> FetchResult:
        ...

    async def aclose(self):
        """Release network resources."""
        return None
