"""
Koios governance API collector.

Fetches the DRep list, DRep info/metadata, per-DRep vote histories and
the proposal list from Koios (https://api.koios.rest).

Request policy:
- Per-request timeout (default 5s)
- Transient failures (timeout, connection error, 429, 5xx) are retried
  with exponential backoff (default 2 retries: 1s, 2s)
- Any other 4xx or an undecodable body fails immediately
- Vote histories are fetched in sequential batches of 50 ids with at most
  5 requests in flight; one DRep's failure yields an empty vote list
- The health check and the DRep list are fatal: they raise FatalSyncError

Every response array is validated record by record; malformed rows are
dropped and counted in FetchMetrics.
"""

import asyncio
import logging
import time
from typing import Any, Optional, Sequence

import httpx

from ..config import SyncSettings, get_koios_api_key, get_koios_base_url
from ..constants import (
    FETCH_INITIAL_BACKOFF_SECONDS,
    KOIOS_MIN_REQUEST_INTERVAL_SECONDS,
    KOIOS_PAGE_SIZE,
)
from ..errors import DRepScoreError, FatalSyncError, TransientFetchError, UpstreamError
from ..schemas.koios import (
    KoiosDRepInfo,
    KoiosDRepListItem,
    KoiosDRepMetadata,
    KoiosProposal,
    KoiosTip,
    KoiosVote,
    ValidationReport,
    validate_records,
)
from ..utils.async_pool import AsyncWorkerPool
from ..utils.rate_limiter import AsyncRateLimiter
from .base import BaseCollector, FetchMetrics, FetchResult


def _is_transient_status(status_code: int) -> bool:
    return status_code == 429 or 500 <= status_code < 600


def _chunks(items: Sequence[str], size: int) -> list[list[str]]:
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


class KoiosCollector(BaseCollector):
    """
    Collect DRep governance data from the Koios REST API.

    Use as an async context manager (or call aclose()) so the underlying
    httpx.AsyncClient is closed.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        settings: Optional[SyncSettings] = None,
        logger=None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep=None,
        rate_limiter: Optional[AsyncRateLimiter] = None,
        min_request_interval: float = KOIOS_MIN_REQUEST_INTERVAL_SECONDS,
        page_size: int = KOIOS_PAGE_SIZE,
    ):
        """
        Initialize Koios collector.

        Args:
            base_url: API root (default: KOIOS_BASE_URL env or the public endpoint)
            api_key: Optional bearer token (default: KOIOS_API_KEY env)
            settings: Batch size, concurrency, timeout and retry settings
            logger: PipelineLogger or logging.Logger
            transport: httpx transport override (tests use httpx.MockTransport)
            sleep: Coroutine used for backoff waits (default asyncio.sleep)
            rate_limiter: Shared limiter for request spacing
            min_request_interval: Minimum seconds between request starts
            page_size: Rows per page for offset-paged endpoints
        """
        self.base_url = (base_url or get_koios_base_url()).rstrip("/")
        self.api_key = api_key if api_key is not None else get_koios_api_key()
        self.settings = settings or SyncSettings()
        self.logger = logger or logging.getLogger(__name__)
        self.metrics = FetchMetrics()
        self.page_size = page_size
        self._transport = transport
        self._sleep = sleep or asyncio.sleep
        self._rate_limiter = rate_limiter or AsyncRateLimiter()
        self._min_request_interval = min_request_interval
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def source_name(self) -> str:
        return "koios"

    async def __aenter__(self) -> "KoiosCollector":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    async def aclose(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Accept": "application/json", "Content-Type": "application/json"}
            if self.api_key:
                headers["Authorization"] = f"Bearer {self.api_key}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=httpx.Timeout(self.settings.request_timeout_seconds),
                transport=self._transport,
            )
        return self._client

    # =========================================================================
    # HTTP
    # =========================================================================

    async def _send_once(self, method: str, path: str, params: Optional[dict], json_body: Optional[dict]) -> Any:
        await self._rate_limiter.wait(self.source_name, self._min_request_interval)
        self.metrics.requests += 1
        start = time.perf_counter()
        try:
            response = await self._get_client().request(method, path, params=params, json=json_body)
        except httpx.TimeoutException as e:
            raise TransientFetchError(f"{path}: timeout after {self.settings.request_timeout_seconds}s") from e
        except httpx.TransportError as e:
            raise TransientFetchError(f"{path}: connection error: {e}") from e
        finally:
            self.metrics.elapsed_ms += int((time.perf_counter() - start) * 1000)

        if _is_transient_status(response.status_code):
            raise TransientFetchError(f"{path}: HTTP {response.status_code}", response.status_code)
        if response.status_code >= 400:
            raise UpstreamError(f"{path}: HTTP {response.status_code}", response.status_code)
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(f"{path}: response is not valid JSON") from e

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        json_body: Optional[dict] = None,
    ) -> Any:
        """
        One logical request with retry on transient failures.

        Raises:
            TransientFetchError: retries exhausted
            UpstreamError: non-retryable HTTP status or bad body
        """
        max_retries = self.settings.max_retries
        for attempt in range(max_retries + 1):
            try:
                return await self._send_once(method, path, params, json_body)
            except TransientFetchError as e:
                if attempt >= max_retries:
                    self.metrics.failed_requests += 1
                    raise
                backoff = FETCH_INITIAL_BACKOFF_SECONDS * (2**attempt)
                self.metrics.retries += 1
                self.logger.warning(f"[Koios] {e}; retry {attempt + 1}/{max_retries} in {backoff:.0f}s")
                await self._sleep(backoff)
            except UpstreamError:
                self.metrics.failed_requests += 1
                raise

    async def _request_all_pages(
        self,
        method: str,
        path: str,
        json_body: Optional[dict] = None,
    ) -> list:
        """Follow offset paging until a short page comes back."""
        rows: list = []
        offset = 0
        while True:
            page = await self._request(
                method, path, params={"offset": offset, "limit": self.page_size}, json_body=json_body
            )
            if not isinstance(page, list):
                # First page: let record validation report the bad shape
                return rows or page
            rows.extend(page)
            if len(page) < self.page_size:
                return rows
            offset += self.page_size

    def _validated(self, data: Any, model, label: str) -> ValidationReport:
        report = validate_records(data, model, label)
        self.metrics.record_validation(report.invalid_count, report.errors)
        return report

    def _record_error(self, message: str):
        self.metrics.errors.append(message)
        self.logger.warning(f"[Koios] {message}")

    # =========================================================================
    # Endpoints
    # =========================================================================

    async def check_health(self) -> KoiosTip:
        """GET /tip. The tip's epoch is the current epoch for scoring."""
        try:
            data = await self._request("GET", "/tip")
        except DRepScoreError as e:
            raise FatalSyncError(f"Koios health check failed: {e}") from e
        report = self._validated(data, KoiosTip, "tip")
        if not report.valid:
            raise FatalSyncError("Koios health check failed: no chain tip returned")
        return report.valid[0]

    async def list_representatives(self) -> list[KoiosDRepListItem]:
        """GET /drep_list (all pages)."""
        try:
            data = await self._request_all_pages("GET", "/drep_list")
        except DRepScoreError as e:
            raise FatalSyncError(f"Koios DRep list fetch failed: {e}") from e
        report = self._validated(data, KoiosDRepListItem, "drep_list")
        if not report.valid:
            raise FatalSyncError("No DReps returned from Koios")
        self.logger.info(f"[Koios] {len(report.valid)} DReps listed ({report.invalid_count} dropped)")
        return report.valid

    async def _post_batched(self, path: str, rep_ids: Sequence[str], model, label: str) -> FetchResult:
        result: FetchResult = FetchResult(success=True)
        for batch in _chunks(rep_ids, self.settings.batch_size):
            try:
                data = await self._request("POST", path, json_body={"_drep_ids": batch})
            except DRepScoreError as e:
                result.success = False
                result.error = str(e)
                self._record_error(f"{label} batch of {len(batch)} failed: {e}")
                continue
            report = self._validated(data, model, label)
            result.records.extend(report.valid)
            result.invalid_count += report.invalid_count
            result.validation_errors.extend(report.errors)
        return result

    async def fetch_info(self, rep_ids: Sequence[str]) -> FetchResult:
        """POST /drep_info in batches of batch_size ids."""
        return await self._post_batched("/drep_info", rep_ids, KoiosDRepInfo, "drep_info")

    async def fetch_metadata(self, rep_ids: Sequence[str]) -> FetchResult:
        """POST /drep_metadata in batches of batch_size ids."""
        return await self._post_batched("/drep_metadata", rep_ids, KoiosDRepMetadata, "drep_metadata")

    async def fetch_votes(self, rep_id: str) -> FetchResult:
        """POST /drep_votes for one DRep. Never raises for upstream errors."""
        try:
            data = await self._request_all_pages("POST", "/drep_votes", json_body={"_drep_id": rep_id})
        except DRepScoreError as e:
            self.metrics.rep_fetch_errors += 1
            self._record_error(f"votes for {rep_id} unavailable, using empty list: {e}")
            return FetchResult(success=False, error=str(e))
        report = self._validated(data, KoiosVote, "drep_votes")
        return FetchResult(
            success=True,
            records=report.valid,
            invalid_count=report.invalid_count,
            validation_errors=report.errors,
        )

    async def fetch_votes_batched(self, rep_ids: Sequence[str]) -> dict[str, list[KoiosVote]]:
        """
        Vote histories for many DReps.

        Batches run one after another; within a batch at most
        vote_concurrency requests are in flight.

        Returns:
            rep_id → validated votes (empty list when the fetch failed)
        """
        votes_by_rep: dict[str, list[KoiosVote]] = {}
        pool = AsyncWorkerPool(max_concurrency=self.settings.vote_concurrency, logger=self.logger)
        batches = _chunks(rep_ids, self.settings.batch_size)
        for number, batch in enumerate(batches, start=1):
            results = await pool.map(self.fetch_votes, batch, desc="drep_votes")
            for ok, rep_id, outcome in results:
                if ok:
                    votes_by_rep[rep_id] = outcome.records
                else:
                    self.metrics.rep_fetch_errors += 1
                    self._record_error(f"votes for {rep_id} failed unexpectedly: {outcome}")
                    votes_by_rep[rep_id] = []
            self.logger.debug(f"[Koios] vote batch {number}/{len(batches)} done ({len(batch)} DReps)")
        return votes_by_rep

    async def fetch_proposals(self) -> FetchResult:
        """GET /proposal_list (all pages). Failure is reported, not raised."""
        try:
            data = await self._request_all_pages("GET", "/proposal_list")
        except DRepScoreError as e:
            self._record_error(f"proposal list unavailable: {e}")
            return FetchResult(success=False, error=str(e))
        report = self._validated(data, KoiosProposal, "proposal_list")
        return FetchResult(
            success=True,
            records=report.valid,
            invalid_count=report.invalid_count,
            validation_errors=report.errors,
        )
