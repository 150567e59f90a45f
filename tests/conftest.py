"""Shared fixtures for drepscore tests.

Note: Nothing here touches the network or DoltDB. Koios is served by an
in-process fake behind httpx.MockTransport and persistence goes to
InMemoryStore.
"""

import asyncio
import json
import sys
from datetime import datetime, timezone
from pathlib import Path

import httpx
import pytest

# Add the repo root to path so tests can import drepscore without installing
sys.path.insert(0, str(Path(__file__).parent.parent))

from drepscore.collectors.koios import KoiosCollector
from drepscore.config import SyncSettings
from drepscore.db.memory_store import InMemoryStore
from drepscore.models.drep import ImportanceTier, Proposal, RationaleRef, Vote, VoteDirection
from drepscore.utils.epochs import epoch_start

KOIOS_TEST_URL = "https://koios.test/api/v1"
FIXED_NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)
CURRENT_EPOCH = 520

LONG_RATIONALE = "I voted this way because the proposal is well scoped, audited and funded. " * 2


# ─── Domain builders ─────────────────────────────────────────────────────────


@pytest.fixture
def make_vote():
    """Build a Vote with sensible defaults; block_time falls inside `epoch`."""

    def _make(
        proposal: str = "p1",
        index: int = 0,
        direction: VoteDirection | str = VoteDirection.YES,
        epoch: int | None = 510,
        block_time: int | None = None,
        rep_id: str = "drep1test",
        rationale_url: str | None = None,
        inline: str | None = None,
        vote_tx_hash: str | None = None,
    ) -> Vote:
        if block_time is None:
            block_time = epoch_start(epoch if epoch is not None else 510) + 3600
        return Vote(
            rep_id=rep_id,
            proposal_tx_hash=proposal,
            proposal_index=index,
            direction=VoteDirection(direction),
            block_time=block_time,
            epoch=epoch,
            rationale_ref=RationaleRef(url=rationale_url) if rationale_url else None,
            vote_tx_hash=vote_tx_hash or f"vtx-{rep_id}-{proposal}-{index}-{block_time}",
            inline_rationale=inline,
        )

    return _make


@pytest.fixture
def make_proposal():
    """Build a classified Proposal."""

    def _make(
        tx_hash: str = "p1",
        index: int = 0,
        tier: ImportanceTier = ImportanceTier.STANDARD,
        opened: int | None = 505,
        closed: int | None = None,
        proposal_type: str = "TreasuryWithdrawals",
        treasury_tier: str | None = None,
        relevant_prefs: tuple = (),
    ) -> Proposal:
        return Proposal(
            tx_hash=tx_hash,
            index=index,
            importance_tier=tier,
            epoch_opened=opened,
            epoch_closed=closed,
            proposal_type=proposal_type,
            title=f"Proposal {tx_hash}",
            treasury_tier=treasury_tier,
            relevant_prefs=relevant_prefs,
        )

    return _make


@pytest.fixture
def memory_store():
    return InMemoryStore()


@pytest.fixture
def fixed_now():
    return lambda: FIXED_NOW


# ─── Fake Koios API ──────────────────────────────────────────────────────────


class FakeKoios:
    """In-process Koios: serves canned rows, pages by offset/limit, injects failures."""

    def __init__(self, tip_epoch: int = CURRENT_EPOCH):
        self.tip_epoch = tip_epoch
        self.dreps: list[dict] = []
        self.info: dict[str, dict] = {}
        self.metadata: dict[str, dict] = {}
        self.votes: dict[str, list[dict]] = {}
        self.proposals: list[dict] = []
        # endpoint name → list of status codes (or "timeout") returned on successive calls
        self.scripted: dict[str, list] = {}
        # drep_id → status code or "timeout" for every vote fetch of that DRep
        self.vote_failures: dict[str, object] = {}
        self.vote_delay = 0.0
        self.calls: list[tuple[str, str, dict]] = []
        self.in_flight = 0
        self.peak_in_flight = 0

    def add_drep(
        self,
        drep_id: str,
        ada: int = 50_000,
        registered: bool = True,
        meta: dict | None = None,
        votes: list[dict] | None = None,
    ):
        self.dreps.append({"drep_id": drep_id, "hex": drep_id[-8:], "has_script": False, "registered": registered})
        self.info[drep_id] = {
            "drep_id": drep_id,
            "registered": registered,
            "amount": str(ada * 1_000_000),
            "anchor_url": f"https://example.org/{drep_id}.jsonld" if meta else None,
            "delegators": 3,
        }
        if meta is not None:
            self.metadata[drep_id] = {"drep_id": drep_id, "url": f"https://example.org/{drep_id}.jsonld", "meta_json": meta}
        self.votes[drep_id] = list(votes or [])

    @staticmethod
    def vote_row(
        proposal: str,
        index: int = 0,
        vote: str = "Yes",
        epoch: int = 510,
        meta_url: str | None = None,
        vote_tx_hash: str | None = None,
    ) -> dict:
        block_time = epoch_start(epoch) + 7200
        return {
            "proposal_tx_hash": proposal,
            "proposal_index": index,
            "vote_tx_hash": vote_tx_hash or f"vtx-{proposal}-{index}-{vote}-{epoch}",
            "block_time": block_time,
            "vote": vote,
            "meta_url": meta_url,
            "epoch_no": epoch,
        }

    @staticmethod
    def proposal_row(
        tx_hash: str,
        proposal_type: str = "ParameterChange",
        proposed_epoch: int = 505,
        index: int = 0,
        **extra,
    ) -> dict:
        return {
            "proposal_tx_hash": tx_hash,
            "proposal_index": index,
            "proposal_type": proposal_type,
            "proposed_epoch": proposed_epoch,
            **extra,
        }

    def _scripted_status(self, endpoint: str, request: httpx.Request):
        script = self.scripted.get(endpoint)
        if not script:
            return None
        outcome = script.pop(0)
        if outcome == "timeout":
            raise httpx.ReadTimeout("timed out", request=request)
        return httpx.Response(outcome, json={"message": "scripted failure"})

    async def handler(self, request: httpx.Request) -> httpx.Response:
        endpoint = request.url.path.rsplit("/", 1)[-1]
        body = json.loads(request.content) if request.content else {}
        self.calls.append((request.method, endpoint, body))

        scripted = self._scripted_status(endpoint, request)
        if scripted is not None:
            return scripted

        offset = int(request.url.params.get("offset", 0))
        limit = int(request.url.params.get("limit", 1000))

        if endpoint == "tip":
            return httpx.Response(200, json=[{"epoch_no": self.tip_epoch, "block_time": epoch_start(self.tip_epoch) + 60}])
        if endpoint == "drep_list":
            rows = self.dreps
        elif endpoint == "drep_info":
            rows = [self.info[i] for i in body["_drep_ids"] if i in self.info]
        elif endpoint == "drep_metadata":
            rows = [self.metadata[i] for i in body["_drep_ids"] if i in self.metadata]
        elif endpoint == "drep_votes":
            drep_id = body["_drep_id"]
            self.in_flight += 1
            self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
            try:
                if self.vote_delay:
                    await asyncio.sleep(self.vote_delay)
                failure = self.vote_failures.get(drep_id)
                if failure == "timeout":
                    raise httpx.ReadTimeout("timed out", request=request)
                if failure:
                    return httpx.Response(failure, json={"message": "injected"})
                rows = self.votes.get(drep_id, [])
            finally:
                self.in_flight -= 1
        elif endpoint == "proposal_list":
            rows = self.proposals
        else:
            return httpx.Response(404, json={"message": f"unknown endpoint {endpoint}"})

        return httpx.Response(200, json=rows[offset : offset + limit])

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def count(self, endpoint: str) -> int:
        return sum(1 for _, name, _ in self.calls if name == endpoint)


@pytest.fixture
def fake_koios():
    return FakeKoios()


@pytest.fixture
def recorded_sleeps():
    """Backoff waits recorded instead of slept."""
    return []


@pytest.fixture
def make_collector(recorded_sleeps):
    """KoiosCollector wired to a FakeKoios with instant backoff."""

    async def fake_sleep(seconds: float):
        recorded_sleeps.append(seconds)

    def _make(fake: FakeKoios, page_size: int = 1000, **settings) -> KoiosCollector:
        return KoiosCollector(
            base_url=KOIOS_TEST_URL,
            api_key="",
            settings=SyncSettings(**settings),
            transport=fake.transport(),
            sleep=fake_sleep,
            page_size=page_size,
        )

    return _make
