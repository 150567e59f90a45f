"""Tests for the enrichment service (pure scoring pass and the fetching wrapper)."""

import asyncio

from drepscore.models.drep import EnrichedRep, ImportanceTier, ProfileMetadata, Rep
from drepscore.schemas.koios import KoiosDRepInfo, KoiosDRepListItem, KoiosDRepMetadata
from drepscore.scorers.weights_registry import DEFAULT_WEIGHTS
from drepscore.services.enrichment import (
    EnrichmentContext,
    EnrichmentService,
    available_proposal_count,
    build_rep,
    enrich_reps,
    links_by_rep,
    sort_enriched,
)

from conftest import CURRENT_EPOCH, LONG_RATIONALE


def _ctx(proposals=(), **kwargs) -> EnrichmentContext:
    return EnrichmentContext(
        current_epoch=CURRENT_EPOCH,
        proposals={p.key: p for p in proposals},
        weights=DEFAULT_WEIGHTS,
        **kwargs,
    )


# ─── Pure pass ───────────────────────────────────────────────────────────────


class TestEnrichReps:
    def test_rep_without_votes_scores_zero_on_vote_pillars(self, make_proposal):
        proposals = [make_proposal(f"p{i}") for i in range(3)]
        rep = Rep(id="drep1quiet", profile=ProfileMetadata(name="Quiet"))
        enriched, votes = enrich_reps([rep], {}, _ctx(proposals))

        (quiet,) = enriched
        assert votes == {"drep1quiet": []}
        assert quiet.participation_rate == 0
        assert quiet.effective_participation == 0
        assert quiet.deliberation_modifier == 1.0
        assert quiet.rationale_rate_raw == 0
        assert quiet.rationale_rate_curved == 0
        assert quiet.reliability.score == 0
        assert quiet.profile_completeness == 15
        assert quiet.drep_score == 2  # 15 * 0.15 = 2.25
        assert quiet.epoch_vote_counts == []
        assert quiet.last_vote_time is None

    def test_ten_votes_nine_yes(self, make_vote, make_proposal):
        proposals = [make_proposal(f"p{i}", tier=ImportanceTier.IMPORTANT) for i in range(10)]
        votes = [make_vote(proposal=f"p{i}", direction="No" if i == 0 else "Yes") for i in range(10)]
        enriched, _ = enrich_reps([Rep(id="drep1a")], {"drep1a": votes}, _ctx(proposals))

        (rep,) = enriched
        assert rep.participation_rate == 100
        assert rep.deliberation_modifier == 0.85
        assert rep.effective_participation == 85
        assert (rep.yes_votes, rep.no_votes, rep.abstain_votes) == (9, 1, 0)
        assert rep.epoch_vote_counts == [10]

    def test_duplicate_votes_latest_wins(self, make_vote, make_proposal):
        early = make_vote(proposal="p1", direction="Yes", block_time=1_000)
        late = make_vote(proposal="p1", direction="No", block_time=2_000)
        enriched, votes = enrich_reps([Rep(id="drep1a")], {"drep1a": [late, early]}, _ctx([make_proposal("p1")]))

        assert enriched[0].total_votes == 1
        assert enriched[0].no_votes == 1
        assert votes["drep1a"] == [late]

    def test_proposals_closed_before_first_vote_not_available(self, make_vote, make_proposal):
        proposals = [
            make_proposal("old", opened=480, closed=490),
            make_proposal("p1", opened=505),
            make_proposal("p2", opened=505),
        ]
        enriched, _ = enrich_reps(
            [Rep(id="drep1a")], {"drep1a": [make_vote(proposal="p1", epoch=510)]}, _ctx(proposals)
        )
        assert enriched[0].participation_rate == 50

    def test_fallback_without_proposals(self, make_vote):
        votes = {
            "drep1a": [make_vote(proposal=f"p{i}", rep_id="drep1a") for i in range(4)],
            "drep1b": [make_vote(proposal=f"p{i}", rep_id="drep1b") for i in range(2)],
        }
        enriched, _ = enrich_reps([Rep(id="drep1a"), Rep(id="drep1b")], votes, _ctx())
        rates = {e.id: e.participation_rate for e in enriched}
        assert rates == {"drep1a": 100, "drep1b": 50}

    def test_fetched_rationale_texts_used(self, make_vote, make_proposal):
        votes = [
            make_vote(proposal="p1", rationale_url="https://example.org/1", vote_tx_hash="tx1"),
            make_vote(proposal="p2", rationale_url="https://example.org/2", vote_tx_hash="tx2"),
        ]
        proposals = [make_proposal("p1"), make_proposal("p2")]
        ctx = _ctx(proposals, rationale_texts={"tx1": LONG_RATIONALE, "tx2": "short"})
        enriched, _ = enrich_reps([Rep(id="drep1a")], {"drep1a": votes}, ctx)
        assert enriched[0].rationale_rate_raw == 50

    def test_deterministic(self, make_vote, make_proposal):
        proposals = [make_proposal(f"p{i}") for i in range(5)]
        reps = [Rep(id=f"drep1{i}", voting_power_lovelace=i * 1_000_000) for i in range(4)]
        votes = {
            rep.id: [make_vote(proposal=f"p{j}", rep_id=rep.id, direction="Yes" if j % 2 else "No") for j in range(i + 1)]
            for i, rep in enumerate(reps)
        }
        first, _ = enrich_reps(reps, votes, _ctx(proposals))
        second, _ = enrich_reps(list(reversed(reps)), votes, _ctx(proposals))
        assert [e.to_row() for e in first] == [e.to_row() for e in second]

    def test_scores_are_bounded_integers(self, make_vote, make_proposal):
        proposals = [make_proposal(f"p{i}", tier=ImportanceTier.CRITICAL) for i in range(3)]
        votes = [make_vote(proposal=f"p{i}", rationale_url=f"https://example.org/{i}") for i in range(3)]
        enriched, _ = enrich_reps([Rep(id="drep1a")], {"drep1a": votes}, _ctx(proposals))
        for value in enriched[0].pillar_scores().values():
            assert isinstance(value, int)
            assert 0 <= value <= 100


class TestHelpers:
    def test_available_proposal_count(self, make_proposal):
        proposals = [make_proposal("a", closed=500), make_proposal("b", closed=510), make_proposal("c")]
        assert available_proposal_count(proposals, None) == 3
        assert available_proposal_count(proposals, 505) == 2
        assert available_proposal_count(proposals, 510) == 2

    def test_sort_order(self):
        def enriched(rep_id, score, power):
            return EnrichedRep(rep=Rep(id=rep_id, voting_power_lovelace=power), drep_score=score)

        ordered = sort_enriched(
            [enriched("c", 50, 10), enriched("a", 50, 10), enriched("b", 50, 99), enriched("d", 70, 0)]
        )
        assert [e.id for e in ordered] == ["d", "b", "a", "c"]

    def test_links_by_rep(self):
        grouped = links_by_rep({("d1", "https://a"): "valid", ("d1", "https://b"): "broken", ("d2", "https://c"): "valid"})
        assert grouped == {"d1": {"https://a": "valid", "https://b": "broken"}, "d2": {"https://c": "valid"}}

    def test_build_rep_without_info_or_metadata(self):
        item = KoiosDRepListItem(drep_id="drep1a", hex="abcd", registered=True)
        rep = build_rep(item, None, None)
        assert rep.voting_power_lovelace == 0
        assert rep.drep_hash == "abcd"
        assert rep.profile.shape == "empty"

    def test_build_rep_from_info_and_metadata(self):
        item = KoiosDRepListItem(drep_id="drep1a", registered=True)
        info = KoiosDRepInfo(drep_id="drep1a", registered=True, amount="7000000", delegators=4, anchor_url="https://a")
        metadata = KoiosDRepMetadata(drep_id="drep1a", meta_json={"body": {"givenName": "Alice"}})
        rep = build_rep(item, info, metadata)
        assert rep.voting_power_lovelace == 7_000_000
        assert rep.delegator_count == 4
        assert rep.anchor_url == "https://a"
        assert rep.profile.name == "Alice"
        assert rep.raw_metadata == {"body": {"givenName": "Alice"}}


# ─── Fetching wrapper ────────────────────────────────────────────────────────


def _run_service(make_collector, fake, ctx, **kwargs):
    async def go():
        async with make_collector(fake) as collector:
            return await EnrichmentService(collector).run(ctx, **kwargs)

    return asyncio.run(go())


class TestEnrichmentService:
    def test_only_registered_dreps_scored(self, make_collector, fake_koios):
        fake_koios.add_drep("drep1a", votes=[fake_koios.vote_row("p1")])
        fake_koios.add_drep("drep1gone", registered=False)
        result = _run_service(make_collector, fake_koios, _ctx())

        assert result.listed == 2
        assert [e.id for e in result.enriched] == ["drep1a"]
        assert fake_koios.count("drep_votes") == 1

    def test_limit(self, make_collector, fake_koios):
        for i in range(5):
            fake_koios.add_drep(f"drep1{i}")
        result = _run_service(make_collector, fake_koios, _ctx(), limit=2)
        assert sorted(e.id for e in result.enriched) == ["drep10", "drep11"]

    def test_profile_and_link_statuses(self, make_collector, fake_koios):
        meta = {
            "body": {
                "givenName": "Alice",
                "references": [{"@type": "Link", "label": "X", "uri": "https://x.com/alice"}],
            }
        }
        fake_koios.add_drep("drep1a", ada=2_000_000, meta=meta)
        result = _run_service(
            make_collector,
            fake_koios,
            _ctx(),
            link_statuses={("drep1a", "https://x.com/alice"): "valid"},
        )
        (alice,) = result.enriched
        assert alice.rep.profile.name == "Alice"
        assert alice.profile_completeness == 40
        assert alice.size_tier.value == "Large"

    def test_vote_failures_counted(self, make_collector, fake_koios):
        fake_koios.add_drep("drep1a", votes=[fake_koios.vote_row("p1")])
        fake_koios.add_drep("drep1b", votes=[fake_koios.vote_row("p1")])
        fake_koios.vote_failures["drep1b"] = 500
        result = _run_service(make_collector, fake_koios, _ctx())

        assert result.fetch_errors == 1
        assert result.votes_by_rep["drep1b"] == []
        by_id = {e.id: e for e in result.enriched}
        assert by_id["drep1b"].total_votes == 0
        assert by_id["drep1a"].total_votes == 1

    def test_info_batch_failure_recorded(self, make_collector, fake_koios):
        fake_koios.add_drep("drep1a", ada=500)
        fake_koios.scripted["drep_info"] = [400]
        result = _run_service(make_collector, fake_koios, _ctx())

        assert result.errors
        assert result.enriched[0].voting_power_lovelace == 0
