"""Tests for the epoch clock and the vote normalizer."""

from drepscore.models.drep import VoteDirection
from drepscore.parsers.vote_normalizer import epoch_vote_counts, normalize_votes, vote_distribution
from drepscore.utils.epochs import (
    EPOCH_LENGTH_SECONDS,
    SHELLEY_GENESIS_TIMESTAMP,
    current_epoch,
    epoch_of,
    epoch_start,
)

# ─── Epoch clock ─────────────────────────────────────────────────────────────


class TestEpochClock:
    def test_genesis_is_epoch_209(self):
        assert epoch_of(SHELLEY_GENESIS_TIMESTAMP) == 209

    def test_last_second_of_epoch(self):
        """One second before the boundary still belongs to the earlier epoch."""
        assert epoch_of(SHELLEY_GENESIS_TIMESTAMP + EPOCH_LENGTH_SECONDS - 1) == 209
        assert epoch_of(SHELLEY_GENESIS_TIMESTAMP + EPOCH_LENGTH_SECONDS) == 210

    def test_epoch_start_inverts_epoch_of(self):
        for epoch in (209, 300, 507, 520):
            assert epoch_of(epoch_start(epoch)) == epoch
            assert epoch_of(epoch_start(epoch) - 1) == epoch - 1

    def test_current_epoch_uses_given_time(self):
        assert current_epoch(now=epoch_start(515) + 10) == 515


# ─── Vote normalizer ─────────────────────────────────────────────────────────


class TestNormalizeVotes:
    def test_latest_vote_per_proposal_wins(self, make_vote):
        """A changed vote replaces the earlier one on the same proposal."""
        early = make_vote(proposal="p1", direction="No", epoch=None, block_time=epoch_start(510) + 10)
        late = make_vote(proposal="p1", direction="Yes", epoch=None, block_time=epoch_start(512) + 10)
        other = make_vote(proposal="p2", direction="Abstain", epoch=None, block_time=epoch_start(511))

        result = normalize_votes([late, early, other])

        assert len(result) == 2
        by_proposal = {v.proposal_tx_hash: v for v in result}
        assert by_proposal["p1"].direction is VoteDirection.YES
        assert by_proposal["p1"].epoch == 512

    def test_same_hash_different_index_are_distinct(self, make_vote):
        votes = [make_vote(proposal="p1", index=0), make_vote(proposal="p1", index=1)]
        assert len(normalize_votes(votes)) == 2

    def test_output_never_longer_and_keys_unique(self, make_vote):
        votes = [make_vote(proposal=f"p{i % 3}", block_time=epoch_start(510) + i) for i in range(10)]
        result = normalize_votes(votes)
        keys = [v.proposal_key for v in result]
        assert len(result) <= len(votes)
        assert len(keys) == len(set(keys))

    def test_epoch_filled_from_injected_clock(self, make_vote):
        vote = make_vote(epoch=None, block_time=123)
        (result,) = normalize_votes([vote], clock=lambda ts: 999)
        assert result.epoch == 999

    def test_existing_epoch_kept(self, make_vote):
        vote = make_vote(epoch=505)
        (result,) = normalize_votes([vote], clock=lambda ts: 999)
        assert result.epoch == 505

    def test_sorted_by_block_time(self, make_vote):
        votes = [
            make_vote(proposal="p3", block_time=300),
            make_vote(proposal="p1", block_time=100),
            make_vote(proposal="p2", block_time=200),
        ]
        assert [v.proposal_tx_hash for v in normalize_votes(votes)] == ["p1", "p2", "p3"]

    def test_input_not_mutated(self, make_vote):
        votes = [make_vote(epoch=None, block_time=epoch_start(510))]
        normalize_votes(votes)
        assert votes[0].epoch is None

    def test_empty(self):
        assert normalize_votes([]) == []


class TestVoteCounts:
    def test_distribution(self, make_vote):
        votes = [
            make_vote(proposal="a", direction="Yes"),
            make_vote(proposal="b", direction="Yes"),
            make_vote(proposal="c", direction="No"),
            make_vote(proposal="d", direction="Abstain"),
        ]
        assert vote_distribution(votes) == (2, 1, 1)

    def test_epoch_vote_counts_dense(self, make_vote):
        """Gaps between the first and last voted epoch show up as zeros."""
        votes = [
            make_vote(proposal="a", epoch=500),
            make_vote(proposal="b", epoch=500),
            make_vote(proposal="c", epoch=503),
        ]
        assert epoch_vote_counts(votes) == [2, 0, 0, 1]

    def test_epoch_vote_counts_empty(self):
        assert epoch_vote_counts([]) == []
