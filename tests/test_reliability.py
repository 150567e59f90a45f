"""Tests for the reliability pillar."""

import pytest

from drepscore.scorers.reliability import (
    RECENCY_HALF_LIFE_EPOCHS,
    TENURE_SATURATION_EPOCHS,
    active_epochs_from_votes,
    active_proposal_epochs,
    calculate_reliability,
    gap_penalty_score,
    recency_score,
    reliability_for_votes,
    streak_score,
    tenure_score,
)


class TestSubScores:
    def test_streak(self):
        assert streak_score(0) == 0
        assert streak_score(4) == 40
        assert streak_score(25) == 100

    def test_recency_half_life(self):
        assert recency_score(0) == 100
        assert recency_score(RECENCY_HALF_LIFE_EPOCHS) == pytest.approx(50)
        assert recency_score(10) == pytest.approx(25)

    def test_gap_penalty(self):
        assert gap_penalty_score(0) == 100
        assert gap_penalty_score(3) == 64
        assert gap_penalty_score(20) == 0

    def test_tenure_saturates(self):
        assert tenure_score(0) == 0
        assert 0 < tenure_score(10) < 100
        assert tenure_score(TENURE_SATURATION_EPOCHS) == pytest.approx(100)
        assert tenure_score(TENURE_SATURATION_EPOCHS * 3) == 100


class TestCalculateReliability:
    def test_never_voted_is_zero(self):
        result = calculate_reliability([], set(range(500, 521)), None, 520)
        assert result.score == 0
        assert result.recency == 0

    def test_inactive_ten_epochs_after_five_epoch_streak(self):
        """Voted in 5 consecutive active epochs, then missed the next 10 → recency 25."""
        active = set(range(500, 515))
        result = calculate_reliability(range(500, 505), active, 500, 514)

        assert result.recency_epochs == 10
        assert result.recency == pytest.approx(25)
        assert result.streak_epochs == 0
        assert result.longest_gap_epochs == 10
        assert result.gap_penalty == 0

    def test_recency_100_when_voted_in_latest_active_epoch(self):
        active = {500, 503, 507, 510}
        result = calculate_reliability([500, 510], active, 500, 512)
        assert result.recency == 100
        assert result.recency_epochs == 0
        assert result.streak_epochs == 1
        assert result.longest_gap_epochs == 2

    def test_quiet_epochs_are_not_absence(self):
        """Epochs without open proposals never count as missed."""
        active = {500, 505, 510}
        result = calculate_reliability([500, 505, 510], active, 500, 515)
        assert result.streak_epochs == 3
        assert result.longest_gap_epochs == 0
        assert result.tenure_epochs == 15

    def test_epochs_before_first_vote_ignored(self):
        active = set(range(490, 511))
        result = calculate_reliability([505, 506, 507, 508, 509, 510], active, 505, 510)
        assert result.longest_gap_epochs == 0
        assert result.streak_epochs == 6

    def test_no_active_epochs_in_window(self):
        """No open proposals since the first vote: only tenure earns credit."""
        result = calculate_reliability([500], set(), 500, 520)
        assert (result.streak, result.recency, result.gap_penalty) == (0, 0, 0)
        assert result.streak_epochs == result.recency_epochs == result.longest_gap_epochs == 0
        assert result.tenure == pytest.approx(tenure_score(20))
        assert result.score == round(0.15 * tenure_score(20))

    def test_score_is_weighted_integer(self):
        active = set(range(500, 521))
        result = calculate_reliability(range(500, 521), active, 500, 520)
        expected = 0.35 * 100 + 0.30 * 100 + 0.20 * 100 + 0.15 * tenure_score(20)
        assert result.score == round(expected)
        assert isinstance(result.score, int)
        assert 0 <= result.score <= 100

    def test_future_first_vote(self):
        assert calculate_reliability([530], {530}, 530, 520).score == 0


class TestActiveEpochs:
    def test_proposal_windows(self, make_proposal):
        proposals = [make_proposal("a", opened=500, closed=502), make_proposal("b", opened=508, closed=None)]
        assert active_proposal_epochs(proposals, current_epoch=510) == {500, 501, 502, 508, 509, 510}

    def test_skips_unknown_open_epoch(self, make_proposal):
        assert active_proposal_epochs([make_proposal(opened=None)], 510) == set()

    def test_fallback_from_votes(self):
        assert active_epochs_from_votes([500, 500, 503]) == {500, 503}

    def test_reliability_for_votes(self, make_vote):
        votes = [make_vote(proposal="a", epoch=505), make_vote(proposal="b", epoch=506)]
        result = reliability_for_votes(votes, {505, 506}, 506)
        assert result.streak_epochs == 2
        assert result.tenure_epochs == 1
