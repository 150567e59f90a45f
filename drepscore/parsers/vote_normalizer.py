"""
Vote normalizer - one authoritative vote per (representative, proposal).

A DRep may vote on the same governance action more than once; only the
latest vote (greatest block_time) counts. Everything downstream assumes
this has already been applied.
"""

from collections import Counter
from dataclasses import replace
from typing import Callable, Iterable

from ..models.drep import Vote, VoteDirection
from ..utils.epochs import epoch_of


def normalize_votes(votes: Iterable[Vote], clock: Callable[[float], int] = epoch_of) -> list[Vote]:
    """Deduplicate votes by proposal, keeping the latest, and fill in epochs.

    Args:
        votes: Raw votes for one representative (not mutated)
        clock: Timestamp → epoch mapping used when a vote has no epoch

    Returns:
        Deduplicated votes ordered by block_time ascending. On equal
        block_time the first vote seen is kept.
    """
    latest: dict[tuple[str, int], Vote] = {}
    for vote in votes:
        current = latest.get(vote.proposal_key)
        if current is None or vote.block_time > current.block_time:
            latest[vote.proposal_key] = vote

    normalized = []
    for vote in latest.values():
        if vote.epoch is None:
            vote = replace(vote, epoch=clock(vote.block_time))
        normalized.append(vote)

    normalized.sort(key=lambda v: v.block_time)
    return normalized


def vote_distribution(votes: Iterable[Vote]) -> tuple[int, int, int]:
    """Count (yes, no, abstain)."""
    counts = Counter(v.direction for v in votes)
    return counts[VoteDirection.YES], counts[VoteDirection.NO], counts[VoteDirection.ABSTAIN]


def epoch_vote_counts(votes: Iterable[Vote]) -> list[int]:
    """Dense per-epoch vote counts from the first to the last voted epoch.

    Votes without an epoch are ignored. Returns [] when nothing has an epoch.
    """
    counts = Counter(v.epoch for v in votes if v.epoch is not None)
    if not counts:
        return []
    first, last = min(counts), max(counts)
    return [counts.get(e, 0) for e in range(first, last + 1)]
