"""
Governance proposal classifier.

Turns a raw Koios /proposal_list row into a Proposal: importance tier (the
rationale weight), treasury tier for withdrawals, relevant delegator
preference tags, display title/abstract and the open/close epoch window.

Importance tiers:
    Critical               HardForkInitiation, NoConfidence, NewCommittee,
                           NewConstitutionalCommittee, NewConstitution,
                           UpdateConstitution
    Important              ParameterChange, significant/major withdrawals
    Standard               routine withdrawals, anything unrecognized
    ExcludedFromRationale  InfoAction (non-binding polls)
"""

from typing import Iterable, Optional

from ..constants import LOVELACE_PER_ADA
from ..models.drep import ImportanceTier, Proposal
from ..schemas.koios import KoiosProposal
from ..scorers.alignment import (
    PREF_DECENTRALIZATION,
    PREF_GOVERNANCE,
    PREF_INNOVATION,
    PREF_SECURITY,
    PREF_TREASURY_CONSERVATIVE,
    PREF_TREASURY_GROWTH,
)
from .profile_metadata import text_value

CRITICAL_TYPES = frozenset(
    {
        "HardForkInitiation",
        "NoConfidence",
        "NewCommittee",
        "NewConstitutionalCommittee",
        "NewConstitution",
        "UpdateConstitution",
    }
)
IMPORTANT_TYPES = frozenset({"ParameterChange"})
RATIONALE_EXEMPT_TYPES = frozenset({"InfoAction"})

# Treasury tiers in ADA: < 1M routine, < 20M significant, else major
TREASURY_TIER_ROUTINE = 1_000_000
TREASURY_TIER_SIGNIFICANT = 20_000_000

PREFS_BY_TYPE = {
    "TreasuryWithdrawals": (PREF_TREASURY_CONSERVATIVE, PREF_TREASURY_GROWTH),
    "ParameterChange": (PREF_SECURITY,),
    "HardForkInitiation": (PREF_SECURITY, PREF_INNOVATION),
    "NoConfidence": (PREF_DECENTRALIZATION, PREF_SECURITY),
    "NewCommittee": (PREF_DECENTRALIZATION, PREF_SECURITY),
    "NewConstitutionalCommittee": (PREF_DECENTRALIZATION, PREF_SECURITY),
    "NewConstitution": (PREF_SECURITY, PREF_GOVERNANCE),
    "UpdateConstitution": (PREF_SECURITY, PREF_GOVERNANCE),
}

# InfoAction keyword groups, matched against lowercased title + abstract
INFO_ACTION_KEYWORDS = [
    (("defi", "innovation", "growth"), (PREF_INNOVATION,)),
    (("security", "stability", "parameter"), (PREF_SECURITY,)),
    (("treasury", "fund", "budget"), (PREF_TREASURY_CONSERVATIVE, PREF_TREASURY_GROWTH)),
    (("decentralization", "governance", "community"), (PREF_DECENTRALIZATION,)),
    (("transparent", "accountability", "reporting"), (PREF_GOVERNANCE,)),
]


def withdrawal_amount_ada(proposal: KoiosProposal) -> Optional[int]:
    """Total requested withdrawal in whole ADA, or None when there is none."""
    if not proposal.withdrawal:
        return None
    total_lovelace = sum(int(w.amount) for w in proposal.withdrawal)
    return total_lovelace // LOVELACE_PER_ADA


def treasury_tier(amount_ada: Optional[int]) -> Optional[str]:
    if amount_ada is None:
        return None
    if amount_ada < TREASURY_TIER_ROUTINE:
        return "routine"
    if amount_ada < TREASURY_TIER_SIGNIFICANT:
        return "significant"
    return "major"


def importance_tier(proposal_type: str, tier: Optional[str] = None) -> ImportanceTier:
    if proposal_type in CRITICAL_TYPES:
        return ImportanceTier.CRITICAL
    if proposal_type in IMPORTANT_TYPES:
        return ImportanceTier.IMPORTANT
    if proposal_type in RATIONALE_EXEMPT_TYPES:
        return ImportanceTier.EXCLUDED
    if proposal_type == "TreasuryWithdrawals" and tier in ("significant", "major"):
        return ImportanceTier.IMPORTANT
    return ImportanceTier.STANDARD


def _meta_text(proposal: KoiosProposal, key: str) -> Optional[str]:
    meta = proposal.meta_json or {}
    body = meta.get("body")
    if isinstance(body, dict):
        text = text_value(body.get(key))
        if text:
            return text
    return text_value(meta.get(key))


def _title(proposal: KoiosProposal) -> str:
    return _meta_text(proposal, "title") or f"Proposal {proposal.proposal_tx_hash[:8]}..."


def _abstract(proposal: KoiosProposal) -> Optional[str]:
    abstract = _meta_text(proposal, "abstract")
    if abstract:
        return abstract
    if isinstance(proposal.proposal_description, str) and proposal.proposal_description.strip():
        return proposal.proposal_description.strip()
    return _meta_text(proposal, "motivation")


def _info_action_prefs(title: str, abstract: Optional[str]) -> tuple[str, ...]:
    search_text = " ".join(filter(None, [title, abstract])).lower()
    prefs: list[str] = []
    for keywords, tags in INFO_ACTION_KEYWORDS:
        if any(k in search_text for k in keywords):
            prefs.extend(t for t in tags if t not in prefs)
    return tuple(prefs) or (PREF_GOVERNANCE,)


def _closed_epoch(proposal: KoiosProposal) -> Optional[int]:
    ends = [
        e
        for e in (
            proposal.ratified_epoch,
            proposal.enacted_epoch,
            proposal.dropped_epoch,
            proposal.expired_epoch,
        )
        if e is not None
    ]
    return min(ends) if ends else None


def classify_proposal(proposal: KoiosProposal) -> Proposal:
    """Classify one validated Koios proposal."""
    amount = withdrawal_amount_ada(proposal) if proposal.proposal_type == "TreasuryWithdrawals" else None
    tier = treasury_tier(amount)
    title = _title(proposal)
    abstract = _abstract(proposal)

    if proposal.proposal_type == "InfoAction":
        prefs = _info_action_prefs(title, abstract)
    else:
        prefs = PREFS_BY_TYPE.get(proposal.proposal_type, ())

    return Proposal(
        tx_hash=proposal.proposal_tx_hash,
        index=proposal.proposal_index,
        importance_tier=importance_tier(proposal.proposal_type, tier),
        epoch_opened=proposal.proposed_epoch,
        epoch_closed=_closed_epoch(proposal),
        proposal_type=proposal.proposal_type,
        title=title,
        abstract=abstract,
        withdrawal_amount_ada=amount,
        treasury_tier=tier,
        relevant_prefs=tuple(prefs),
        block_time=proposal.block_time,
    )


def classify_proposals(proposals: Iterable[KoiosProposal]) -> list[Proposal]:
    return [classify_proposal(p) for p in proposals]
