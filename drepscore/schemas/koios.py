"""Runtime validation models for Koios API responses.

Only the fields the pipeline depends on are declared; extra fields are
allowed through. Koios sometimes returns numbers as strings (and lovelace
amounts as numbers), so numeric fields coerce and lovelace fields are
normalized to digit strings.

validate_records() checks a response array record by record: malformed
records are dropped and counted, never failing the whole batch.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..constants import MAX_VALIDATION_ERRORS_KEPT
from ..models.drep import RationaleRef, Vote, VoteDirection
from ..parsers.profile_metadata import text_value

logger = logging.getLogger(__name__)


class KoiosVoteChoice(str, Enum):
    YES = "Yes"
    NO = "No"
    ABSTAIN = "Abstain"


def _lovelace(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError("lovelace amount must be numeric")
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str) and value.strip().isdigit():
        return value.strip()
    raise ValueError(f"lovelace amount must be a non-negative integer, got {value!r}")


class KoiosRecord(BaseModel):
    """Base for Koios rows: unknown fields pass through."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)


class KoiosTip(KoiosRecord):
    """/tip row."""

    epoch_no: int
    block_time: Optional[int] = None
    block_no: Optional[int] = None
    abs_slot: Optional[int] = None


class KoiosDRepListItem(KoiosRecord):
    """/drep_list row."""

    drep_id: str
    drep_hash: Optional[str] = None
    hex: Optional[str] = None
    has_script: bool = False
    registered: bool


class KoiosDRepInfo(KoiosRecord):
    """/drep_info row."""

    drep_id: str
    drep_hash: Optional[str] = None
    hex: Optional[str] = None
    has_script: bool = False
    registered: bool
    deposit: Optional[str] = None
    anchor_url: Optional[str] = None
    anchor_hash: Optional[str] = None
    amount: Optional[str] = "0"
    active_epoch: Optional[int] = None
    delegators: Optional[int] = None

    @field_validator("amount", "deposit", mode="before")
    @classmethod
    def _normalize_lovelace(cls, value: Any) -> Optional[str]:
        return _lovelace(value)

    @field_validator("amount", mode="after")
    @classmethod
    def _default_amount(cls, value: Optional[str]) -> str:
        return value or "0"

    @property
    def amount_lovelace(self) -> int:
        return int(self.amount)


class KoiosDRepMetadata(KoiosRecord):
    """/drep_metadata row. The anchor document is in meta_json."""

    drep_id: str
    url: Optional[str] = None
    hash: Optional[str] = None
    meta_json: Optional[dict] = Field(default=None, validation_alias=AliasChoices("meta_json", "json"))
    is_valid: Optional[bool] = None

    @field_validator("meta_json", mode="before")
    @classmethod
    def _object_only(cls, value: Any) -> Optional[dict]:
        return value if isinstance(value, dict) else None


class KoiosVote(KoiosRecord):
    """/drep_votes row."""

    proposal_tx_hash: str
    proposal_index: int
    vote_tx_hash: str
    block_time: int
    vote: KoiosVoteChoice
    meta_url: Optional[str] = None
    meta_hash: Optional[str] = None
    meta_json: Optional[dict] = None
    epoch_no: Optional[int] = None

    @field_validator("meta_json", mode="before")
    @classmethod
    def _object_only(cls, value: Any) -> Optional[dict]:
        return value if isinstance(value, dict) else None

    def inline_rationale(self) -> Optional[str]:
        """Rationale text carried on-chain in meta_json, if any."""
        if not self.meta_json:
            return None
        body = self.meta_json.get("body")
        candidates = []
        if isinstance(body, dict):
            candidates += [body.get("comment"), body.get("rationaleStatement"), body.get("rationale")]
        candidates.append(self.meta_json.get("rationale"))
        for candidate in candidates:
            text = text_value(candidate)
            if text:
                return text
        return None

    def to_vote(self, rep_id: str) -> Vote:
        return Vote(
            rep_id=rep_id,
            proposal_tx_hash=self.proposal_tx_hash,
            proposal_index=self.proposal_index,
            direction=VoteDirection(self.vote.value),
            block_time=self.block_time,
            epoch=self.epoch_no,
            rationale_ref=RationaleRef(url=self.meta_url, content_hash=self.meta_hash) if self.meta_url else None,
            vote_tx_hash=self.vote_tx_hash,
            inline_rationale=self.inline_rationale(),
        )


class KoiosWithdrawal(KoiosRecord):
    stake_address: Optional[str] = None
    amount: str = "0"

    @field_validator("amount", mode="before")
    @classmethod
    def _normalize_lovelace(cls, value: Any) -> str:
        return _lovelace(value) or "0"


class KoiosProposal(KoiosRecord):
    """/proposal_list row."""

    proposal_tx_hash: str
    proposal_index: int
    proposal_id: Optional[str] = None
    proposal_type: str
    proposal_description: Optional[Any] = None
    proposed_epoch: int
    ratified_epoch: Optional[int] = None
    enacted_epoch: Optional[int] = None
    dropped_epoch: Optional[int] = None
    expired_epoch: Optional[int] = None
    expiration: Optional[int] = None
    withdrawal: Optional[list[KoiosWithdrawal]] = None
    meta_json: Optional[dict] = None
    block_time: Optional[int] = None

    @field_validator("withdrawal", mode="before")
    @classmethod
    def _single_or_list(cls, value: Any) -> Optional[list]:
        if value is None:
            return None
        if isinstance(value, dict):
            return [value]
        return value

    @field_validator("meta_json", mode="before")
    @classmethod
    def _object_only(cls, value: Any) -> Optional[dict]:
        return value if isinstance(value, dict) else None


# =============================================================================
# Record-level validation
# =============================================================================

T = TypeVar("T", bound=BaseModel)


@dataclass
class ValidationReport(Generic[T]):
    """Outcome of validating one response array."""

    label: str
    valid: list[T] = field(default_factory=list)
    invalid_count: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.valid) + self.invalid_count


def validate_records(data: Any, model: type[T], label: str) -> ValidationReport[T]:
    """Validate each record against `model`, dropping malformed ones.

    Args:
        data: Decoded JSON response (expected to be a list)
        model: Pydantic model for one record
        label: Name used in log and error messages (e.g. "drep_votes")

    Returns:
        ValidationReport with valid records, the invalid count and up to
        MAX_VALIDATION_ERRORS_KEPT error messages.
    """
    report: ValidationReport[T] = ValidationReport(label=label)
    if not isinstance(data, list):
        report.invalid_count = 1
        report.errors.append(f"{label} validation: expected a JSON array, got {type(data).__name__}")
        logger.warning(f"[Koios] {label}: response was not an array")
        return report

    for item in data:
        try:
            report.valid.append(model.model_validate(item))
        except ValidationError as e:
            report.invalid_count += 1
            if len(report.errors) < MAX_VALIDATION_ERRORS_KEPT:
                issues = ", ".join(
                    f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
                )
                report.errors.append(f"{label} validation: {issues}")

    if report.invalid_count:
        logger.warning(f"[Koios] {label}: {report.invalid_count}/{len(data)} records failed validation")
    return report
