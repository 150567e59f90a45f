"""
DRep profile metadata decoder.

Anchor metadata arrives in several shapes:

- cip119: CIP-119 JSON-LD document, profile fields under "body"
- flat:   legacy/hand-rolled document with the fields at the top level
- empty:  missing, not a JSON object, or no recognizable fields

Independently of the document shape, any text value may be a plain string
or a JSON-LD value object ({"@value": "..."}), possibly inside a list.

decode_profile_metadata() detects the shape once and produces a single
canonical ProfileMetadata, so scorers never probe raw JSON.
"""

import logging
from enum import Enum
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..models.drep import LinkStatus, ProfileMetadata, SocialLink

logger = logging.getLogger(__name__)


class MetadataShape(str, Enum):
    """Known anchor document layouts."""

    CIP119 = "cip119"
    FLAT = "flat"
    EMPTY = "empty"


PROFILE_TEXT_KEYS = (
    "givenName",
    "name",
    "objectives",
    "motivations",
    "qualifications",
    "bio",
    "ticker",
    "description",
    "email",
)


def text_value(value: Any) -> Optional[str]:
    """Plain string, {"@value": ...} or a list of those → stripped str or None."""
    if isinstance(value, list):
        for item in value:
            text = text_value(item)
            if text:
                return text
        return None
    if isinstance(value, dict):
        return text_value(value.get("@value"))
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return None


class ReferenceEntry(BaseModel):
    """One entry of the "references" array."""

    model_config = ConfigDict(extra="ignore")

    uri: Optional[str] = None
    label: Optional[str] = None

    @field_validator("uri", "label", mode="before")
    @classmethod
    def _normalize_text(cls, value: Any) -> Optional[str]:
        return text_value(value)


class ProfileFields(BaseModel):
    """Profile fields shared by every document shape."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    given_name: Optional[str] = Field(default=None, alias="givenName")
    name: Optional[str] = None
    objectives: Optional[str] = None
    motivations: Optional[str] = None
    qualifications: Optional[str] = None
    bio: Optional[str] = None
    ticker: Optional[str] = None
    description: Optional[str] = None
    email: Optional[str] = None
    references: list[ReferenceEntry] = Field(default_factory=list)

    @field_validator(
        "given_name",
        "name",
        "objectives",
        "motivations",
        "qualifications",
        "bio",
        "ticker",
        "description",
        "email",
        mode="before",
    )
    @classmethod
    def _normalize_text(cls, value: Any) -> Optional[str]:
        return text_value(value)

    @field_validator("references", mode="before")
    @classmethod
    def _keep_object_references(cls, value: Any) -> list:
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, dict)]


def detect_shape(raw: Any) -> MetadataShape:
    """Classify an anchor document without decoding it."""
    if not isinstance(raw, dict):
        return MetadataShape.EMPTY
    body = raw.get("body")
    if isinstance(body, dict):
        return MetadataShape.CIP119
    if any(key in raw for key in PROFILE_TEXT_KEYS) or isinstance(raw.get("references"), list):
        return MetadataShape.FLAT
    return MetadataShape.EMPTY


def _build_links(references: list[ReferenceEntry], link_statuses: Mapping[str, Any]) -> tuple[SocialLink, ...]:
    """De-duplicate references by URI and attach the latest checked status."""
    links = []
    seen = set()
    for ref in references:
        if not ref.uri or ref.uri in seen:
            continue
        seen.add(ref.uri)
        raw_status = link_statuses.get(ref.uri, LinkStatus.UNCHECKED)
        try:
            status = LinkStatus(raw_status)
        except ValueError:
            status = LinkStatus.UNCHECKED
        links.append(SocialLink(uri=ref.uri, label=ref.label or "", link_status=status))
    return tuple(links)


def decode_profile_metadata(raw: Any, link_statuses: Optional[Mapping[str, Any]] = None) -> ProfileMetadata:
    """Normalize any known anchor document into a ProfileMetadata.

    Args:
        raw: Parsed anchor JSON (Koios drep_metadata meta_json), or None
        link_statuses: uri → LinkStatus (or its string value) from the link checker.
            Links without an entry are 'unchecked'.

    Returns:
        Canonical ProfileMetadata. Never raises; undecodable input yields
        an empty profile.
    """
    shape = detect_shape(raw)
    if shape is MetadataShape.EMPTY:
        return ProfileMetadata(shape=shape.value)

    source = raw["body"] if shape is MetadataShape.CIP119 else raw
    try:
        fields = ProfileFields.model_validate(source)
    except ValidationError as e:
        logger.warning(f"Undecodable {shape.value} profile metadata: {e.error_count()} errors")
        return ProfileMetadata(shape=MetadataShape.EMPTY.value)

    return ProfileMetadata(
        name=fields.given_name or fields.name,
        objectives=fields.objectives,
        motivations=fields.motivations,
        qualifications=fields.qualifications,
        bio=fields.bio,
        social_links=_build_links(fields.references, link_statuses or {}),
        ticker=fields.ticker,
        description=fields.description,
        email=fields.email,
        shape=shape.value,
    )
