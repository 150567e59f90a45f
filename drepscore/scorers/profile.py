"""
Profile completeness scorer - can delegators tell who this DRep is?

Fixed point table over declared profile fields (sums to 100):

    name            15
    objectives      20
    motivations     15
    qualifications  10
    bio             10
    social links    25 for one valid link, 30 for two or more

Only links the link checker has marked valid count; broken and unchecked
links contribute nothing.
"""

from ..models.drep import LinkStatus, ProfileMetadata

PROFILE_FIELD_POINTS = {
    "name": 15,
    "objectives": 20,
    "motivations": 15,
    "qualifications": 10,
    "bio": 10,
}
ONE_LINK_POINTS = 25
MULTI_LINK_POINTS = 30


def valid_link_count(profile: ProfileMetadata) -> int:
    """Distinct URIs with link_status == valid."""
    return len({link.uri for link in profile.social_links if link.link_status is LinkStatus.VALID})


def calculate_profile_completeness(profile: ProfileMetadata) -> int:
    """Points for declared fields plus validated social links, clamped to 100."""
    score = 0
    for field_name, points in PROFILE_FIELD_POINTS.items():
        if getattr(profile, field_name):
            score += points

    links = valid_link_count(profile)
    if links >= 2:
        score += MULTI_LINK_POINTS
    elif links == 1:
        score += ONE_LINK_POINTS

    return max(0, min(100, score))


def missing_profile_fields(profile: ProfileMetadata) -> list[str]:
    """Human-readable list of what would raise the completeness score."""
    missing = [field_name for field_name in PROFILE_FIELD_POINTS if not getattr(profile, field_name)]
    links = valid_link_count(profile)
    if links == 0:
        missing.append("social links")
    elif links == 1:
        missing.append("a second social link (2+ recommended)")
    return missing


def is_well_documented(profile: ProfileMetadata) -> bool:
    """Has a name plus a ticker or description."""
    return bool(profile.name and (profile.ticker or profile.description))
