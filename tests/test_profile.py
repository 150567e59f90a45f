"""Tests for the profile metadata decoder and the profile completeness pillar."""

from drepscore.models.drep import LinkStatus, ProfileMetadata, SocialLink
from drepscore.parsers.profile_metadata import MetadataShape, decode_profile_metadata, detect_shape, text_value
from drepscore.scorers.profile import (
    calculate_profile_completeness,
    is_well_documented,
    missing_profile_fields,
    valid_link_count,
)

CIP119_DOCUMENT = {
    "@context": {"CIP100": "https://github.com/cardano-foundation/CIPs/blob/master/CIP-0100/README.md#"},
    "hashAlgorithm": "blake2b-256",
    "body": {
        "givenName": {"@value": "Alice"},
        "objectives": "Keep the treasury accountable.",
        "motivations": [{"@value": "Long-time SPO"}],
        "qualifications": "Ten years of open source work.",
        "paymentAddress": "addr1...",
        "references": [
            {"@type": "Link", "label": {"@value": "X"}, "uri": {"@value": "https://x.com/alice"}},
            {"@type": "Link", "label": "GitHub", "uri": "https://github.com/alice"},
            {"@type": "Link", "label": "Duplicate", "uri": "https://github.com/alice"},
            "not-an-object",
        ],
    },
}

FLAT_DOCUMENT = {
    "name": "Bob",
    "ticker": "BOB",
    "description": "Community DRep",
    "bio": "Builder",
    "email": "bob@example.org",
}


# ─── Decoder ─────────────────────────────────────────────────────────────────


class TestTextValue:
    def test_plain(self):
        assert text_value("  hi ") == "hi"

    def test_jsonld_value_object(self):
        assert text_value({"@value": "hi"}) == "hi"

    def test_list_takes_first_non_empty(self):
        assert text_value([{"@value": ""}, {"@value": "second"}]) == "second"

    def test_non_text(self):
        assert text_value(42) is None
        assert text_value("   ") is None


class TestDetectShape:
    def test_cip119(self):
        assert detect_shape(CIP119_DOCUMENT) is MetadataShape.CIP119

    def test_flat(self):
        assert detect_shape(FLAT_DOCUMENT) is MetadataShape.FLAT

    def test_empty(self):
        assert detect_shape(None) is MetadataShape.EMPTY
        assert detect_shape(["list"]) is MetadataShape.EMPTY
        assert detect_shape({"unrelated": 1}) is MetadataShape.EMPTY


class TestDecodeProfileMetadata:
    def test_cip119_document(self):
        profile = decode_profile_metadata(CIP119_DOCUMENT)

        assert profile.shape == "cip119"
        assert profile.name == "Alice"
        assert profile.motivations == "Long-time SPO"
        assert profile.bio is None
        assert [link.uri for link in profile.social_links] == ["https://x.com/alice", "https://github.com/alice"]
        assert profile.social_links[0].label == "X"
        assert all(link.link_status is LinkStatus.UNCHECKED for link in profile.social_links)

    def test_link_statuses_merged(self):
        statuses = {"https://x.com/alice": "valid", "https://github.com/alice": LinkStatus.BROKEN}
        profile = decode_profile_metadata(CIP119_DOCUMENT, statuses)
        assert [link.link_status for link in profile.social_links] == [LinkStatus.VALID, LinkStatus.BROKEN]

    def test_unknown_status_is_unchecked(self):
        profile = decode_profile_metadata(CIP119_DOCUMENT, {"https://x.com/alice": "teapot"})
        assert profile.social_links[0].link_status is LinkStatus.UNCHECKED

    def test_flat_document(self):
        profile = decode_profile_metadata(FLAT_DOCUMENT)
        assert profile.shape == "flat"
        assert profile.name == "Bob"
        assert profile.ticker == "BOB"
        assert profile.email == "bob@example.org"
        assert profile.social_links == ()

    def test_empty_inputs(self):
        for raw in (None, "string", [], {"foo": "bar"}):
            profile = decode_profile_metadata(raw)
            assert profile == ProfileMetadata(shape="empty")

    def test_non_list_references_ignored(self):
        profile = decode_profile_metadata({"body": {"givenName": "Carol", "references": "https://carol.io"}})
        assert profile.name == "Carol"
        assert profile.social_links == ()


# ─── Completeness ────────────────────────────────────────────────────────────


def _links(*statuses: LinkStatus) -> tuple[SocialLink, ...]:
    return tuple(SocialLink(uri=f"https://example.org/{i}", link_status=s) for i, s in enumerate(statuses))


class TestProfileCompleteness:
    def test_empty_profile(self):
        assert calculate_profile_completeness(ProfileMetadata()) == 0

    def test_all_fields_and_two_valid_links(self):
        profile = ProfileMetadata(
            name="A",
            objectives="o",
            motivations="m",
            qualifications="q",
            bio="b",
            social_links=_links(LinkStatus.VALID, LinkStatus.VALID),
        )
        assert calculate_profile_completeness(profile) == 100

    def test_one_valid_link(self):
        profile = ProfileMetadata(name="A", social_links=_links(LinkStatus.VALID, LinkStatus.BROKEN))
        assert calculate_profile_completeness(profile) == 15 + 25

    def test_broken_and_unchecked_links_score_nothing(self):
        profile = ProfileMetadata(social_links=_links(LinkStatus.BROKEN, LinkStatus.UNCHECKED))
        assert valid_link_count(profile) == 0
        assert calculate_profile_completeness(profile) == 0

    def test_duplicate_valid_uris_count_once(self):
        link = SocialLink(uri="https://example.org/same", link_status=LinkStatus.VALID)
        assert valid_link_count(ProfileMetadata(social_links=(link, link))) == 1

    def test_decoded_cip119_with_valid_links(self):
        statuses = {"https://x.com/alice": "valid", "https://github.com/alice": "valid"}
        profile = decode_profile_metadata(CIP119_DOCUMENT, statuses)
        # name 15 + objectives 20 + motivations 15 + qualifications 10 + links 30
        assert calculate_profile_completeness(profile) == 90

    def test_missing_fields(self):
        profile = ProfileMetadata(name="A", social_links=_links(LinkStatus.VALID))
        missing = missing_profile_fields(profile)
        assert "objectives" in missing
        assert "name" not in missing
        assert "a second social link (2+ recommended)" in missing

    def test_well_documented(self):
        assert is_well_documented(ProfileMetadata(name="A", ticker="T"))
        assert not is_well_documented(ProfileMetadata(name="A"))
