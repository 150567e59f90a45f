"""
Parsers for upstream governance data.

This module contains parsers for:
- vote_normalizer: dedupe and epoch-stamp raw votes
- profile_metadata: CIP-119 / flat DRep metadata → ProfileMetadata
- proposal_classifier: Koios proposals → importance tiers
"""

__all__ = ["vote_normalizer", "profile_metadata", "proposal_classifier"]
