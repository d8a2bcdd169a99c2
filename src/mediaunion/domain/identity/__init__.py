"""Identity extraction, match keys and union-merge resolution."""

from __future__ import annotations

from .extract import IdentityFeatures, extract_features, parse_season_episode
from .hierarchy import link_hierarchy
from .key_index import Attachment, KeyIndex
from .keys import GroupIndex, match_keys, series_keys, slug
from .metadata import PlexMetadata, parse_metadata
from .resolve import IdentityResolver, ResolveOutcome, follow_merges, seed_key_index

__all__ = [
    "Attachment",
    "GroupIndex",
    "IdentityFeatures",
    "IdentityResolver",
    "KeyIndex",
    "PlexMetadata",
    "ResolveOutcome",
    "extract_features",
    "follow_merges",
    "link_hierarchy",
    "match_keys",
    "parse_metadata",
    "parse_season_episode",
    "seed_key_index",
    "series_keys",
    "slug",
]
