"""Phone identity normalization and matching."""

from .matcher import DEFAULT_STRATEGIES, ByE164, ByLast10, MatchResult, MatchStrategy, find_match, identities_match
from .normalize import canonicalize_multi_value, extract_embedded_phone, merge_unique, normalize_phone

__all__ = [
    "normalize_phone",
    "canonicalize_multi_value",
    "extract_embedded_phone",
    "merge_unique",
    "MatchStrategy",
    "ByE164",
    "ByLast10",
    "MatchResult",
    "DEFAULT_STRATEGIES",
    "find_match",
    "identities_match",
]
