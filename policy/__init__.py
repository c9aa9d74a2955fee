"""
Generation Policy Package

Tunable tables for synthetic loyalty activity: how many extra entries each
customer tier receives, how entry types are weighted, and the point ranges
drawn for each type.
"""

from .generation_policy import (
    GenerationPolicy,
    TierRange,
    PolicyError,
    RandomSource,
    default_policy,
)

__all__ = [
    "GenerationPolicy",
    "TierRange",
    "PolicyError",
    "RandomSource",
    "default_policy",
]
