"""
Deterministic weighted bucketing.

The (test id + user id) string is hashed to an unsigned 32-bit integer,
normalized to [0, 1] and mapped to a variant by walking the cumulative
weights. No randomness and no stored state: the same four inputs always give
the same variant, which is what keeps a user's assignment stable if it ever
has to be recomputed on another instance.
"""
from typing import Any, Sequence
from services.errors import ConfigurationError
from services.hashing import MASK_32, create_user_hash
import logging

logger = logging.getLogger(__name__)


def bucket_position(test_id: str, user_id: str) -> float:
    """Position of the user in [0, 1] for this test."""
    # test id first: the same user lands in different buckets in different tests
    return create_user_hash(test_id + user_id) / MASK_32


def assign_variant(test_id: str, user_id: str, variants: Sequence[Any], weights: Sequence[float]) -> Any:
    """Pick the variant for a user given aligned weights that sum to 1."""
    if not variants or len(variants) != len(weights):
        logger.error("Invalid bucketing input for test %s: %d variants, %d weights",
                     test_id, len(variants), len(weights))
        raise ConfigurationError("Variants and weights must be non-empty and have the same length.")

    position = bucket_position(test_id, user_id)

    cumulative = 0.0
    for variant, weight in zip(variants, weights):
        cumulative += weight
        if position <= cumulative:
            return variant

    # Only reachable at position ~1.0 when the weights sum to slightly under 1.
    return variants[-1]
