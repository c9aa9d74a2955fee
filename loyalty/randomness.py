import random
from typing import Optional
from uuid import UUID

from policy import RandomSource


def make_random_source(seed: Optional[int] = None) -> RandomSource:
    return random.Random(seed)


def customer_random_source(seed: Optional[int], customer_id: UUID) -> RandomSource:
    """Independent stream per customer so parallel runs stay reproducible."""
    if seed is None:
        return random.Random()
    return random.Random(f"{seed}:{customer_id}")
