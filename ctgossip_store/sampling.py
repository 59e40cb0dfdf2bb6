"""
sampling.py - Uniform sampling without replacement over a stream.

Used when the store has no native "random order, limit N" query.
"""
import random
from typing import Iterable, List, Optional, TypeVar

T = TypeVar("T")


def reservoir_sample(items: Iterable[T], k: int, rng: Optional[random.Random] = None) -> List[T]:
    """
    Pick min(k, len(items)) items uniformly at random without replacement.

    Single pass, O(k) memory (Algorithm R). The result order is shuffled so
    that the first k items of the stream carry no positional bias.

    Parameters:
        items: Any iterable, consumed once.
        k: Sample size. Values <= 0 yield an empty list.
        rng: Source of randomness; a fresh OS-seeded Random when omitted.
    """
    if k <= 0:
        return []
    rng = rng or random.Random()

    reservoir: List[T] = []
    for seen, item in enumerate(items):
        if seen < k:
            reservoir.append(item)
            continue
        slot = rng.randrange(seen + 1)
        if slot < k:
            reservoir[slot] = item

    rng.shuffle(reservoir)
    return reservoir
