"""Explicit uniform shuffle."""

import random
from collections.abc import Sequence
from typing import TypeVar


T = TypeVar("T")


def fisher_yates_shuffle(items: Sequence[T], rng: random.Random) -> list[T]:
    """Return a uniformly shuffled copy of ``items``.

    Args:
        items: Items to shuffle (not modified).
        rng: Random source.

    Returns:
        New list in random order.
    """
    shuffled = list(items)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled
