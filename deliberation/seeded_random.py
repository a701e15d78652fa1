"""Deterministic per-voter randomness

Seed = first 4 bytes (big-endian) of SHA-256("{voter_id}-{poll_id}") or
SHA-256("{voter_id}-{poll_id}-{random_seed}") when the poll sets a seed.
Generator is a 32-bit LCG (Numerical Recipes constants) so orderings are
reproducible across processes and languages.
"""

import hashlib
from typing import List, Optional, Sequence, TypeVar

T = TypeVar("T")

LCG_MULTIPLIER = 1664525
LCG_INCREMENT = 1013904223
LCG_MODULUS = 2 ** 32


def derive_seed(voter_id: str, poll_id: str, random_seed: Optional[str] = None) -> int:
    key = f"{voter_id}-{poll_id}"
    if random_seed:
        key = f"{key}-{random_seed}"
    digest = hashlib.sha256(key.encode("utf-8")).digest()
    return int.from_bytes(digest[:4], "big")


class SeededRandom:
    """Linear congruential generator returning floats in [0, 1)"""

    def __init__(self, seed: int):
        self.state = seed % LCG_MODULUS

    def next(self) -> float:
        self.state = (LCG_MULTIPLIER * self.state + LCG_INCREMENT) % LCG_MODULUS
        return self.state / LCG_MODULUS

    def next_int(self, upper: int) -> int:
        """Integer in [0, upper)"""
        return int(self.next() * upper)

    def shuffle(self, items: Sequence[T]) -> List[T]:
        """Fisher-Yates on a copy"""
        result = list(items)
        for i in range(len(result) - 1, 0, -1):
            j = self.next_int(i + 1)
            result[i], result[j] = result[j], result[i]
        return result
