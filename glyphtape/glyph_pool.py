"""Deterministic, seed-shuffled glyph alphabets.

The hash, generator and shuffle below are fixed algorithms rather than
``random.Random``: a decoder that regenerates a dictionary has to reproduce
the training-time pool bit for bit, in any implementation.
"""

from __future__ import annotations

from typing import Callable, Iterable, List, Sequence, TypeVar

T = TypeVar("T")

# Safe in HTML and JSON: no quotes, backslash, angle brackets or ampersand.
ALPHABET = (
    "!#$%()*+,-./:;=?@[]^_{|}~"
    "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    "abcdefghijklmnopqrstuvwxyz"
    "0123456789"
)

_MASK32 = 0xFFFFFFFF
_FNV_OFFSET = 0x811C9DC5
_FNV_PRIME = 0x01000193


def ascii_glyph_pool(prefix: str = "~", levels: int = 2, alphabet: str = ALPHABET) -> List[str]:
    """Enumerate ``prefix + s`` for every string ``s`` of length 1..levels.

    Shorter strings come first; within a level the order is lexicographic in
    alphabet order.
    """

    if levels < 1:
        raise ValueError("levels must be at least 1")
    if not alphabet:
        raise ValueError("alphabet must not be empty")

    pool: List[str] = []
    level = [""]
    for _ in range(levels):
        level = [stem + ch for stem in level for ch in alphabet]
        pool.extend(prefix + s for s in level)
    return pool


def fnv1a32(text: str) -> int:
    """32-bit FNV-1a over the UTF-16 code units of ``text``."""

    data = text.encode("utf-16-le")
    h = _FNV_OFFSET
    for idx in range(0, len(data), 2):
        h ^= data[idx] | (data[idx + 1] << 8)
        h = (h * _FNV_PRIME) & _MASK32
    return h


def _imul(a: int, b: int) -> int:
    return (a * b) & _MASK32


class Mulberry32:
    """Mulberry32 generator producing floats in ``[0, 1)``."""

    def __init__(self, seed: int) -> None:
        self._state = seed & _MASK32

    def __call__(self) -> float:
        self._state = (self._state + 0x6D2B79F5) & _MASK32
        t = self._state
        t = _imul(t ^ (t >> 15), t | 1)
        t ^= (t + _imul(t ^ (t >> 7), t | 61)) & _MASK32
        return ((t ^ (t >> 14)) & _MASK32) / 4294967296

    @property
    def state(self) -> int:
        return self._state


def seeded_shuffle(items: Iterable[T], seed: str, rng: Callable[[int], Callable[[], float]] = Mulberry32) -> List[T]:
    """Fisher-Yates shuffle driven by ``Mulberry32(fnv1a32(seed))``."""

    rand = rng(fnv1a32(seed))
    shuffled = list(items)
    for i in range(len(shuffled) - 1, 0, -1):
        j = int(rand() * (i + 1))
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def pool_for_tape(seed: str, prefix: str = "~", levels: int = 2) -> List[str]:
    return seeded_shuffle(ascii_glyph_pool(prefix, levels), seed)


def usable_glyphs(pool: Sequence[str], excluded: Iterable[str]) -> List[str]:
    """Drop pool entries that collide with ``excluded`` while keeping pool order."""

    blocked = set(excluded)
    return [glyph for glyph in pool if glyph not in blocked]
