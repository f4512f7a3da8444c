"""Base-3 paths: the names of grammar symbols and of tape addresses.

A path is a string over ``0``, ``1`` and ``2``. Its length is the depth of
the Sierpinski sub-triangle it names, so the same string doubles as a
grammar symbol and as a spatial coordinate (see ``glyphtape.geometry``).
"""

from __future__ import annotations

import re
from typing import Collection, Iterable, List, Optional, Tuple

from glyphtape.geometry import Point, address_to_point

MAX_DEPTH = 20

_PATH_RE = re.compile(r"^[012]+$")


class AddressExhausted(ValueError):
    """Raised when no free base-3 address remains at the attempted depth."""

    def __init__(self, depth: int, message: str | None = None):
        super().__init__(message or f"no available paths at depth {depth}")
        self.depth = depth


def to_base3(n: int, width: int = 1) -> str:
    """Render ``n`` in base 3, left-padded with zeros to at least ``width`` digits."""

    if n < 0:
        raise ValueError(f"cannot encode negative address {n}")
    if n == 0:
        return "0" * max(width, 1)

    digits: List[str] = []
    while n > 0:
        n, rem = divmod(n, 3)
        digits.append(str(rem))
    return "".join(reversed(digits)).rjust(width, "0")


def from_base3(code: str) -> int:
    if not is_valid_path(code):
        raise ValueError(f"invalid base-3 path: {code!r}")
    value = 0
    for ch in code:
        value = value * 3 + int(ch)
    return value


def is_valid_path(code: object) -> bool:
    return isinstance(code, str) and bool(_PATH_RE.match(code))


def min_depth_for_slots(n: int) -> int:
    """Smallest depth ``D`` with ``3**D >= n``."""

    depth = 0
    capacity = 1
    while capacity < n:
        depth += 1
        capacity *= 3
    return depth


def next_path(used: Collection[str], depth: int) -> str:
    """Return the first fixed-width code at ``depth`` that is not in ``used``."""

    if depth < 1:
        raise ValueError("depth must be at least 1")
    for counter in range(3**depth):
        candidate = to_base3(counter, depth)
        if candidate not in used:
            return candidate
    raise AddressExhausted(depth)


def next_available_path(
    used: Collection[str],
    start_depth: int = 1,
    max_depth: int = MAX_DEPTH,
) -> str:
    """Scan depths upward from ``start_depth`` until a free code turns up.

    Exhaustion at one depth is retried one level deeper; only running past
    ``max_depth`` surfaces as ``AddressExhausted``.
    """

    depth = start_depth
    while depth <= max_depth:
        try:
            return next_path(used, depth)
        except AddressExhausted:
            depth += 1
    raise AddressExhausted(depth, f"address space exhausted up to depth {max_depth}")


def parent(code: str) -> Optional[str]:
    if len(code) <= 1:
        return None
    return code[:-1]


def ancestors(code: str) -> List[str]:
    """All prefixes of ``code``, shortest first, including ``code`` itself."""

    return [code[:idx] for idx in range(1, len(code) + 1)]


def is_ancestor(ancestor: str, descendant: str) -> bool:
    return len(ancestor) < len(descendant) and descendant.startswith(ancestor)


def children_of(code: str, used: Iterable[str]) -> List[str]:
    return sorted(p for p in used if len(p) == len(code) + 1 and p.startswith(code))


def encode_path(code: str) -> bytes:
    """Pack a path as two LEB128 varints: its width, then its numeric value.

    The width is kept so leading zeros (``"002"`` vs ``"2"``) survive.
    """

    return _varint(len(code)) + _varint(from_base3(code))


def decode_path(data: bytes) -> str:
    width, offset = _read_varint(data, 0)
    value, _ = _read_varint(data, offset)
    return to_base3(value, width)


def _varint(value: int) -> bytes:
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def _read_varint(data: bytes, offset: int) -> Tuple[int, int]:
    value = 0
    shift = 0
    while True:
        if offset >= len(data):
            raise ValueError("truncated varint")
        byte = data[offset]
        offset += 1
        value |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return value, offset
        shift += 7


class AddressAllocator:
    """Append-only allocator handing out sequential tape addresses.

    One allocator covers one ingestion pass: every token gets the next
    integer address, so the stream is contiguous and strictly increasing.
    ``depth`` is the fixed width needed to write every address handed out so
    far as a base-3 code.
    """

    def __init__(self, start: int = 0) -> None:
        if start < 0:
            raise ValueError("start address must be non-negative")
        self._next = start

    @property
    def next_address(self) -> int:
        return self._next

    def allocate(self, tokens: Iterable[str]) -> List[Tuple[int, str]]:
        placed: List[Tuple[int, str]] = []
        for token in tokens:
            placed.append((self._next, token))
            self._next += 1
        return placed

    @property
    def depth(self) -> int:
        return min_depth_for_slots(self._next)

    def code(self, address: int, depth: int | None = None) -> str:
        width = self.depth if depth is None else depth
        return to_base3(address, max(width, 1))

    def point(self, address: int, depth: int | None = None) -> Point:
        return address_to_point(self.code(address, depth))
