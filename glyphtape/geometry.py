"""Sierpinski triangle geometry for base-3 addresses.

Digit ``0`` keeps the corner at ``A``, ``1`` the corner at ``B`` and ``2`` the
corner at ``C``; each digit halves the active triangle. ``address_to_point``
returns the centroid of the final sub-triangle and ``point_to_address`` walks
the same subdivision with an exact containment test, so the two are inverses
for every code of the requested width.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Tuple


@dataclass(frozen=True)
class Point:
    x: float
    y: float

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y}


SQRT3 = math.sqrt(3)
A = Point(0.0, 0.0)
B = Point(1.0, 0.0)
C = Point(0.5, SQRT3 / 2)

Triangle = Tuple[Point, Point, Point]


def midpoint(p: Point, q: Point) -> Point:
    return Point((p.x + q.x) / 2, (p.y + q.y) / 2)


def centroid(p: Point, q: Point, r: Point) -> Point:
    return Point((p.x + q.x + r.x) / 3, (p.y + q.y + r.y) / 3)


def subdivide(a: Point, b: Point, c: Point, digit: str) -> Triangle:
    """Select one of the three corner sub-triangles of ``(a, b, c)``."""

    ab = midpoint(a, b)
    bc = midpoint(b, c)
    ca = midpoint(c, a)
    if digit == "0":
        return a, ab, ca
    if digit == "1":
        return ab, b, bc
    if digit == "2":
        return ca, bc, c
    raise ValueError(f"invalid base-3 digit: {digit!r}")


def triangle_for_address(code: str) -> Triangle:
    a, b, c = A, B, C
    for digit in code:
        a, b, c = subdivide(a, b, c, digit)
    return a, b, c


def address_to_point(code: str) -> Point:
    return centroid(*triangle_for_address(code))


def point_in_triangle(p: Point, a: Point, b: Point, c: Point) -> bool:
    """Barycentric containment test; points on an edge count as inside."""

    v0x, v0y = c.x - a.x, c.y - a.y
    v1x, v1y = b.x - a.x, b.y - a.y
    v2x, v2y = p.x - a.x, p.y - a.y

    dot00 = v0x * v0x + v0y * v0y
    dot01 = v0x * v1x + v0y * v1y
    dot02 = v0x * v2x + v0y * v2y
    dot11 = v1x * v1x + v1y * v1y
    dot12 = v1x * v2x + v1y * v2y

    denom = dot00 * dot11 - dot01 * dot01
    if denom == 0:
        return False
    inv = 1 / denom
    u = (dot11 * dot02 - dot01 * dot12) * inv
    v = (dot00 * dot12 - dot01 * dot02) * inv
    return u >= 0 and v >= 0 and u + v <= 1


def point_to_address(point: Point, depth: int) -> str:
    """Recover the ``depth``-digit code whose sub-triangle contains ``point``.

    Sub-triangles are tested in digit order and the first that contains the
    point wins. A point in none of them (outside the triangle, or in the
    inverted middle cell) takes digit ``2``.
    """

    if depth < 0:
        raise ValueError("depth must be non-negative")

    a, b, c = A, B, C
    digits = []
    for _ in range(depth):
        for digit in "01":
            sub = subdivide(a, b, c, digit)
            if point_in_triangle(point, *sub):
                break
        else:
            digit = "2"
            sub = subdivide(a, b, c, digit)
        digits.append(digit)
        a, b, c = sub
    return "".join(digits)
