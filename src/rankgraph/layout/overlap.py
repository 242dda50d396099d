"""Overlap removal post-pass.

SCANLINE walks the boxes in (x, y, index) order and pushes every box that
comes too close to an earlier one away from it, along whichever axis needs
the smaller move (the in-layer axis on ties). Boxes only move; they never
shrink. Passes repeat until a pass moves nothing or ``maxiter`` is hit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from rankgraph.types import OverlapMode

logger = logging.getLogger(__name__)

_TOLERANCE: float = 1e-6


@dataclass(eq=False)
class Box:
    key: str
    x: float
    y: float
    width: float
    height: float
    index: int = 0


def _penetration(a: Box, b: Box, gap_x: float, gap_y: float) -> tuple[float, float] | None:
    """Signed moves of ``b`` that would clear ``a``, or None when they are apart."""
    right = a.x + a.width + gap_x - b.x
    left = b.x + b.width + gap_x - a.x
    below = a.y + a.height + gap_y - b.y
    above = b.y + b.height + gap_y - a.y
    if min(right, left) <= _TOLERANCE or min(below, above) <= _TOLERANCE:
        return None
    dx = right if a.x + a.width / 2 <= b.x + b.width / 2 else -left
    dy = below if a.y + a.height / 2 <= b.y + b.height / 2 else -above
    return dx, dy


def remove_overlaps(
    boxes: list[Box],
    mode: OverlapMode,
    gap_x: float,
    gap_y: float,
    maxiter: int,
) -> bool:
    """Move ``boxes`` in place until none overlap. Returns False if ``maxiter`` passes did not suffice."""
    if mode is OverlapMode.NONE or len(boxes) < 2:
        return True

    for iteration in range(maxiter):
        moved = False
        ordered = sorted(boxes, key=lambda b: (b.x, b.y, b.index))
        for j, b in enumerate(ordered):
            for a in ordered[:j]:
                hit = _penetration(a, b, gap_x, gap_y)
                if hit is None:
                    continue
                dx, dy = hit
                if abs(dx) <= abs(dy):
                    b.x += dx
                else:
                    b.y += dy
                moved = True
        if not moved:
            if iteration:
                logger.debug("overlaps removed in %d passes", iteration)
            return True
    return not has_overlaps(boxes, gap_x, gap_y)


def has_overlaps(boxes: list[Box], gap_x: float, gap_y: float) -> bool:
    return any(
        _penetration(a, b, gap_x, gap_y) is not None for i, a in enumerate(boxes) for b in boxes[i + 1 :]
    )
