"""
Leaf placement on the tree canvas.

Leaves are laid out on a golden-angle (phyllotaxis) spiral around a fixed
center. Position depends only on the zero-based insertion index, so the same
index always lands on the same point.
"""

from __future__ import annotations

import math
from typing import Tuple

GOLDEN_ANGLE_DEG = 137.5
RADIUS_STEP = 30
CANVAS_CENTER: Tuple[int, int] = (500, 300)


def leaf_position(
    index: int,
    *,
    center: Tuple[int, int] = CANVAS_CENTER,
    radius_step: float = RADIUS_STEP,
    angle_step: float = GOLDEN_ANGLE_DEG,
) -> Tuple[int, int]:
    """Return integer (x, y) for the leaf at `index`."""
    if index < 0:
        raise ValueError("leaf index must be >= 0")

    angle = math.radians(index * angle_step)
    radius = math.sqrt(index) * radius_step
    cx, cy = center
    # round half up, as the canvas renderer does
    x = math.floor(cx + radius * math.cos(angle) + 0.5)
    y = math.floor(cy + radius * math.sin(angle) + 0.5)
    return int(x), int(y)
