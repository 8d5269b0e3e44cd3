"""Predefined shot patterns.

Offsets are ``(dx, dy)`` pairs relative to the chosen center; ``dy`` grows
downwards.
"""

from __future__ import annotations

from typing import Iterable

from .models import ShotOffset, ShotPattern

SINGLE_SHOT = ShotPattern(
    id="single",
    name="Single Shot",
    description="Standard single shot at the target position",
    offsets=((0, 0),),
)

#     X
#   X X X
#     X
CROSS_SHOT = ShotPattern(
    id="cross",
    name="Cross Shot",
    description="Fires 5 shots in a cross pattern",
    offsets=((0, 0), (-1, 0), (1, 0), (0, -1), (0, 1)),
)

LARGE_CROSS_SHOT = ShotPattern(
    id="large-cross",
    name="Large Cross Shot",
    description="Fires 9 shots in a large cross pattern",
    offsets=((0, 0), (-1, 0), (-2, 0), (1, 0), (2, 0), (0, -1), (0, -2), (0, 1), (0, 2)),
)

HORIZONTAL_LINE_SHOT = ShotPattern(
    id="horizontal-line",
    name="Horizontal Line",
    description="Fires 3 shots in a horizontal line",
    offsets=((-1, 0), (0, 0), (1, 0)),
)

VERTICAL_LINE_SHOT = ShotPattern(
    id="vertical-line",
    name="Vertical Line",
    description="Fires 3 shots in a vertical line",
    offsets=((0, -1), (0, 0), (0, 1)),
)

SQUARE_SHOT = ShotPattern(
    id="square",
    name="Square Shot",
    description="Fires 9 shots in a 3x3 square pattern",
    offsets=tuple((dx, dy) for dy in (-1, 0, 1) for dx in (-1, 0, 1)),
)

#   X   X
#     X
#   X   X
DIAGONAL_X_SHOT = ShotPattern(
    id="diagonal-x",
    name="Diagonal X Shot",
    description="Fires 5 shots in a diagonal X pattern",
    offsets=((0, 0), (-1, -1), (1, -1), (-1, 1), (1, 1)),
)

# The center is the top-left cell.
SMALL_SQUARE_SHOT = ShotPattern(
    id="small-square",
    name="Small Square Shot",
    description="Fires 4 shots in a 2x2 square pattern",
    offsets=((0, 0), (1, 0), (0, 1), (1, 1)),
)

#   X X X
#     X
#     X
T_SHAPE_SHOT = ShotPattern(
    id="t-shape",
    name="T-Shape Shot",
    description="Fires 5 shots in a T pattern",
    offsets=((-1, 0), (0, 0), (1, 0), (0, 1), (0, 2)),
)

#   X
#   X
#   X X
L_SHAPE_SHOT = ShotPattern(
    id="l-shape",
    name="L-Shape Shot",
    description="Fires 4 shots in an L pattern",
    offsets=((0, 0), (0, 1), (0, 2), (1, 2)),
)

SHOT_PATTERNS: dict[str, ShotPattern] = {
    pattern.id: pattern
    for pattern in (
        SINGLE_SHOT,
        CROSS_SHOT,
        LARGE_CROSS_SHOT,
        HORIZONTAL_LINE_SHOT,
        VERTICAL_LINE_SHOT,
        SQUARE_SHOT,
        DIAGONAL_X_SHOT,
        SMALL_SQUARE_SHOT,
        T_SHAPE_SHOT,
        L_SHAPE_SHOT,
    )
}


def get_shot_pattern(pattern_id: str) -> ShotPattern:
    """Return the pattern registered as ``pattern_id``, or the single shot."""
    return SHOT_PATTERNS.get(pattern_id, SINGLE_SHOT)


def create_custom_pattern(
    pattern_id: str,
    name: str,
    offsets: Iterable[ShotOffset | tuple[int, int]],
    description: str | None = None,
) -> ShotPattern:
    return ShotPattern(id=pattern_id, name=name, offsets=tuple(offsets), description=description)
