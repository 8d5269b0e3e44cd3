"""Domain models shared by the match engine: sides, placements, shots and patterns."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable


class Side(Enum):
    """The two competing parties of a match."""

    PLAYER = "player"
    ENEMY = "enemy"

    def opponent(self) -> Side:
        """Return the opposing side."""
        return Side.ENEMY if self is Side.PLAYER else Side.PLAYER


@dataclass(frozen=True)
class Coordinate:
    """Immutable board coordinate; ``x`` is the column and ``y`` the row."""

    x: int
    y: int


@dataclass(frozen=True)
class Ship:
    """A rectangular ship whose top-left cell is ``(x, y)``."""

    x: int
    y: int
    width: int = 1
    height: int = 1
    ship_id: int | None = None

    def __post_init__(self) -> None:
        if self.width < 1 or self.height < 1:
            raise ValueError(f"Ship dimensions must be positive, got {self.width}x{self.height}.")

    @property
    def size(self) -> int:
        """Number of cells the ship occupies."""
        return self.width * self.height

    def cells(self) -> tuple[Coordinate, ...]:
        """Return the occupied cells in row-major order."""
        return tuple(
            Coordinate(self.x + col, self.y + row)
            for row in range(self.height)
            for col in range(self.width)
        )


@dataclass(frozen=True)
class Item:
    """A collectible laid out as a horizontal run of ``part`` cells."""

    x: int
    y: int
    part: int = 1
    item_id: int | None = None
    template_id: str | None = None

    def __post_init__(self) -> None:
        if self.part < 1:
            raise ValueError(f"Item must span at least one cell, got part={self.part}.")

    def cells(self) -> tuple[Coordinate, ...]:
        return tuple(Coordinate(self.x + offset, self.y) for offset in range(self.part))


@dataclass(frozen=True)
class Shot:
    """Record of one resolved cell. Created once per (cell, side), never mutated."""

    x: int
    y: int
    hit: bool
    ship_id: int | None = None
    pattern_id: str = "single"
    center_x: int | None = None
    center_y: int | None = None
    collected: bool = False
    item_id: int | None = None
    item_fully_collected: bool = False

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(self.x, self.y)


@dataclass(frozen=True)
class ShotOffset:
    """Offset from a pattern's center; positive ``dx`` is right, positive ``dy`` is down."""

    dx: int
    dy: int


@dataclass(frozen=True)
class ShotPattern:
    """A named set of offsets fired together around one chosen center."""

    id: str
    name: str
    offsets: tuple[ShotOffset, ...]
    description: str | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        offsets = tuple(
            offset if isinstance(offset, ShotOffset) else ShotOffset(*offset)
            for offset in self.offsets
        )
        if not offsets:
            raise ValueError(f"Shot pattern {self.id!r} needs at least one offset.")
        object.__setattr__(self, "offsets", offsets)

    @property
    def is_single_cell(self) -> bool:
        return len(self.offsets) == 1

    def targets(self, center_x: int, center_y: int) -> list[Coordinate]:
        """Absolute cells covered when the pattern is centered on ``(center_x, center_y)``."""
        return [Coordinate(center_x + offset.dx, center_y + offset.dy) for offset in self.offsets]


def occupied_cells(placements: Iterable[Ship | Item]) -> set[Coordinate]:
    """Return every cell covered by the given ships or items."""
    cells: set[Coordinate] = set()
    for placement in placements:
        cells.update(placement.cells())
    return cells
