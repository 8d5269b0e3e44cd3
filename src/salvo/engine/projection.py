"""Read-only grids derived from a :class:`BoardSnapshot` for display layers."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .board import BoardSnapshot
from .models import Coordinate, Shot, Side, occupied_cells


class CellState(Enum):
    EMPTY = "empty"
    SHIP = "ship"
    HIT = "hit"
    MISS = "miss"
    ITEM = "item"
    COLLECTED = "collected"


@dataclass(frozen=True)
class Cell:
    state: CellState
    shot: Shot | None = None


BoardView = tuple[tuple[Cell, ...], ...]

EMPTY_CELL = Cell(CellState.EMPTY)

_SYMBOLS = {
    CellState.EMPTY: ".",
    CellState.SHIP: "S",
    CellState.HIT: "X",
    CellState.MISS: "o",
    CellState.ITEM: "I",
    CellState.COLLECTED: "*",
}


def own_board(snapshot: BoardSnapshot, side: Side) -> BoardView:
    """``side``'s ships and items, overlaid with the shots its opponent fired."""
    ship_cells = occupied_cells(snapshot.ships[side])
    item_cells = occupied_cells(snapshot.items[side])
    incoming = _by_cell(snapshot.shots[side.opponent()])

    def cell_at(coord: Coordinate) -> Cell:
        shot = incoming.get(coord)
        if shot is not None:
            return Cell(_shot_state(shot), shot)
        if coord in ship_cells:
            return Cell(CellState.SHIP)
        if coord in item_cells:
            return Cell(CellState.ITEM)
        return EMPTY_CELL

    return _grid(snapshot, cell_at)


def opponent_board(snapshot: BoardSnapshot, side: Side) -> BoardView:
    """Only what ``side`` has learned by firing; unshot cells stay empty."""
    outgoing = _by_cell(snapshot.shots[side])

    def cell_at(coord: Coordinate) -> Cell:
        shot = outgoing.get(coord)
        if shot is None:
            return EMPTY_CELL
        return Cell(_shot_state(shot), shot)

    return _grid(snapshot, cell_at)


def format_view(view: BoardView) -> str:
    """Render a view as text, one row per line with a column header."""
    width = len(view[0]) if view else 0
    rows = ["    " + " ".join(f"{col:>2}" for col in range(width))]
    for y, row in enumerate(view):
        symbols = " ".join(f"{_SYMBOLS[cell.state]:>2}" for cell in row)
        rows.append(f"{y:>2} |" + symbols)
    return "\n".join(rows)


def _shot_state(shot: Shot) -> CellState:
    if shot.hit:
        return CellState.HIT
    if shot.collected:
        return CellState.COLLECTED
    return CellState.MISS


def _by_cell(shots: tuple[Shot, ...]) -> dict[Coordinate, Shot]:
    return {shot.coordinate: shot for shot in shots}


def _grid(snapshot: BoardSnapshot, cell_at) -> BoardView:
    return tuple(
        tuple(cell_at(Coordinate(x, y)) for x in range(snapshot.width))
        for y in range(snapshot.height)
    )
