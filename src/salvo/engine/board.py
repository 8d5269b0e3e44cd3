"""Two-sided board state: placements, shot records, turn and game-over flags."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Mapping, Sequence

import numpy as np

from salvo.telemetry import get_tracer, record_match_metric, set_span_attributes

from .collector import ItemCollector
from .errors import BoardNotInitializedError, InvalidPlacementError, ShotError
from .events import EventBus, GameEnded, ShotFired, StateChanged, TurnChanged
from .models import Coordinate, Item, Ship, Shot, Side

logger = logging.getLogger(__name__)
tracer = get_tracer("salvo.engine.board")


@dataclass(frozen=True)
class BoardSnapshot:
    """Immutable view of the whole board at one point in time.

    ``shots`` is keyed by the shooter; every other per-side mapping is keyed
    by the owner of the ships or items it describes.
    """

    width: int
    height: int
    current_turn: Side
    is_game_over: bool
    winner: Side | None
    shot_count: int
    ships: Mapping[Side, tuple[Ship, ...]]
    items: Mapping[Side, tuple[Item, ...]]
    shots: Mapping[Side, tuple[Shot, ...]]
    ship_hits: Mapping[Side, Mapping[int, int]]
    item_progress: Mapping[Side, Mapping[int, int]]
    collected_items: Mapping[Side, frozenset[int]]
    all_ships_destroyed: Mapping[Side, bool]


@dataclass(frozen=True)
class ShotCheck:
    """Pure hit-test outcome."""

    hit: bool
    ship_id: int | None = None


@dataclass(frozen=True)
class AppliedShot:
    """Outcome of :meth:`BoardState.apply_shot`."""

    success: bool
    shot: Shot | None = None
    ship_destroyed: bool = False
    error: ShotError | None = None

    @property
    def hit(self) -> bool:
        return bool(self.shot and self.shot.hit)


class BoardState:
    """Owns every piece of mutable per-match data.

    Observers are notified through ``events`` after each mutation, always in
    the order shot -> state -> turn -> game over.
    """

    def __init__(self, width: int, height: int, events: EventBus | None = None) -> None:
        self.width = width
        self.height = height
        self.events = events if events is not None else EventBus()
        self._initialized = False
        self._clear(Side.PLAYER)

    # ------------------------------------------------------------------ setup

    def initialize(
        self,
        player_ships: Sequence[Ship],
        enemy_ships: Sequence[Ship],
        starting_side: Side = Side.PLAYER,
        player_items: Sequence[Item] = (),
        enemy_items: Sequence[Item] = (),
    ) -> None:
        """Reset all maps and counters and store both sides' placements."""
        with tracer.start_as_current_span("board.initialize") as span:
            ships = {
                Side.PLAYER: _with_ship_ids(player_ships),
                Side.ENEMY: _with_ship_ids(enemy_ships),
            }
            items = {
                Side.PLAYER: _with_item_ids(player_items),
                Side.ENEMY: _with_item_ids(enemy_items),
            }
            for owner in Side:
                self._validate_placements(owner, ships[owner], items[owner])

            self._clear(starting_side)
            for owner in Side:
                self._ships[owner] = ships[owner]
                self._ship_sizes[owner] = [ship.size for ship in ships[owner]]
                self._ship_hits[owner] = [0] * len(ships[owner])
                self._ship_index_by_id[owner] = {ship.ship_id: index for index, ship in enumerate(ships[owner])}
                grid = self._ship_grids[owner]
                for index, ship in enumerate(ships[owner]):
                    for cell in ship.cells():
                        grid[cell.y, cell.x] = index + 1
                self._collectors[owner] = ItemCollector(self.width, self.height, items[owner])
            self._initialized = True

            set_span_attributes(span, "board", width=self.width, height=self.height, starting_side=starting_side)
            logger.info(
                "board_initialized",
                extra={
                    "width": self.width,
                    "height": self.height,
                    "starting_side": starting_side.value,
                    "player_ships": len(ships[Side.PLAYER]),
                    "enemy_ships": len(ships[Side.ENEMY]),
                    "player_items": len(items[Side.PLAYER]),
                    "enemy_items": len(items[Side.ENEMY]),
                },
            )
            self._notify_state()

    def reset(self) -> None:
        """Drop every placement and record; the board must be initialized again."""
        self._clear(Side.PLAYER)
        self._initialized = False
        logger.info("board_reset")
        self._notify_state()

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    # ---------------------------------------------------------------- queries

    def is_valid_position(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def is_cell_shot(self, x: int, y: int, side: Side) -> bool:
        """Whether ``side`` has already fired at ``(x, y)``."""
        return Coordinate(x, y) in self._shots[side]

    def get_shot_at(self, x: int, y: int, side: Side) -> Shot | None:
        return self._shots[side].get(Coordinate(x, y))

    def has_ship_at(self, x: int, y: int, owner: Side) -> bool:
        """Whether one of ``owner``'s ships covers ``(x, y)``."""
        return self._ship_index_at(x, y, owner) is not None

    def check_shot(self, x: int, y: int, side: Side) -> ShotCheck:
        """Hit-test ``(x, y)`` against the ships of ``side``'s opponent without mutating."""
        owner = side.opponent()
        index = self._ship_index_at(x, y, owner)
        if index is None:
            return ShotCheck(hit=False)
        return ShotCheck(hit=True, ship_id=self._ships[owner][index].ship_id)

    @property
    def current_turn(self) -> Side:
        return self._current_turn

    @property
    def is_game_over(self) -> bool:
        return self._game_over

    @property
    def winner(self) -> Side | None:
        return self._winner

    @property
    def shot_count(self) -> int:
        return self._shot_count

    def ships(self, owner: Side) -> tuple[Ship, ...]:
        return self._ships[owner]

    def items(self, owner: Side) -> tuple[Item, ...]:
        return self._collectors[owner].items

    def shots(self, side: Side) -> tuple[Shot, ...]:
        """Shots fired by ``side``, in firing order."""
        return tuple(self._shots[side].values())

    def collector(self, owner: Side) -> ItemCollector:
        return self._collectors[owner]

    def ship_hit_count(self, owner: Side, ship_id: int) -> int:
        return self._ship_hits[owner][self._ship_index(owner, ship_id)]

    def is_ship_destroyed(self, owner: Side, ship_id: int) -> bool:
        index = self._ship_index(owner, ship_id)
        return self._ship_hits[owner][index] == self._ship_sizes[owner][index]

    def are_all_ships_destroyed(self, owner: Side) -> bool:
        """True once every ship of ``owner`` is destroyed; an empty fleet never is."""
        hits = self._ship_hits[owner]
        if not hits:
            return False
        return all(count == size for count, size in zip(hits, self._ship_sizes[owner]))

    def get_snapshot(self) -> BoardSnapshot:
        return BoardSnapshot(
            width=self.width,
            height=self.height,
            current_turn=self._current_turn,
            is_game_over=self._game_over,
            winner=self._winner,
            shot_count=self._shot_count,
            ships=_freeze({owner: self._ships[owner] for owner in Side}),
            items=_freeze({owner: self._collectors[owner].items for owner in Side}),
            shots=_freeze({side: tuple(self._shots[side].values()) for side in Side}),
            ship_hits=_freeze(
                {
                    owner: MappingProxyType(
                        {ship.ship_id: hits for ship, hits in zip(self._ships[owner], self._ship_hits[owner])}
                    )
                    for owner in Side
                }
            ),
            item_progress=_freeze(
                {owner: MappingProxyType(self._collectors[owner].counts()) for owner in Side}
            ),
            collected_items=_freeze(
                {owner: self._collectors[owner].fully_collected_ids() for owner in Side}
            ),
            all_ships_destroyed=_freeze({owner: self.are_all_ships_destroyed(owner) for owner in Side}),
        )

    # -------------------------------------------------------------- mutations

    def apply_shot(
        self,
        x: int,
        y: int,
        side: Side,
        pattern_id: str = "single",
        center: Coordinate | None = None,
    ) -> AppliedShot:
        """Record ``side``'s shot at ``(x, y)`` and resolve damage or collection."""
        self._require_initialized("apply_shot")
        with tracer.start_as_current_span("board.apply_shot") as span:
            set_span_attributes(span, "shot", x=x, y=y, side=side)
            if not self.is_valid_position(x, y):
                logger.error("shot_out_of_bounds", extra={"x": x, "y": y, "side": side.value})
                raise ValueError(f"Shot ({x}, {y}) is outside the {self.width}x{self.height} board.")
            coord = Coordinate(x, y)
            if coord in self._shots[side]:
                logger.warning("shot_duplicate", extra={"x": x, "y": y, "side": side.value})
                return AppliedShot(success=False, error=ShotError.CELL_ALREADY_SHOT)

            owner = side.opponent()
            check = self.check_shot(x, y, side)
            ship_destroyed = False
            collection = None
            if check.hit:
                index = self._ship_index_at(x, y, owner)
                self._ship_hits[owner][index] += 1
                ship_destroyed = self._ship_hits[owner][index] == self._ship_sizes[owner][index]
            else:
                collection = self._collectors[owner].attempt_collect(x, y)

            center = center or coord
            shot = Shot(
                x=x,
                y=y,
                hit=check.hit,
                ship_id=check.ship_id,
                pattern_id=pattern_id,
                center_x=center.x,
                center_y=center.y,
                collected=bool(collection and collection.collected),
                item_id=collection.item_id if collection and collection.collected else None,
                item_fully_collected=bool(collection and collection.fully_collected),
            )
            self._shots[side][coord] = shot
            self._shot_count += 1

            outcome = "hit" if shot.hit else ("collected" if shot.collected else "miss")
            set_span_attributes(span, "shot", outcome=outcome, ship_destroyed=ship_destroyed)
            record_match_metric("salvo_engine_shots", 1, {"outcome": outcome, "side": side.value})
            logger.info(
                "shot_applied",
                extra={
                    "x": x,
                    "y": y,
                    "side": side.value,
                    "outcome": outcome,
                    "ship_id": shot.ship_id,
                    "ship_destroyed": ship_destroyed,
                    "pattern_id": pattern_id,
                },
            )

            self.events.publish(ShotFired(shot=shot, side=side))
            self._notify_state()
            return AppliedShot(success=True, shot=shot, ship_destroyed=ship_destroyed)

    def toggle_side(self) -> Side:
        """Pass the turn to the other side and return the side now holding it."""
        self._require_initialized("toggle_side")
        self._current_turn = self._current_turn.opponent()
        logger.info("turn_toggled", extra={"current_turn": self._current_turn.value})
        self._notify_state()
        self.events.publish(TurnChanged(side=self._current_turn))
        return self._current_turn

    def set_game_over(self, winner: Side | None) -> bool:
        """Mark the match finished. Returns False (and does nothing) if it already was."""
        self._require_initialized("set_game_over")
        if self._game_over:
            logger.debug("game_over_already_set", extra={"winner": _side_value(self._winner)})
            return False
        self._game_over = True
        self._winner = winner
        logger.info("game_over", extra={"winner": _side_value(winner), "shots": self._shot_count})
        self._notify_state()
        self.events.publish(GameEnded(winner=winner))
        return True

    # ---------------------------------------------------------------- helpers

    def _clear(self, starting_side: Side) -> None:
        self._current_turn = starting_side
        self._game_over = False
        self._winner: Side | None = None
        self._shot_count = 0
        self._ships: dict[Side, tuple[Ship, ...]] = {side: () for side in Side}
        self._ship_sizes: dict[Side, list[int]] = {side: [] for side in Side}
        self._ship_hits: dict[Side, list[int]] = {side: [] for side in Side}
        self._ship_index_by_id: dict[Side, dict[int, int]] = {side: {} for side in Side}
        self._ship_grids = {side: np.zeros((self.height, self.width), dtype=np.int16) for side in Side}
        self._shots: dict[Side, dict[Coordinate, Shot]] = {side: {} for side in Side}
        self._collectors = {side: ItemCollector(self.width, self.height) for side in Side}

    def _validate_placements(self, owner: Side, ships: tuple[Ship, ...], items: tuple[Item, ...]) -> None:
        ship_cells: set[Coordinate] = set()
        for ship in ships:
            for cell in ship.cells():
                if not self.is_valid_position(cell.x, cell.y):
                    raise InvalidPlacementError(f"{owner.value} ship {ship.ship_id} leaves the board at {cell}.")
                if cell in ship_cells:
                    raise InvalidPlacementError(f"{owner.value} ship {ship.ship_id} overlaps another ship at {cell}.")
                ship_cells.add(cell)

        item_cells: set[Coordinate] = set()
        for item in items:
            for cell in item.cells():
                if not self.is_valid_position(cell.x, cell.y):
                    raise InvalidPlacementError(f"{owner.value} item {item.item_id} leaves the board at {cell}.")
                if cell in ship_cells:
                    raise InvalidPlacementError(f"{owner.value} item {item.item_id} shares {cell} with a ship.")
                if cell in item_cells:
                    raise InvalidPlacementError(f"{owner.value} item {item.item_id} overlaps another item at {cell}.")
                item_cells.add(cell)

        for kind, ids in (("ship", [s.ship_id for s in ships]), ("item", [i.item_id for i in items])):
            if len(set(ids)) != len(ids):
                raise InvalidPlacementError(f"{owner.value} {kind} ids are not unique: {ids}.")

    def _ship_index_at(self, x: int, y: int, owner: Side) -> int | None:
        if not self.is_valid_position(x, y):
            return None
        value = int(self._ship_grids[owner][y, x])
        return value - 1 if value else None

    def _ship_index(self, owner: Side, ship_id: int) -> int:
        try:
            return self._ship_index_by_id[owner][ship_id]
        except KeyError:
            raise KeyError(f"{owner.value} has no ship with id {ship_id}.") from None

    def _require_initialized(self, operation: str) -> None:
        if not self._initialized:
            logger.error("board_not_initialized", extra={"operation": operation})
            raise BoardNotInitializedError(f"{operation}() called before initialize().")

    def _notify_state(self) -> None:
        self.events.publish(StateChanged(snapshot=self.get_snapshot()))


def _with_ship_ids(ships: Sequence[Ship]) -> tuple[Ship, ...]:
    return tuple(ship if ship.ship_id is not None else replace(ship, ship_id=index) for index, ship in enumerate(ships))


def _with_item_ids(items: Sequence[Item]) -> tuple[Item, ...]:
    return tuple(item if item.item_id is not None else replace(item, item_id=index) for index, item in enumerate(items))


def _freeze(mapping: dict) -> Mapping:
    return MappingProxyType(mapping)


def _side_value(side: Side | None) -> str | None:
    return side.value if side else None
