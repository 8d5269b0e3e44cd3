"""Expands a shot pattern around a center and resolves it against a board.

Cells that fall off the board or were already shot are reported as not
executed; the rest of the pattern still fires. Only executed cells count
towards the hit and destruction aggregates.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from salvo.telemetry import get_tracer, set_span_attributes

from .board import BoardState
from .errors import ShotError
from .models import Coordinate, ShotPattern, Side

logger = logging.getLogger(__name__)
tracer = get_tracer("salvo.engine.resolver")


@dataclass(frozen=True)
class PatternShot:
    x: int
    y: int
    hit: bool
    executed: bool
    ship_id: int | None = None
    ship_destroyed: bool = False
    pattern_id: str | None = None
    center_x: int | None = None
    center_y: int | None = None
    collected: bool = False
    item_id: int | None = None
    item_fully_collected: bool = False


@dataclass(frozen=True)
class PatternResult:
    success: bool
    shots: tuple[PatternShot, ...]
    is_game_over: bool
    winner: Side | None
    error: ShotError | None = None

    @property
    def executed_shots(self) -> tuple[PatternShot, ...]:
        return tuple(shot for shot in self.shots if shot.executed)

    @property
    def any_hit(self) -> bool:
        return any(shot.hit for shot in self.executed_shots)

    @property
    def any_ship_destroyed(self) -> bool:
        return any(shot.ship_destroyed for shot in self.executed_shots)


def resolve_pattern(
    board: BoardState,
    center_x: int,
    center_y: int,
    pattern: ShotPattern,
    side: Side,
) -> PatternResult:
    """Fire every offset of ``pattern`` around ``(center_x, center_y)`` for ``side``."""
    with tracer.start_as_current_span("resolver.resolve_pattern") as span:
        set_span_attributes(span, "pattern", id=pattern.id, center_x=center_x, center_y=center_y, side=side)

        if board.is_game_over:
            logger.warning(
                "pattern_rejected_game_over",
                extra={"pattern_id": pattern.id, "side": side.value},
            )
            return PatternResult(
                success=False,
                shots=(),
                is_game_over=True,
                winner=board.winner,
                error=ShotError.GAME_ALREADY_OVER,
            )

        center = Coordinate(center_x, center_y)
        shots: list[PatternShot] = []
        for target in pattern.targets(center_x, center_y):
            if not board.is_valid_position(target.x, target.y):
                shots.append(PatternShot(x=target.x, y=target.y, hit=False, executed=False))
                continue

            previous = board.get_shot_at(target.x, target.y, side)
            if previous is not None:
                shots.append(
                    PatternShot(
                        x=target.x,
                        y=target.y,
                        hit=previous.hit,
                        executed=False,
                        ship_id=previous.ship_id,
                    )
                )
                continue

            applied = board.apply_shot(target.x, target.y, side, pattern_id=pattern.id, center=center)
            if not applied.success or applied.shot is None:
                shots.append(PatternShot(x=target.x, y=target.y, hit=False, executed=False))
                continue
            shot = applied.shot
            shots.append(
                PatternShot(
                    x=shot.x,
                    y=shot.y,
                    hit=shot.hit,
                    executed=True,
                    ship_id=shot.ship_id,
                    ship_destroyed=applied.ship_destroyed,
                    pattern_id=pattern.id,
                    center_x=center_x,
                    center_y=center_y,
                    collected=shot.collected,
                    item_id=shot.item_id,
                    item_fully_collected=shot.item_fully_collected,
                )
            )

        result = PatternResult(
            success=True,
            shots=tuple(shots),
            is_game_over=board.is_game_over,
            winner=board.winner,
        )
        executed = len(result.executed_shots)
        set_span_attributes(span, "pattern", executed=executed, any_hit=result.any_hit)
        logger.info(
            "pattern_resolved",
            extra={
                "pattern_id": pattern.id,
                "side": side.value,
                "center_x": center_x,
                "center_y": center_y,
                "offsets": len(shots),
                "executed": executed,
                "any_hit": result.any_hit,
                "any_ship_destroyed": result.any_ship_destroyed,
            },
        )
        return result
