"""Match coordinator: the plan -> confirm -> resolve turn cycle.

The coordinator is a small state machine. ``ATTACKING`` and
``RESOLVING_TURN`` are pass-through phases entered only from
:meth:`Match.confirm_attack`; any call that arrives while the machine sits in
one of them (for instance from an event handler) is rejected, so pattern
resolution, the turn decision and game-over detection happen as one unit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

from salvo.config import MatchConfig
from salvo.telemetry import get_tracer, record_match_metric, set_span_attributes

from .board import BoardSnapshot, BoardState
from .errors import AttackError, PlanError, ShotError
from .events import EventBus, MatchStarted, PhaseChanged
from .models import Item, Ship, Shot, ShotPattern, Side
from .patterns import SINGLE_SHOT
from .projection import BoardView, opponent_board, own_board
from .resolver import PatternResult, PatternShot, resolve_pattern
from .rulesets import RuleSet, TurnDecision, get_ruleset

logger = logging.getLogger(__name__)
tracer = get_tracer("salvo.engine.match")


class MatchPhase(Enum):
    """Lifecycle of a match as seen by callers."""

    IDLE = "idle"
    PLANNING = "planning"
    PLANNED = "planned"
    ATTACKING = "attacking"
    RESOLVING_TURN = "resolving_turn"
    GAME_OVER = "game_over"


TRANSIENT_PHASES = frozenset({MatchPhase.ATTACKING, MatchPhase.RESOLVING_TURN})

_TRANSITIONS: dict[MatchPhase, frozenset[MatchPhase]] = {
    MatchPhase.IDLE: frozenset({MatchPhase.PLANNING}),
    MatchPhase.PLANNING: frozenset({MatchPhase.PLANNED, MatchPhase.PLANNING, MatchPhase.IDLE}),
    MatchPhase.PLANNED: frozenset(
        {MatchPhase.PLANNED, MatchPhase.PLANNING, MatchPhase.ATTACKING, MatchPhase.IDLE}
    ),
    MatchPhase.ATTACKING: frozenset({MatchPhase.RESOLVING_TURN, MatchPhase.PLANNING, MatchPhase.GAME_OVER}),
    MatchPhase.RESOLVING_TURN: frozenset({MatchPhase.PLANNING, MatchPhase.GAME_OVER}),
    MatchPhase.GAME_OVER: frozenset({MatchPhase.PLANNING, MatchPhase.IDLE}),
}


@dataclass(frozen=True)
class PendingPlan:
    center_x: int
    center_y: int
    pattern: ShotPattern
    side: Side


@dataclass(frozen=True)
class BoardDimensions:
    width: int
    height: int


@dataclass(frozen=True)
class PlanResult:
    ready: bool
    center_x: int
    center_y: int
    pattern: ShotPattern
    side: Side
    phase: MatchPhase
    error: PlanError | None = None


@dataclass(frozen=True)
class AttackResult:
    """Outcome of one confirmed attack, including the turn it produced."""

    success: bool
    shots: tuple[PatternShot, ...] = ()
    turn_ended: bool = False
    can_act_again: bool = False
    is_game_over: bool = False
    winner: Side | None = None
    reason: str = ""
    error: AttackError | ShotError | PlanError | None = None

    @property
    def executed_shots(self) -> tuple[PatternShot, ...]:
        return tuple(shot for shot in self.shots if shot.executed)

    @property
    def hit(self) -> bool:
        return any(shot.hit for shot in self.executed_shots)

    @property
    def ship_destroyed(self) -> bool:
        return any(shot.ship_destroyed for shot in self.executed_shots)


class Match:
    """Drives a :class:`BoardState` and a :class:`RuleSet` through the turn cycle."""

    def __init__(
        self,
        config: MatchConfig | None = None,
        ruleset: RuleSet | None = None,
        events: EventBus | None = None,
    ) -> None:
        self.config = config or MatchConfig()
        self.events = events if events is not None else EventBus()
        self.board = BoardState(self.config.board_width, self.config.board_height, self.events)
        self._ruleset: RuleSet = ruleset or get_ruleset(self.config.ruleset)
        self._phase = MatchPhase.IDLE
        self._pending: PendingPlan | None = None
        self._last_attack: PatternResult | None = None
        self._last_decision: TurnDecision | None = None
        self._last_plan_error: PlanError | None = None

    # --------------------------------------------------------------- commands

    def initialize(
        self,
        player_ships: Sequence[Ship],
        enemy_ships: Sequence[Ship],
        starting_side: Side = Side.PLAYER,
        player_items: Sequence[Item] = (),
        enemy_items: Sequence[Item] = (),
    ) -> None:
        """Start a new match. Raises ``InvalidPlacementError`` for inconsistent placements."""
        if self._reject_if_busy("initialize"):
            return
        with tracer.start_as_current_span("match.initialize") as span:
            set_span_attributes(span, "match", starting_side=starting_side, ruleset=self._ruleset.name)
            self.board.initialize(player_ships, enemy_ships, starting_side, player_items, enemy_items)
            self._clear_round_state()
            self._enter(MatchPhase.PLANNING)
            logger.info(
                "match_started",
                extra={"starting_side": starting_side.value, "ruleset": self._ruleset.name},
            )
            self.events.publish(MatchStarted(snapshot=self.board.get_snapshot()))

    def plan_shot(
        self,
        center_x: int,
        center_y: int,
        pattern: ShotPattern = SINGLE_SHOT,
        side: Side = Side.PLAYER,
    ) -> PlanResult:
        """Validate and store a plan; a valid plan replaces any pending one."""
        with tracer.start_as_current_span("match.plan_shot") as span:
            set_span_attributes(span, "plan", center_x=center_x, center_y=center_y, pattern=pattern.id, side=side)

            error = self._validate_plan(center_x, center_y, pattern, side)
            if error is not None:
                self._last_plan_error = error
                span.set_attribute("plan.error", error.name)
                record_match_metric("salvo_engine_plans", 1, {"result": "rejected", "reason": error.name})
                logger.warning(
                    "plan_rejected",
                    extra={
                        "center_x": center_x,
                        "center_y": center_y,
                        "pattern_id": pattern.id,
                        "side": side.value,
                        "reason": error.name,
                        "phase": self._phase.value,
                    },
                )
                return PlanResult(
                    ready=False,
                    center_x=center_x,
                    center_y=center_y,
                    pattern=pattern,
                    side=side,
                    phase=self._phase,
                    error=error,
                )

            self._pending = None
            self._pending = PendingPlan(center_x, center_y, pattern, side)
            self._last_plan_error = None
            self._enter(MatchPhase.PLANNED)
            record_match_metric("salvo_engine_plans", 1, {"result": "accepted", "pattern": pattern.id})
            logger.debug(
                "plan_stored",
                extra={"center_x": center_x, "center_y": center_y, "pattern_id": pattern.id, "side": side.value},
            )
            return PlanResult(
                ready=True,
                center_x=center_x,
                center_y=center_y,
                pattern=pattern,
                side=side,
                phase=self._phase,
            )

    def confirm_attack(self) -> AttackResult:
        """Fire the pending plan and settle the turn it produces."""
        plan = self._pending
        if self._phase is not MatchPhase.PLANNED or plan is None:
            logger.warning("confirm_without_plan", extra={"phase": self._phase.value})
            return self._failure(AttackError.NO_ATTACK_PLANNED)

        with tracer.start_as_current_span("match.confirm_attack") as span:
            set_span_attributes(span, "attack", pattern=plan.pattern.id, side=plan.side)
            self._pending = None
            self._enter(MatchPhase.ATTACKING)
            try:
                attack = resolve_pattern(self.board, plan.center_x, plan.center_y, plan.pattern, plan.side)
                self._last_attack = attack
                if not attack.success:
                    self._settle()
                    return AttackResult(
                        success=False,
                        shots=attack.shots,
                        turn_ended=False,
                        is_game_over=attack.is_game_over,
                        winner=attack.winner,
                        reason=attack.error.value if attack.error else "Attack failed",
                        error=attack.error,
                    )
                self._enter(MatchPhase.RESOLVING_TURN)
                decision = self._resolve_turn(attack)
            except Exception as exc:
                span.record_exception(exc)
                span.set_attribute("error", True)
                logger.exception("attack_failed", extra={"pattern_id": plan.pattern.id, "side": plan.side.value})
                self._settle()
                return self._failure(AttackError.ATTACK_FAILED)

            self._settle()
            result = AttackResult(
                success=True,
                shots=attack.shots,
                turn_ended=decision.end_turn,
                can_act_again=decision.can_act_again,
                is_game_over=self.board.is_game_over,
                winner=self.board.winner,
                reason=decision.reason,
            )
            set_span_attributes(
                span, "attack", hit=result.hit, turn_ended=result.turn_ended, game_over=result.is_game_over
            )
            record_match_metric(
                "salvo_engine_attacks",
                1,
                {
                    "pattern": plan.pattern.id,
                    "side": plan.side.value,
                    "result": "hit" if result.hit else "miss",
                },
            )
            logger.info(
                "attack_resolved",
                extra={
                    "pattern_id": plan.pattern.id,
                    "side": plan.side.value,
                    "executed": len(result.executed_shots),
                    "hit": result.hit,
                    "ship_destroyed": result.ship_destroyed,
                    "turn_ended": result.turn_ended,
                    "reason": result.reason,
                    "current_turn": self.board.current_turn.value,
                },
            )
            return result

    def plan_and_attack(
        self,
        x: int,
        y: int,
        side: Side = Side.PLAYER,
        pattern: ShotPattern = SINGLE_SHOT,
    ) -> AttackResult:
        """Plan and immediately confirm; a rejected plan comes back as a failed attack."""
        plan = self.plan_shot(x, y, pattern, side)
        if not plan.ready:
            return self._failure(plan.error or PlanError.INVALID_PLAN)
        return self.confirm_attack()

    def cancel_plan(self) -> bool:
        """Drop the pending plan. Returns False when there was nothing to cancel."""
        if self._reject_if_busy("cancel_plan"):
            return False
        if self._phase is not MatchPhase.PLANNED:
            return False
        self._pending = None
        self._enter(MatchPhase.PLANNING)
        logger.debug("plan_cancelled")
        return True

    def reset(self) -> bool:
        """Return to ``IDLE`` and clear the board."""
        if self._reject_if_busy("reset"):
            return False
        self.board.reset()
        self._clear_round_state()
        self._enter(MatchPhase.IDLE)
        logger.info("match_reset")
        return True

    def set_ruleset(self, ruleset: RuleSet) -> bool:
        """Swap the active policy; the board is left untouched."""
        if self._reject_if_busy("set_ruleset"):
            return False
        previous = self._ruleset
        self._ruleset = ruleset
        logger.info("ruleset_changed", extra={"previous": previous.name, "current": ruleset.name})
        return True

    # ---------------------------------------------------------------- queries

    @property
    def phase(self) -> MatchPhase:
        return self._phase

    @property
    def ruleset(self) -> RuleSet:
        return self._ruleset

    @property
    def pending_plan(self) -> PendingPlan | None:
        return self._pending

    @property
    def last_attack_result(self) -> PatternResult | None:
        return self._last_attack

    @property
    def last_turn_decision(self) -> TurnDecision | None:
        return self._last_decision

    @property
    def last_plan_error(self) -> PlanError | None:
        return self._last_plan_error

    @property
    def board_dimensions(self) -> BoardDimensions:
        return BoardDimensions(self.board.width, self.board.height)

    @property
    def current_turn(self) -> Side:
        return self.board.current_turn

    @property
    def winner(self) -> Side | None:
        return self.board.winner

    def is_match_over(self) -> bool:
        return self.board.is_game_over

    def is_cell_shot(self, x: int, y: int, side: Side) -> bool:
        return self.board.is_cell_shot(x, y, side)

    def is_valid_position(self, x: int, y: int) -> bool:
        return self.board.is_valid_position(x, y)

    def has_ship_at(self, x: int, y: int, owner: Side) -> bool:
        return self.board.has_ship_at(x, y, owner)

    def get_shot_at(self, x: int, y: int, side: Side) -> Shot | None:
        return self.board.get_shot_at(x, y, side)

    def snapshot(self) -> BoardSnapshot:
        return self.board.get_snapshot()

    def own_board(self, side: Side) -> BoardView:
        """``side``'s ships and items with the opponent's shots on top."""
        return own_board(self.board.get_snapshot(), side)

    def opponent_board(self, side: Side) -> BoardView:
        """What ``side`` knows about the opposing board: its own shots."""
        return opponent_board(self.board.get_snapshot(), side)

    # ---------------------------------------------------------------- helpers

    def _validate_plan(self, center_x: int, center_y: int, pattern: ShotPattern, side: Side) -> PlanError | None:
        if self._phase in TRANSIENT_PHASES:
            return PlanError.INVALID_PLAN
        if self._phase is MatchPhase.IDLE:
            return PlanError.NOT_INITIALIZED
        if self._phase is MatchPhase.GAME_OVER:
            return PlanError.INVALID_PLAN
        if not self.board.is_valid_position(center_x, center_y):
            return PlanError.INVALID_POSITION
        if self.config.enforce_turn_order and side is not self.board.current_turn:
            return PlanError.OUT_OF_TURN
        if pattern.is_single_cell:
            target = pattern.targets(center_x, center_y)[0]
            if not self.board.is_valid_position(target.x, target.y):
                return PlanError.INVALID_POSITION
            if self.board.is_cell_shot(target.x, target.y, side):
                return PlanError.CELL_ALREADY_SHOT
        return None

    def _resolve_turn(self, attack: PatternResult) -> TurnDecision:
        decision = self._ruleset.decide_turn(attack, self.board.get_snapshot())
        if decision.toggle_side:
            self.board.toggle_side()

        game_over = self._ruleset.check_game_over(self.board.get_snapshot())
        if game_over.is_over:
            self.board.set_game_over(game_over.winner)
            # Re-read so the rule set's game-over short-circuit is what callers see.
            decision = self._ruleset.decide_turn(attack, self.board.get_snapshot())

        self._last_decision = decision
        return decision

    def _settle(self) -> None:
        self._enter(MatchPhase.GAME_OVER if self.board.is_game_over else MatchPhase.PLANNING)

    def _enter(self, phase: MatchPhase) -> None:
        previous = self._phase
        if phase is previous:
            return
        if phase not in _TRANSITIONS[previous]:
            raise RuntimeError(f"Illegal match transition {previous.value} -> {phase.value}.")
        self._phase = phase
        logger.debug("match_phase_changed", extra={"previous": previous.value, "current": phase.value})
        self.events.publish(PhaseChanged(previous=previous, current=phase))

    def _reject_if_busy(self, operation: str) -> bool:
        if self._phase in TRANSIENT_PHASES:
            logger.warning("call_rejected_during_resolution", extra={"operation": operation, "phase": self._phase.value})
            return True
        return False

    def _clear_round_state(self) -> None:
        self._pending = None
        self._last_attack = None
        self._last_decision = None
        self._last_plan_error = None

    def _failure(self, error: AttackError | ShotError | PlanError) -> AttackResult:
        return AttackResult(
            success=False,
            is_game_over=self.board.is_game_over,
            winner=self.board.winner,
            reason=error.value,
            error=error,
        )
