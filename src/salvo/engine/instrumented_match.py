"""Match coordinator with match-level telemetry hooks."""

from __future__ import annotations

import time
from typing import Sequence

from salvo.engine.match import TRANSIENT_PHASES, AttackResult, Match, PlanResult
from salvo.engine.models import Item, Ship, ShotPattern, Side
from salvo.engine.patterns import SINGLE_SHOT
from salvo.telemetry import get_logger, get_tracer, record_match_metric


class InstrumentedMatch(Match):
    """Wraps Match with a span per match, per-attack spans, and counters."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._logger = get_logger("salvo.engine")
        self._tracer = get_tracer("salvo.engine")
        self._match_span_cm = None
        self._match_span = None
        self._match_start_time: float | None = None
        self._match_id_counter = 0

    def initialize(
        self,
        player_ships: Sequence[Ship],
        enemy_ships: Sequence[Ship],
        starting_side: Side = Side.PLAYER,
        player_items: Sequence[Item] = (),
        enemy_items: Sequence[Item] = (),
    ) -> None:
        if self.phase in TRANSIENT_PHASES:
            super().initialize(player_ships, enemy_ships, starting_side, player_items, enemy_items)
            return
        try:
            super().initialize(player_ships, enemy_ships, starting_side, player_items, enemy_items)
        except ValueError as exc:
            # The running match, if any, keeps its span.
            record_match_metric("salvo_invalid_placements_total", 1, {"starting_side": starting_side.value})
            with self._tracer.start_as_current_span("salvo.engine.setup_rejected") as span:
                span.record_exception(exc)
                span.set_attribute("error", True)
            self._logger.error("Match setup rejected: %s", exc)
            raise
        self._start_match_span()
        self._match_span.set_attribute("ruleset", self.ruleset.name)
        self._match_span.set_attribute("starting_side", starting_side.value)
        record_match_metric(
            "salvo_match_started_total",
            1,
            {"ruleset": self.ruleset.name, "starting_side": starting_side.value},
        )
        self._logger.info(
            "Match %d started: %d vs %d ships, ruleset=%s",
            self._match_id_counter,
            len(player_ships),
            len(enemy_ships),
            self.ruleset.name,
        )

    def plan_shot(
        self,
        center_x: int,
        center_y: int,
        pattern: ShotPattern = SINGLE_SHOT,
        side: Side = Side.PLAYER,
    ) -> PlanResult:
        result = super().plan_shot(center_x, center_y, pattern, side)
        if not result.ready and result.error is not None:
            record_match_metric(
                "salvo_plans_rejected_total",
                1,
                {"side": side.value, "reason": result.error.name},
            )
        return result

    def confirm_attack(self) -> AttackResult:
        pending = self.pending_plan
        with self._tracer.start_as_current_span("salvo.engine.attack") as span:
            span.set_attribute("match.id", self._match_id_counter)
            if pending is not None:
                span.set_attribute("pattern", pending.pattern.id)
                span.set_attribute("side", pending.side.value)

            result = super().confirm_attack()

            span.set_attribute("success", result.success)
            if not result.success:
                span.set_attribute("error", result.error.name if result.error else "unknown")
                record_match_metric(
                    "salvo_attacks_failed_total",
                    1,
                    {"reason": result.error.name if result.error else "unknown"},
                )
                self._logger.warning("Attack rejected: %s", result.reason)
                return result

            side = pending.side.value
            executed = result.executed_shots
            span.set_attribute("executed", len(executed))
            span.set_attribute("hit", result.hit)
            span.set_attribute("turn_ended", result.turn_ended)

            record_match_metric("salvo_attacks_total", 1, {"side": side, "pattern": pending.pattern.id})
            record_match_metric("salvo_shots_total", len(executed), {"side": side})
            for shot in executed:
                outcome = "hit" if shot.hit else ("collected" if shot.collected else "miss")
                record_match_metric("salvo_shots_by_result_total", 1, {"side": side, "result": outcome})
                if shot.collected:
                    record_match_metric("salvo_items_collected_total", 1, {"side": side})

            self._logger.info(
                "Attack side=%s pattern=%s executed=%d hit=%s reason=%s",
                side,
                pending.pattern.id,
                len(executed),
                result.hit,
                result.reason,
            )

            if result.is_game_over:
                span.set_attribute("winner", result.winner.value if result.winner else "none")
                self._finish_match()

            return result

    def reset(self) -> bool:
        reset = super().reset()
        if reset:
            self._close_match_span()
        return reset

    def _start_match_span(self) -> None:
        self._close_match_span()
        self._match_start_time = time.perf_counter()
        self._match_id_counter += 1
        self._match_span_cm = self._tracer.start_as_current_span("salvo.engine.match")
        self._match_span = self._match_span_cm.__enter__()
        self._match_span.set_attribute("match.id", self._match_id_counter)

    def _finish_match(self) -> None:
        duration = (time.perf_counter() - self._match_start_time) if self._match_start_time else 0.0
        total_shots = self.board.shot_count
        winner = self.winner.value if self.winner else "none"

        record_match_metric("salvo_match_completed_total", 1, {"winner": winner})
        record_match_metric("salvo_match_duration_seconds", duration, {"winner": winner})

        with self._tracer.start_as_current_span("salvo.engine.match_complete") as span:
            span.set_attribute("match.id", self._match_id_counter)
            span.set_attribute("winner", winner)
            span.set_attribute("shots", total_shots)
            span.set_attribute("duration_ms", duration * 1000)

        if self._match_span is not None:
            self._match_span.set_attribute("winner", winner)
            self._match_span.set_attribute("shots", total_shots)
            self._match_span.set_attribute("duration_ms", duration * 1000)

        self._logger.info("Match finished. Winner=%s shots=%d duration_s=%.3f", winner, total_shots, duration)
        self._close_match_span()

    def _close_match_span(self) -> None:
        if self._match_span_cm is not None:
            self._match_span_cm.__exit__(None, None, None)
            self._match_span_cm = None
            self._match_span = None
