"""Pluggable turn and win policies.

A rule set is consulted after every resolved attack. It never mutates
anything: it reads the aggregate attack result and an immutable board
snapshot and returns a decision for the coordinator to apply.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from .board import BoardSnapshot
from .models import Side
from .resolver import PatternResult

GAME_OVER_REASON = "Game over"


@dataclass(frozen=True)
class TurnDecision:
    end_turn: bool
    toggle_side: bool
    can_act_again: bool
    reason: str


@dataclass(frozen=True)
class GameOverDecision:
    is_over: bool
    winner: Side | None = None


GAME_OVER_TURN = TurnDecision(end_turn=True, toggle_side=False, can_act_again=False, reason=GAME_OVER_REASON)
NOT_OVER = GameOverDecision(is_over=False)


@runtime_checkable
class RuleSet(Protocol):
    """Turn-continuation and win-detection policy.

    Every implementation must return :data:`GAME_OVER_TURN` from
    ``decide_turn`` when the snapshot already reports game over.
    """

    name: str
    description: str

    def decide_turn(self, attack: PatternResult, snapshot: BoardSnapshot) -> TurnDecision:
        ...

    def check_game_over(self, snapshot: BoardSnapshot) -> GameOverDecision:
        ...


def fleet_destroyed(snapshot: BoardSnapshot) -> GameOverDecision:
    """The side whose whole fleet is gone loses; its opponent wins."""
    for owner in Side:
        if snapshot.all_ships_destroyed[owner]:
            return GameOverDecision(is_over=True, winner=owner.opponent())
    return NOT_OVER


class ClassicRuleSet:
    """Continue on hit: a hit that destroys nothing lets the same side fire again."""

    name = "classic"
    description = "Traditional battleship rules with hit continuation"

    def decide_turn(self, attack: PatternResult, snapshot: BoardSnapshot) -> TurnDecision:
        if snapshot.is_game_over:
            return GAME_OVER_TURN
        if not attack.any_hit:
            return TurnDecision(end_turn=True, toggle_side=True, can_act_again=False, reason="Miss - turn ends")
        if attack.any_ship_destroyed:
            return TurnDecision(
                end_turn=True, toggle_side=True, can_act_again=False, reason="Ship destroyed - turn ends"
            )
        return TurnDecision(end_turn=False, toggle_side=False, can_act_again=True, reason="Hit - shoot again")

    def check_game_over(self, snapshot: BoardSnapshot) -> GameOverDecision:
        return fleet_destroyed(snapshot)

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class AlternatingTurnsRuleSet:
    """Every resolved attack passes the turn, hit or miss."""

    name = "alternating"
    description = "Every shot ends the turn, no hit continuation"

    def decide_turn(self, attack: PatternResult, snapshot: BoardSnapshot) -> TurnDecision:
        if snapshot.is_game_over:
            return GAME_OVER_TURN
        reason = "Hit - turn ends" if attack.any_hit else "Miss - turn ends"
        return TurnDecision(end_turn=True, toggle_side=True, can_act_again=False, reason=reason)

    def check_game_over(self, snapshot: BoardSnapshot) -> GameOverDecision:
        return fleet_destroyed(snapshot)

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


RULESETS: dict[str, type] = {
    ClassicRuleSet.name: ClassicRuleSet,
    AlternatingTurnsRuleSet.name: AlternatingTurnsRuleSet,
}

DefaultRuleSet = ClassicRuleSet


def get_ruleset(name: str) -> RuleSet:
    """Instantiate the rule set registered under ``name``."""
    try:
        return RULESETS[name]()
    except KeyError:
        raise ValueError(f"Unknown rule set {name!r}; expected one of {sorted(RULESETS)}.") from None
