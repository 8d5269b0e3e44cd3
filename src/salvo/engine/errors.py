"""Error values returned by the engine and the few exceptions it raises.

In-play failures are never raised: they come back as one of the enum
members below. Exceptions are reserved for setup and programmer errors.
"""

from __future__ import annotations

from enum import Enum


class ShotError(Enum):
    """Errors produced by the shot-execution layer."""

    CELL_ALREADY_SHOT = "Cell already shot"
    GAME_ALREADY_OVER = "Game is already over"


class PlanError(Enum):
    """Errors produced when validating or storing a planned shot."""

    INVALID_PLAN = "Invalid plan"
    INVALID_POSITION = "Invalid position"
    CELL_ALREADY_SHOT = "Cell already shot"
    OUT_OF_TURN = "It is not this side's turn"
    NOT_INITIALIZED = "Match has not been initialized"


class AttackError(Enum):
    """Errors produced when confirming or executing an attack."""

    NO_ATTACK_PLANNED = "No attack planned. Call plan_shot() first."
    ATTACK_FAILED = "Attack failed"


class InvalidPlacementError(ValueError):
    """Ship or item placements handed to ``initialize`` are inconsistent."""


class BoardNotInitializedError(RuntimeError):
    """A board mutator was called before ``initialize``."""
