"""Match configuration."""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Any, Dict, Literal

from pydantic import BaseModel, Field

MIN_BOARD_SIZE = 3
MAX_BOARD_SIZE = 30
DEFAULT_BOARD_SIZE = 5


class MatchConfig(BaseModel):
    """Board dimensions and rule selection for one match."""

    board_width: int = Field(default=DEFAULT_BOARD_SIZE, ge=MIN_BOARD_SIZE, le=MAX_BOARD_SIZE)
    board_height: int = Field(default=DEFAULT_BOARD_SIZE, ge=MIN_BOARD_SIZE, le=MAX_BOARD_SIZE)
    ruleset: Literal["classic", "alternating"] = "classic"
    enforce_turn_order: bool = False

    @classmethod
    def from_env(cls, **overrides: Any) -> "MatchConfig":
        """Construct config from `SALVO_*` env vars; explicit overrides win."""

        data: Dict[str, Any] = {}
        env_fields = {
            "board_width": "SALVO_BOARD_WIDTH",
            "board_height": "SALVO_BOARD_HEIGHT",
            "ruleset": "SALVO_RULESET",
        }
        for field, env_name in env_fields.items():
            value = os.getenv(env_name)
            if value is not None and value.strip():
                data[field] = value.strip()

        enforce = os.getenv("SALVO_ENFORCE_TURN_ORDER")
        if enforce is not None:
            data["enforce_turn_order"] = enforce.strip().lower() in {"1", "true", "yes", "on"}

        data.update(overrides)
        return cls(**data)


@lru_cache(maxsize=1)
def load_match_config() -> MatchConfig:
    """Load and cache match config from the environment."""

    return MatchConfig.from_env()
