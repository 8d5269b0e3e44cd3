"""Typed observer events and the in-process bus that delivers them.

Handlers run synchronously on the publisher's call stack, in subscription
order, so consumers see events in the exact causal order they were emitted.
A failing handler cannot interrupt the engine mutation that published the
event.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

from .models import Shot, Side

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .board import BoardSnapshot
    from .match import MatchPhase

logger = logging.getLogger(__name__)

TEvent = TypeVar("TEvent")
EventHandler = Callable[[Any], None]


@dataclass(frozen=True)
class ShotFired:
    """A cell was resolved; ``side`` is the shooter."""

    shot: Shot
    side: Side


@dataclass(frozen=True)
class StateChanged:
    snapshot: BoardSnapshot


@dataclass(frozen=True)
class TurnChanged:
    """The turn passed to ``side``."""

    side: Side


@dataclass(frozen=True)
class GameEnded:
    winner: Side | None


@dataclass(frozen=True)
class MatchStarted:
    snapshot: BoardSnapshot


@dataclass(frozen=True)
class PhaseChanged:
    previous: MatchPhase
    current: MatchPhase


@dataclass(frozen=True)
class Subscription:
    """Opaque subscription token."""

    id: int


class EventBus:
    """Simple synchronous pub/sub keyed by event type."""

    def __init__(self) -> None:
        self._next_id = 1
        self._subscriptions: dict[int, tuple[type, EventHandler]] = {}

    def subscribe(self, event_type: type[TEvent], handler: Callable[[TEvent], None]) -> Subscription:
        """Subscribe ``handler`` to events of ``event_type`` (and its subclasses)."""
        sub_id = self._next_id
        self._next_id += 1
        self._subscriptions[sub_id] = (event_type, handler)
        return Subscription(sub_id)

    def unsubscribe(self, subscription: Subscription) -> None:
        """Remove a subscription if present."""
        self._subscriptions.pop(subscription.id, None)

    def publish(self, event: object) -> int:
        """Publish one event and return the number of invoked handlers.

        A handler that raises is logged and skipped; the remaining handlers
        still run and the exception never reaches the publisher.
        """
        invoked = 0
        failed = 0
        for subscribed_type, handler in tuple(self._subscriptions.values()):
            if not isinstance(event, subscribed_type):
                continue
            invoked += 1
            try:
                handler(event)
            except Exception:
                failed += 1
                logger.exception(
                    "event_handler_failed",
                    extra={"event": type(event).__name__, "handler": getattr(handler, "__qualname__", repr(handler))},
                )
        logger.debug("event_published", extra={"event": type(event).__name__, "handlers": invoked, "failed": failed})
        return invoked

    def __len__(self) -> int:
        return len(self._subscriptions)
