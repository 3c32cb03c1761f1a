"""
Study Twin EventBus: async in-process publish/subscribe.

Purpose
-------
Decouple the progression core from whatever reacts to its state changes
(level-up toasts, analytics, achievement checks). Services publish after
their transaction commits; listeners never see uncommitted state.

Responsibilities
----------------
- Register/unregister listeners (sync or async callables)
- Publish events to all matching listeners (exact + wildcard)
- Error isolation: a failing listener is logged and never reaches the
  publisher or blocks other listeners

Design Decisions
----------------
- **Instance-based**: each application context (and each test) owns a bus
- **Sequential delivery**: listeners run in subscription order and are
  awaited, so a publish has finished all its work when it returns
- **Wildcards**: ``"progression.*"`` matches one segment, ``"*"`` matches
  every event

Dependencies
------------
- src.core.logging.logger (structured logging)
"""

from __future__ import annotations

import inspect
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from src.core.logging.logger import get_logger

logger = get_logger(__name__)

EventPayload = Dict[str, Any]
CallbackType = Callable[[EventPayload], Union[Awaitable[Any], Any]]


@dataclass(frozen=True)
class EventListener:
    event_name: str
    callback: CallbackType
    identifier: str

    @property
    def name(self) -> str:
        return getattr(self.callback, "__qualname__", None) or repr(self.callback)


def matches(pattern: str, event_name: str) -> bool:
    """
    Check whether a subscription pattern matches an event name.

    >>> matches("progression.*", "progression.leveled_up")
    True
    >>> matches("progression.*", "study.session_recorded")
    False
    """
    if pattern == "*" or pattern == event_name:
        return True
    pattern_parts = pattern.split(".")
    event_parts = event_name.split(".")
    if len(pattern_parts) != len(event_parts):
        return False
    return all(p == "*" or p == e for p, e in zip(pattern_parts, event_parts))


class EventBus:
    """
    Async pub/sub bus.

    Examples
    --------
    >>> bus = EventBus()
    >>> bus.subscribe("progression.leveled_up", on_level_up)
    >>> await bus.publish("progression.leveled_up", {"user_id": "u1", "new_level": 2})
    """

    def __init__(self) -> None:
        self._listeners: List[EventListener] = []
        self._published = 0
        self._listener_errors = 0

    @staticmethod
    def _validate_callback_signature(callback: CallbackType) -> None:
        try:
            sig = inspect.signature(callback)
        except (TypeError, ValueError):
            return

        required = [
            p
            for p in sig.parameters.values()
            if p.default is inspect.Parameter.empty
            and p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD)
        ]
        if len(required) != 1:
            raise ValueError(
                "Event listener must accept exactly 1 positional parameter (the payload), "
                f"got {len(required)} for '{getattr(callback, '__qualname__', callback)}'"
            )

    # ------------------------------------------------------------------ #
    # Subscription API
    # ------------------------------------------------------------------ #

    def subscribe(
        self,
        event_name: str,
        callback: CallbackType,
        *,
        identifier: Optional[str] = None,
    ) -> str:
        """
        Subscribe ``callback`` to ``event_name`` (or a wildcard pattern).

        Returns the listener identifier for `unsubscribe`.

        Raises
        ------
        ValueError
            If the callback does not take exactly one payload argument.
        """
        self._validate_callback_signature(callback)
        listener = EventListener(
            event_name=event_name,
            callback=callback,
            identifier=identifier or uuid.uuid4().hex,
        )
        self._listeners.append(listener)
        logger.debug(
            "EventBus: subscribed listener",
            extra={"event_name": event_name, "listener_id": listener.identifier},
        )
        return listener.identifier

    def unsubscribe(self, event_name: str, identifier: str) -> bool:
        before = len(self._listeners)
        self._listeners = [
            l
            for l in self._listeners
            if not (l.event_name == event_name and l.identifier == identifier)
        ]
        return len(self._listeners) < before

    def clear(self) -> None:
        count = len(self._listeners)
        self._listeners.clear()
        logger.debug("EventBus: cleared all listeners", extra={"previous_listener_count": count})

    def listener_count(self, event_name: Optional[str] = None) -> int:
        if event_name is None:
            return len(self._listeners)
        return sum(1 for l in self._listeners if matches(l.event_name, event_name))

    # ------------------------------------------------------------------ #
    # Publish API
    # ------------------------------------------------------------------ #

    async def publish(self, event_name: str, data: EventPayload) -> List[Any]:
        """
        Deliver ``data`` to every listener matching ``event_name``.

        Returns the results of the listeners that succeeded, in order.
        """
        self._published += 1
        results: List[Any] = []

        for listener in [l for l in self._listeners if matches(l.event_name, event_name)]:
            try:
                result = listener.callback(data)
                if inspect.isawaitable(result):
                    result = await result
                results.append(result)
            except Exception as exc:
                self._listener_errors += 1
                logger.error(
                    "EventBus: listener failed",
                    extra={
                        "event_name": event_name,
                        "listener": listener.name,
                        "error_type": type(exc).__name__,
                    },
                    exc_info=True,
                )

        logger.debug(
            "EventBus: published event",
            extra={"event_name": event_name, "delivered": len(results)},
        )
        return results

    def get_metrics(self) -> Dict[str, int]:
        return {
            "listeners": len(self._listeners),
            "events_published": self._published,
            "listener_errors": self._listener_errors,
        }
