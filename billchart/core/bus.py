"""
core/bus.py
-----------
EventBus: how an estimation session reports to its host page.

Two topics, each with a fixed payload type:

* ``STATE``    — :class:`~billchart.core.models.PipelineState`, every time
  the current request changes stage.
* ``ESTIMATE`` — the committed :class:`~billchart.core.models.ConsumptionEstimate`.

The bus remembers the last payload per topic, so a view attached after a
result arrived can ask for it with ``subscribe(..., replay=True)``.
Handlers run in the publishing thread; one failing handler is logged and
the others still receive the event.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional

from billchart.core.models import ConsumptionEstimate, PipelineState

logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]

STATE = "state"
ESTIMATE = "estimate"

# Payload type each topic carries
TOPICS: dict[str, type] = {
    STATE: PipelineState,
    ESTIMATE: ConsumptionEstimate,
}


class EventBus:
    """Typed state / estimate bus for one session."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._handlers: dict[str, list[Handler]] = {topic: [] for topic in TOPICS}
        self._last: dict[str, Any] = {}

    def subscribe(self, topic: str, handler: Handler, replay: bool = False) -> Callable[[], None]:
        """Attach *handler* to *topic* and return a callable that detaches it.

        With *replay*, the last payload already published on *topic* (if any)
        is delivered to *handler* straight away.
        """
        _check_topic(topic)
        with self._lock:
            self._handlers[topic].append(handler)
            last = self._last.get(topic) if replay else None
        if last is not None:
            self._deliver(topic, handler, last)
        return lambda: self.unsubscribe(topic, handler)

    def unsubscribe(self, topic: str, handler: Handler) -> None:
        _check_topic(topic)
        with self._lock:
            if handler in self._handlers[topic]:
                self._handlers[topic].remove(handler)

    def publish(self, topic: str, payload: Any) -> None:
        """Deliver *payload* to every handler of *topic*.

        Raises:
            KeyError: If *topic* is not a session topic.
            TypeError: If *payload* is not the topic's payload type.
        """
        _check_topic(topic)
        expected = TOPICS[topic]
        if not isinstance(payload, expected):
            raise TypeError(
                f"Topic '{topic}' carries {expected.__name__}, got {type(payload).__name__}"
            )
        with self._lock:
            self._last[topic] = payload
            handlers = list(self._handlers[topic])
        for handler in handlers:
            self._deliver(topic, handler, payload)

    def last(self, topic: str) -> Optional[Any]:
        """The most recent payload on *topic*, or ``None``."""
        _check_topic(topic)
        with self._lock:
            return self._last.get(topic)

    @staticmethod
    def _deliver(topic: str, handler: Handler, payload: Any) -> None:
        try:
            handler(payload)
        except Exception:
            logger.exception("EventBus: '%s' handler %r failed", topic, handler)


def _check_topic(topic: str) -> None:
    if topic not in TOPICS:
        raise KeyError(f"Unknown topic '{topic}'. Topics: {sorted(TOPICS)}")
