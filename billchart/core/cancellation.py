"""
core/cancellation.py
--------------------
Cooperative cancellation for pipeline requests.

A :class:`RequestGate` hands out one :class:`CancellationToken` per request.
Starting a new request cancels the previous token, so a stale run that is
still in flight returns early at its next stage boundary and its output is
never committed.
"""

from __future__ import annotations

import logging
import threading

from billchart.core.exceptions import RequestCancelledError

logger = logging.getLogger(__name__)


class CancellationToken:
    """Flag checked by the pipeline between stages."""

    def __init__(self, generation: int = 0) -> None:
        self.generation = generation
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, stage: str = "") -> None:
        """Raise :class:`RequestCancelledError` if this token was cancelled."""
        if self._event.is_set():
            where = f" before {stage}" if stage else ""
            raise RequestCancelledError(f"Request {self.generation} superseded{where}")

    def __repr__(self) -> str:
        return f"CancellationToken(generation={self.generation}, cancelled={self.cancelled})"


class RequestGate:
    """Generation counter: only the newest request may commit results."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._generation = 0
        self._current: CancellationToken | None = None

    def begin(self) -> CancellationToken:
        """Start a new request, cancelling whichever one was in flight."""
        with self._lock:
            self._generation += 1
            previous = self._current
            token = CancellationToken(self._generation)
            self._current = token
        if previous is not None and not previous.cancelled:
            previous.cancel()
            logger.debug("Request %d superseded by %d", previous.generation, token.generation)
        return token

    def is_current(self, token: CancellationToken) -> bool:
        with self._lock:
            return token is self._current and not token.cancelled

    def cancel_all(self) -> None:
        with self._lock:
            current = self._current
            self._current = None
        if current is not None:
            current.cancel()

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation
