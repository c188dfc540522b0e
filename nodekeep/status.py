"""
Operation status reporting.

StatusReporter is a small observable state machine:

    idle -> pending -> success -> (after success_interval) idle
                    -> error   -> (after error_interval)   idle

The node store drives it around create, archive and refresh. Subscribers
(a UI, a progress line in the CLI, a test) receive every transition. The
reporter never touches the ledger and never retries: after ``error`` the
caller decides what to do.
"""

from __future__ import annotations

import enum
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, Optional, Protocol

from .errors import WriteRejected

logger = logging.getLogger(__name__)

# Display intervals used by the web client
DEFAULT_SUCCESS_INTERVAL = 2.0
DEFAULT_ERROR_INTERVAL = 3.0


class StatusState(str, enum.Enum):
    IDLE = "idle"
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class StatusEvent:
    """One state transition."""
    state: StatusState
    message: str = ""
    operation: str = ""


class _Cancellable(Protocol):
    def cancel(self) -> None: ...


Scheduler = Callable[[float, Callable[[], None]], _Cancellable]
Subscriber = Callable[[StatusEvent], None]


def _thread_timer(delay: float, fn: Callable[[], None]) -> threading.Timer:
    timer = threading.Timer(delay, fn)
    timer.daemon = True
    timer.start()
    return timer


def describe_error(operation: str, exc: BaseException) -> str:
    """User-facing message for a failed operation."""
    if isinstance(exc, WriteRejected):
        return "Transaction rejected by user"
    reason = str(exc) or type(exc).__name__
    return f"{operation.capitalize()} failed: {reason}"


class StatusReporter:
    """
    Observable pending/success/error state with timed return to idle.

    Args:
        success_interval: Seconds to show success before returning to idle
        error_interval: Seconds to show an error before returning to idle
        scheduler: ``scheduler(delay, fn)`` runs fn after delay and returns
            an object with ``cancel()``. Defaults to a daemon threading.Timer.
    """

    def __init__(
        self,
        *,
        success_interval: float = DEFAULT_SUCCESS_INTERVAL,
        error_interval: float = DEFAULT_ERROR_INTERVAL,
        scheduler: Optional[Scheduler] = None,
    ):
        self._success_interval = success_interval
        self._error_interval = error_interval
        self._schedule = scheduler or _thread_timer
        self._lock = threading.RLock()
        self._subscribers: list[Subscriber] = []
        self._current = StatusEvent(StatusState.IDLE)
        self._reset_handle: Optional[_Cancellable] = None
        self._generation = 0

    @property
    def state(self) -> StatusState:
        return self._current.state

    @property
    def message(self) -> str:
        return self._current.message

    @property
    def current(self) -> StatusEvent:
        return self._current

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback for transitions. Returns an unsubscribe function."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def _emit(self, event: StatusEvent) -> None:
        with self._lock:
            self._current = event
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(event)
            except Exception as e:
                logger.warning("Status subscriber %r failed: %s", callback, e)

    def _cancel_reset(self) -> None:
        if self._reset_handle is not None:
            self._reset_handle.cancel()
            self._reset_handle = None

    def _schedule_reset(self, delay: float, generation: int) -> None:
        def reset() -> None:
            with self._lock:
                # A newer operation owns the display now
                if generation != self._generation:
                    return
                self._reset_handle = None
            self._emit(StatusEvent(StatusState.IDLE))

        self._reset_handle = self._schedule(delay, reset)

    def start(self, operation: str, message: str) -> None:
        """Enter pending."""
        with self._lock:
            self._cancel_reset()
            self._generation += 1
        self._emit(StatusEvent(StatusState.PENDING, message, operation))

    def _finish(self, event: StatusEvent, delay: float) -> None:
        with self._lock:
            generation = self._generation
        self._emit(event)
        with self._lock:
            # Skip the reset if another operation started meanwhile
            if generation == self._generation:
                self._schedule_reset(delay, generation)

    def succeed(self, operation: str, message: str) -> None:
        """Enter success and schedule the return to idle."""
        self._finish(StatusEvent(StatusState.SUCCESS, message, operation), self._success_interval)

    def fail(self, operation: str, message: str) -> None:
        """Enter error and schedule the return to idle."""
        self._finish(StatusEvent(StatusState.ERROR, message, operation), self._error_interval)

    def reset(self) -> None:
        """Return to idle immediately."""
        with self._lock:
            self._cancel_reset()
            self._generation += 1
        self._emit(StatusEvent(StatusState.IDLE))

    @contextmanager
    def track(self, operation: str, pending: str, success: str) -> Iterator[None]:
        """
        Report one operation: pending on entry, success or error on exit.

        Exceptions are reported and re-raised.
        """
        self.start(operation, pending)
        try:
            yield
        except BaseException as e:
            self.fail(operation, describe_error(operation, e))
            raise
        self.succeed(operation, success)
