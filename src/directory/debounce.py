"""Quiescence gate for keyword input."""
import logging
import threading
from typing import Any, Callable, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_WAIT_SECONDS = 0.3


class Debouncer:
    """Call ``callback`` only once input has been stable for ``wait_seconds``.

    Every call cancels the pending timer and starts a new one with the latest
    arguments, so only the last value of a burst of keystrokes is committed.

    Args:
        wait_seconds: Quiescence window.
        callback: Invoked with the arguments of the last call.
        timer_factory: ``threading.Timer``-compatible constructor; tests pass
            a manual timer so nothing depends on wall-clock sleeps.
    """

    def __init__(
        self,
        wait_seconds: float,
        callback: Callable[..., Any],
        timer_factory: Callable[..., Any] = threading.Timer,
    ):
        if wait_seconds < 0:
            raise ValueError("wait_seconds must be non-negative")
        self.wait_seconds = wait_seconds
        self._callback = callback
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._timer: Optional[Any] = None
        self._pending_args: Optional[Tuple[Any, ...]] = None
        self._generation = 0

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._pending_args is not None

    def __call__(self, *args: Any) -> None:
        with self._lock:
            self._cancel_locked()
            self._generation += 1
            generation = self._generation
            self._pending_args = args
            timer = self._timer_factory(self.wait_seconds, self._fire, args=(generation,))
            if hasattr(timer, "daemon"):
                timer.daemon = True
            self._timer = timer
        timer.start()

    def _fire(self, generation: int) -> None:
        with self._lock:
            # A timer that was cancelled after it had already started running
            if generation != self._generation or self._pending_args is None:
                return
            args = self._pending_args
            self._pending_args = None
            self._timer = None
        logger.debug(f"Debounced call committed after {self.wait_seconds:.3f}s quiet period")
        self._callback(*args)

    def flush(self) -> bool:
        """Fire the pending call now. Returns False when nothing was pending."""
        with self._lock:
            if self._pending_args is None:
                return False
            generation = self._generation
            if self._timer is not None:
                self._timer.cancel()
        self._fire(generation)
        return True

    def cancel(self) -> None:
        with self._lock:
            self._cancel_locked()

    def _cancel_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._pending_args = None
