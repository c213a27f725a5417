"""Consumer-side capture policy: bounded retry after errors, suspend/resume around sleep.

The controller never retries on its own. The supervisor listens to its
errors and schedules at most one delayed start() at a time, backing off
between consecutive failures and giving up after a bounded number of them.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Callable, Optional

from audio_spectrum.capture.controller import CaptureController, CaptureState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Delays between automatic restarts after failed starts."""

    initial_delay: float = 1.0
    backoff: float = 2.0
    max_delay: float = 30.0
    # Consecutive failed retries before giving up (None = never give up)
    max_attempts: Optional[int] = 5

    def delay_for(self, attempt: int) -> float:
        """Delay before retry number `attempt` (1-based)."""
        return min(self.initial_delay * self.backoff ** max(0, attempt - 1), self.max_delay)


class CaptureSupervisor:
    """Restarts a capture controller after failures.

    - Each error schedules one retry; a retry is never scheduled while
      another is pending.
    - Consecutive failures back off per `RetryPolicy`; after
      `max_attempts` of them `on_give_up` is called and retries stop.
    - Reaching ACTIVE resets the failure count.
    - suspend()/resume() bracket system sleep or session switches: capture
      is stopped and restarted afterwards if it was wanted.

    Interface:
      supervisor = CaptureSupervisor(controller, on_error=show_alert)
      supervisor.start()
      supervisor.suspend()   # e.g. before sleep
      supervisor.resume()    # after wake
      supervisor.close()
    """

    def __init__(
        self,
        controller: CaptureController,
        policy: Optional[RetryPolicy] = None,
        on_error: Optional[Callable[[str], None]] = None,
        on_give_up: Optional[Callable[[str], None]] = None,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ):
        self.controller = controller
        self.policy = policy or RetryPolicy()
        self.on_error = on_error
        self.on_give_up = on_give_up
        self._timer_factory = timer_factory

        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._attempts = 0
        self._should_resume = False
        self._suspended = False
        self._closed = False

        self._chained_state_change = controller.on_state_change
        controller.on_error = self._handle_error
        controller.on_state_change = self._handle_state_change

    @property
    def attempts(self) -> int:
        """Consecutive failed starts since the last successful one."""
        return self._attempts

    @property
    def retry_pending(self) -> bool:
        return self._timer is not None

    def start(self) -> Optional[Future]:
        """Start capture now, clearing any previous failure count."""
        with self._lock:
            self._attempts = 0
            self._suspended = False
            self._should_resume = False
        return self.controller.start()

    def suspend(self) -> None:
        """Stop capture until resume(), remembering that it should come back."""
        with self._lock:
            self._suspended = True
            self._should_resume = True
            self._cancel_timer()
        logger.info("Capture suspended")
        self.controller.stop()

    def resume(self) -> Optional[Future]:
        """Restart capture if a suspend or a failure while suspended left it owed."""
        with self._lock:
            self._suspended = False
            if not self._should_resume:
                return None
            self._should_resume = False
            self._attempts = 0
        logger.info("Capture resuming")
        return self.controller.start()

    def close(self) -> None:
        """Cancel pending retries and detach from future errors."""
        with self._lock:
            self._closed = True
            self._cancel_timer()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _handle_error(self, message: str) -> None:
        if self.on_error is not None:
            self.on_error(message)

        give_up = False
        with self._lock:
            if self._closed:
                return
            if self._suspended:
                self._should_resume = True
                return
            self._attempts += 1
            limit = self.policy.max_attempts
            if limit is not None and self._attempts > limit:
                give_up = True
            elif self._timer is None:
                delay = self.policy.delay_for(self._attempts)
                logger.info("Retrying capture in %.1fs (attempt %d)", delay, self._attempts)
                self._timer = self._timer_factory(delay, self._retry)
                self._timer.daemon = True
                self._timer.start()

        if give_up:
            logger.warning("Giving up on capture after %d failed attempts", self._attempts - 1)
            if self.on_give_up is not None:
                self.on_give_up(message)

    def _retry(self) -> None:
        with self._lock:
            self._timer = None
            if self._closed or self._suspended:
                return
        self.controller.start()

    def _handle_state_change(self, state: CaptureState) -> None:
        if state is CaptureState.ACTIVE:
            with self._lock:
                self._attempts = 0
        if self._chained_state_change is not None:
            self._chained_state_change(state)
