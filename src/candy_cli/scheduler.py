from __future__ import annotations

import enum
import logging
import threading
import time
from typing import Any, Callable, Optional

from .project_constants import DEFAULT_LOOKAHEAD_MS, DEFAULT_POLL_INTERVAL_MS

log = logging.getLogger(__name__)


class ScheduleState(enum.Enum):
    WAITING = "waiting"
    ATTEMPTING = "attempting"
    SUCCEEDED = "succeeded"
    CANCELLED = "cancelled"


class FireMode(enum.Enum):
    """
    When a tick counts as due, relative to the target and the lookahead.

    LATE (`now - lookahead >= target`) only fires once the target is
    already `lookahead` in the past; it is the default for mint loops.
    """

    AT_TARGET = "at-target"
    EARLY = "early"
    LATE = "late"


class ScheduleCancelled(RuntimeError):
    pass


class ScheduledAction:
    """
    Polls the clock every `poll_interval_ms` and, once due, calls `action`
    until it returns without raising. Retries are unbounded with no backoff;
    only stop() or process termination ends a loop that keeps failing.

    Ticks are sequential: a new attempt never starts while one is in flight.
    """

    def __init__(
        self,
        target: float,
        action: Callable[[], Any],
        poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
        lookahead_ms: int = DEFAULT_LOOKAHEAD_MS,
        fire_mode: FireMode = FireMode.LATE,
        clock: Callable[[], float] = time.time,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> None:
        if poll_interval_ms <= 0:
            raise ValueError("poll_interval_ms must be positive")
        self.target = target
        self.action = action
        self.poll_interval_ms = poll_interval_ms
        self.lookahead_ms = lookahead_ms
        self.fire_mode = fire_mode
        self.clock = clock
        self.sleep = sleep or self._wait

        self.state = ScheduleState.WAITING
        self.attempts = 0
        self.result: Any = None
        self.last_error: Optional[BaseException] = None
        self._stop = threading.Event()

    def is_due(self, now: float) -> bool:
        lookahead = self.lookahead_ms / 1000.0
        if self.fire_mode is FireMode.AT_TARGET:
            return now >= self.target
        if self.fire_mode is FireMode.EARLY:
            return now >= self.target - lookahead
        return now - lookahead >= self.target

    def _wait(self, seconds: float) -> None:
        self._stop.wait(seconds)

    def stop(self) -> None:
        self._stop.set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def tick(self) -> bool:
        """One poll step. Returns True once the action has succeeded."""
        if self.state is ScheduleState.SUCCEEDED:
            return True
        if self.state is not ScheduleState.WAITING:
            return False

        now = self.clock()
        log.info("Time until drop: %.4f minutes", (self.target - now) / 60.0)
        if not self.is_due(now):
            return False

        self.state = ScheduleState.ATTEMPTING
        self.attempts += 1
        log.info("Drop is due, attempt #%d", self.attempts)
        try:
            result = self.action()
        except Exception as e:
            self.last_error = e
            self.state = ScheduleState.WAITING
            log.warning("Attempt #%d failed: %s", self.attempts, e)
            log.info("Let's try again")
            return False

        self.result = result
        self.state = ScheduleState.SUCCEEDED
        log.info("Attempt #%d succeeded: %s", self.attempts, result)
        return True

    def run(self) -> Any:
        interval_s = self.poll_interval_ms / 1000.0
        while True:
            if self.stopped:
                self.state = ScheduleState.CANCELLED
                raise ScheduleCancelled(
                    f"Stopped after {self.attempts} attempt(s)"
                )
            if self.tick():
                return self.result
            self.sleep(interval_s)
