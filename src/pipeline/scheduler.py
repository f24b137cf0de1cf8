"""
Cycle scheduler: how long to wait before the next capture cycle.
"""

from __future__ import annotations

import threading

from models.config import SchedulerConfig


class CycleScheduler:
    """
    Run cycle, await completion or error, then wait before the next one.

    After a successful cycle the wait is success_delay. After an error it is
    error_delay, multiplied by backoff_factor for every further consecutive
    error and capped at max_error_delay.
    """

    def __init__(self, config: SchedulerConfig):
        self.config = config
        self.consecutive_errors = 0

    def next_delay(self, ok: bool) -> float:
        if ok:
            self.consecutive_errors = 0
            return self.config.success_delay

        self.consecutive_errors += 1
        delay = self.config.error_delay * (self.config.backoff_factor ** (self.consecutive_errors - 1))
        return min(delay, self.config.max_error_delay)

    def reset(self) -> None:
        self.consecutive_errors = 0

    @staticmethod
    def wait(delay: float, stop_event: threading.Event) -> bool:
        """
        Sleep for delay seconds unless stop_event is set first.

        Returns True if the loop should continue.
        """
        if delay <= 0:
            return not stop_event.is_set()
        return not stop_event.wait(delay)
