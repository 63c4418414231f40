"""Timers ordered by expiration, run by the event loop when they fall due."""

from __future__ import annotations

import bisect
import itertools
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

TimerCallback = Callable[[], Any]

_sequence = itertools.count(1)


class Timer:
    """A callback due at ``when`` (seconds since the epoch).

    With a positive ``interval`` the timer repeats every ``interval`` seconds.
    """

    __slots__ = ("callback", "expiration", "interval", "repeat", "sequence")

    def __init__(self, callback: TimerCallback, when: float, interval: float = 0.0) -> None:
        self.callback = callback
        self.expiration: Optional[float] = when
        self.interval = interval
        self.repeat = interval > 0.0
        self.sequence = next(_sequence)

    def __repr__(self) -> str:
        return f"Timer(sequence={self.sequence}, expiration={self.expiration})"

    def run(self) -> None:
        self.callback()

    def restart(self, now: float) -> None:
        """Reschedule a repeating timer; a one-shot timer becomes invalid."""
        self.expiration = now + self.interval if self.repeat else None


@dataclass(frozen=True)
class TimerId:
    """Opaque handle used to cancel a timer."""

    timer: Optional[Timer] = None
    sequence: int = 0

    def is_valid(self) -> bool:
        return self.timer is not None


class TimerQueue:
    """Best-effort timer queue; callbacks run no earlier than their time.

    ``add_timer`` and ``cancel`` may be called from any thread; the work is
    handed to the loop through ``run_in_loop``. The loop asks
    ``next_expiration`` for its poll timeout and calls ``handle_expired``.
    """

    def __init__(self, loop: Any) -> None:
        self._loop = loop
        self._timers: list[tuple[float, int, Timer]] = []
        self._active: dict[int, Timer] = {}
        self._calling_expired = False
        self._canceling: set[int] = set()

    def __len__(self) -> int:
        return len(self._active)

    def add_timer(self, callback: TimerCallback, when: float, interval: float = 0.0) -> TimerId:
        if when is None:
            raise ValueError("timer needs an expiration time")
        timer = Timer(callback, when, interval)
        self._loop.run_in_loop(lambda: self._add_timer_in_loop(timer))
        return TimerId(timer, timer.sequence)

    def cancel(self, timer_id: TimerId) -> None:
        self._loop.run_in_loop(lambda: self._cancel_in_loop(timer_id))

    def next_expiration(self) -> Optional[float]:
        """Expiration of the earliest timer, or None when there is none."""
        return self._timers[0][0] if self._timers else None

    def handle_expired(self, now: Optional[float] = None) -> int:
        """Run every timer due at ``now``; return how many ran."""
        self._loop.assert_in_loop_thread()
        if now is None:
            now = time.time()
        expired = self._get_expired(now)
        self._calling_expired = True
        self._canceling.clear()
        try:
            for timer in expired:
                timer.run()
        finally:
            self._calling_expired = False
            self._reset(expired, now)
        return len(expired)

    def _add_timer_in_loop(self, timer: Timer) -> None:
        self._loop.assert_in_loop_thread()
        self._insert(timer)

    def _cancel_in_loop(self, timer_id: TimerId) -> None:
        self._loop.assert_in_loop_thread()
        timer = timer_id.timer
        if timer is None:
            return
        if self._active.get(timer_id.sequence) is timer:
            index = bisect.bisect_left(self._timers, (timer.expiration, timer.sequence))
            del self._timers[index]
            del self._active[timer_id.sequence]
        elif self._calling_expired:
            self._canceling.add(timer_id.sequence)

    def _get_expired(self, now: float) -> list[Timer]:
        end = bisect.bisect_right(self._timers, (now, float("inf")))
        expired = [timer for _, _, timer in self._timers[:end]]
        del self._timers[:end]
        for timer in expired:
            del self._active[timer.sequence]
        return expired

    def _reset(self, expired: list[Timer], now: float) -> None:
        for timer in expired:
            if timer.repeat and timer.sequence not in self._canceling:
                timer.restart(now)
                self._insert(timer)

    def _insert(self, timer: Timer) -> bool:
        when = timer.expiration
        earliest_changed = not self._timers or when < self._timers[0][0]
        bisect.insort(self._timers, (when, timer.sequence, timer))
        self._active[timer.sequence] = timer
        return earliest_changed