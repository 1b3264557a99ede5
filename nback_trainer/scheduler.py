from __future__ import annotations

import heapq
from collections.abc import Callable

from .clock import Clock


class TimerHandle:
    """A deferred callback registered with a Scheduler."""

    __slots__ = ("_deadline_s", "_callback", "_cancelled", "_fired")

    def __init__(self, deadline_s: float, callback: Callable[[], None]) -> None:
        self._deadline_s = float(deadline_s)
        self._callback = callback
        self._cancelled = False
        self._fired = False

    @property
    def deadline_s(self) -> float:
        return self._deadline_s

    @property
    def pending(self) -> bool:
        return not (self._cancelled or self._fired)

    def cancel(self) -> None:
        # Cancelling after the callback ran is a no-op.
        self._cancelled = True
        self._callback = _noop

    def _fire(self) -> None:
        if self._cancelled or self._fired:
            return
        self._fired = True
        callback = self._callback
        self._callback = _noop
        callback()


def _noop() -> None:
    return None


class Scheduler:
    """Cooperative timer queue driven by an injected Clock.

    Nothing runs on its own: the host calls run_due() (typically once per
    frame) and every callback whose deadline has passed runs in deadline
    order. Callbacks may schedule further timers; those that are already due
    run within the same run_due() call.
    """

    def __init__(self, clock: Clock) -> None:
        self._clock = clock
        self._queue: list[tuple[float, int, TimerHandle]] = []
        self._seq = 0

    def now(self) -> float:
        return self._clock.now()

    def call_at(self, deadline_s: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(deadline_s, callback)
        heapq.heappush(self._queue, (handle.deadline_s, self._seq, handle))
        self._seq += 1
        return handle

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TimerHandle:
        if delay_s < 0.0:
            raise ValueError("delay_s must be >= 0")
        return self.call_at(self._clock.now() + float(delay_s), callback)

    def run_due(self) -> int:
        """Run every due callback. Returns how many callbacks ran."""

        now = self._clock.now()
        ran = 0
        while True:
            self._drop_cancelled_head()
            if not self._queue or self._queue[0][0] > now:
                return ran
            _, _, handle = heapq.heappop(self._queue)
            handle._fire()
            ran += 1

    def _drop_cancelled_head(self) -> None:
        while self._queue and not self._queue[0][2].pending:
            heapq.heappop(self._queue)
