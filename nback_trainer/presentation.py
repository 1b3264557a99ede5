from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from enum import StrEnum
from typing import Protocol

from .history import EventHistory
from .scheduler import Scheduler, TimerHandle

logger = logging.getLogger(__name__)


class Phase(StrEnum):
    IDLE = "idle"
    BLANK = "blank"
    PRESENTING = "presenting"
    COMPLETE = "complete"


class LoopListener(Protocol):
    def loop_blank(self, index: int) -> None: ...
    def loop_stimulus(self, index: int, value: int) -> None: ...
    def loop_complete(self) -> None: ...


class PresentationLoop:
    """Timed state machine walking one stimulus sequence.

    IDLE -> BLANK -> PRESENTING -> (BLANK -> PRESENTING)* -> COMPLETE

    Each phase ends at a scheduler deadline anchored to the previous one, so
    a late update() replays the missed phases in order instead of drifting.
    Every timer carries the epoch it was scheduled under; cancel() bumps the
    epoch, which turns any callback still in flight into a no-op.
    """

    def __init__(
        self,
        *,
        scheduler: Scheduler,
        history: EventHistory,
        listener: LoopListener,
        blank_interval_s: float,
        stimulus_interval_s: float,
    ) -> None:
        if stimulus_interval_s <= 0.0:
            raise ValueError("stimulus_interval_s must be > 0")
        if blank_interval_s < 0.0:
            raise ValueError("blank_interval_s must be >= 0")

        self._scheduler = scheduler
        self._history = history
        self._listener = listener
        self._blank_interval_s = float(blank_interval_s)
        self._stimulus_interval_s = float(stimulus_interval_s)

        self._phase = Phase.IDLE
        self._sequence: tuple[int, ...] = ()
        self._index = 0
        self._epoch = 0
        self._timer: TimerHandle | None = None

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def index(self) -> int:
        return self._index

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def sequence(self) -> tuple[int, ...]:
        return self._sequence

    @property
    def live(self) -> bool:
        return self._phase in (Phase.BLANK, Phase.PRESENTING)

    def start(self, sequence: Sequence[int]) -> None:
        if len(sequence) == 0:
            raise ValueError("sequence must not be empty")
        self.cancel()
        self._sequence = tuple(int(v) for v in sequence)
        self._enter_blank(0, self._scheduler.now())

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._epoch += 1
        if self._phase is not Phase.IDLE:
            logger.debug("Presentation loop cancelled at index %d", self._index)
        self._phase = Phase.IDLE

    def _enter_blank(self, index: int, started_at_s: float) -> None:
        epoch = self._epoch
        self._index = index
        self._phase = Phase.BLANK
        self._listener.loop_blank(index)
        if epoch != self._epoch:
            return
        self._schedule(started_at_s + self._blank_interval_s, self._end_blank)

    def _end_blank(self, at_s: float) -> None:
        epoch = self._epoch
        value = self._sequence[self._index]
        self._phase = Phase.PRESENTING
        self._history.push(value)
        self._listener.loop_stimulus(self._index, value)
        if epoch != self._epoch:
            return
        self._schedule(at_s + self._stimulus_interval_s, self._end_stimulus)

    def _end_stimulus(self, at_s: float) -> None:
        next_index = self._index + 1
        if next_index < len(self._sequence):
            self._enter_blank(next_index, at_s)
            return
        self._phase = Phase.COMPLETE
        self._listener.loop_complete()

    def _schedule(self, deadline_s: float, step: Callable[[float], None]) -> None:
        epoch = self._epoch
        self._timer = self._scheduler.call_at(
            deadline_s,
            lambda: self._on_timer(epoch, deadline_s, step),
        )

    def _on_timer(self, epoch: int, deadline_s: float, step: Callable[[float], None]) -> None:
        if epoch != self._epoch or not self.live:
            return  # stale
        self._timer = None
        step(deadline_s)
