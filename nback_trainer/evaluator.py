from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol

from .config import Modality
from .history import EventHistory
from .scheduler import Scheduler, TimerHandle

logger = logging.getLogger(__name__)


class Feedback(StrEnum):
    NONE = "none"
    CORRECT = "correct"
    INCORRECT = "incorrect"


@dataclass(frozen=True, slots=True)
class Evaluation:
    is_match: bool
    response: int | None
    current_stimulus: int
    lagged: int | None


class ScoreSink(Protocol):
    """Write side of the session state that scoring is allowed to touch."""

    def award_match(self) -> None: ...
    def set_feedback(self, feedback: Feedback) -> None: ...


class MatchEvaluator:
    """Judges responses against the value ``n_back`` stimuli ago.

    The feedback flag is cleared ``feedback_hold_s`` after the latest
    judgement; a newer judgement replaces the pending reset.
    """

    def __init__(self, *, n_back: int, scheduler: Scheduler, feedback_hold_s: float = 0.5) -> None:
        if n_back < 1:
            raise ValueError("n_back must be >= 1")
        if feedback_hold_s < 0.0:
            raise ValueError("feedback_hold_s must be >= 0")
        self._n_back = int(n_back)
        self._scheduler = scheduler
        self._feedback_hold_s = float(feedback_hold_s)
        self._reset_timer: TimerHandle | None = None
        self._generation = 0

    @property
    def n_back(self) -> int:
        return self._n_back

    @property
    def reset_pending(self) -> bool:
        return self._reset_timer is not None and self._reset_timer.pending

    def evaluate(
        self,
        response: int | None,
        current_stimulus: int,
        history: EventHistory,
        modality: Modality,
    ) -> Evaluation:
        lagged = history.lookback(self._n_back)
        if lagged is None:
            is_match = False
        elif modality is Modality.AUDIO:
            # The response is a bare "match" claim about the latest stimulus.
            is_match = history.lookback(0) == lagged
        else:
            is_match = response is not None and response == lagged and current_stimulus == lagged
        return Evaluation(
            is_match=is_match,
            response=response,
            current_stimulus=int(current_stimulus),
            lagged=lagged,
        )

    def judge(
        self,
        response: int | None,
        *,
        current_stimulus: int,
        history: EventHistory,
        modality: Modality,
        sink: ScoreSink,
    ) -> Evaluation:
        result = self.evaluate(response, current_stimulus, history, modality)
        logger.debug(
            "Response %r vs %d-back %r (current %d, history %s): %s",
            response,
            self._n_back,
            result.lagged,
            current_stimulus,
            history.values(),
            "match" if result.is_match else "no match",
        )
        if result.is_match:
            sink.award_match()
            sink.set_feedback(Feedback.CORRECT)
        else:
            sink.set_feedback(Feedback.INCORRECT)
        self._schedule_reset(sink)
        return result

    def cancel_pending(self) -> None:
        self._generation += 1
        if self._reset_timer is not None:
            self._reset_timer.cancel()
            self._reset_timer = None

    def _schedule_reset(self, sink: ScoreSink) -> None:
        self.cancel_pending()
        generation = self._generation

        def _reset() -> None:
            if generation != self._generation:
                return
            self._reset_timer = None
            sink.set_feedback(Feedback.NONE)

        self._reset_timer = self._scheduler.call_later(self._feedback_hold_s, _reset)
