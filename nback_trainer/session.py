from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Protocol

from .clock import Clock
from .config import ConfigError, GameConfig, Modality, validate_config
from .evaluator import Evaluation, Feedback, MatchEvaluator
from .history import EventHistory
from .observable import MutableObservable, Observable
from .playback import NullPlayback
from .presentation import Phase, PresentationLoop
from .scheduler import Scheduler
from .sequence import SequenceGenerator, new_seed

logger = logging.getLogger(__name__)

BLANK_STIMULUS = -1


class Playback(Protocol):
    def on_stimulus(self, value: int, modality: Modality) -> None: ...
    def stop(self) -> None: ...


class Persistence(Protocol):
    def get_high_score(self) -> int: ...
    def set_high_score(self, value: int) -> None: ...


class SequenceSource(Protocol):
    """Anything that can produce stimulus sequences (SequenceGenerator in production)."""

    @property
    def seed(self) -> int: ...

    def generate(self, round_size: int, combinations: int, percent_match: int, n_back: int) -> tuple[int, ...]: ...


class _MemoryPersistence:
    def __init__(self) -> None:
        self._high_score = 0

    def get_high_score(self) -> int:
        return self._high_score

    def set_high_score(self, value: int) -> None:
        self._high_score = int(value)


@dataclass(frozen=True, slots=True)
class SessionState:
    """View model for the UI (pure data)."""

    game_type: Modality
    current_stimulus: int
    current_index: int
    correct_responses: int
    score: int
    feedback: Feedback
    phase: Phase
    high_score: int
    n_back: int
    round_size: int


@dataclass(frozen=True, slots=True)
class ResponseEvent:
    index: int
    phase: Phase
    modality: Modality
    response: int | None
    current_stimulus: int
    lagged: int | None
    is_match: bool
    answered_at_s: float
    response_time_s: float | None


class SessionController:
    """Single owner of the session state.

    Wires SequenceGenerator -> PresentationLoop -> MatchEvaluator and
    republishes state through read-only observables. Every public method
    runs under one re-entrant lock, so hosts that deliver input and frame
    updates on different threads still see serialized mutations.

    Time only moves forward inside update(): the host calls it every frame.
    """

    def __init__(
        self,
        *,
        clock: Clock,
        playback: Playback | None = None,
        persistence: Persistence | None = None,
        generator: SequenceSource | None = None,
    ) -> None:
        self._lock = threading.RLock()
        self._fixed_generator = generator
        self._scheduler = Scheduler(clock)
        self._playback: Playback = playback or NullPlayback()
        self._persistence: Persistence = persistence or _MemoryPersistence()

        self._config: GameConfig | None = None
        self._generator: SequenceSource | None = None
        self._history: EventHistory | None = None
        self._loop: PresentationLoop | None = None
        self._evaluator: MatchEvaluator | None = None
        self._sequence: tuple[int, ...] = ()
        self._round_epoch = 0
        self._rounds_started = 0
        self._stimulus_shown_at_s: float | None = None
        self._events: list[ResponseEvent] = []

        self._game_type = MutableObservable("game_type", Modality.VISUAL)
        self._current_stimulus = MutableObservable("current_stimulus", BLANK_STIMULUS)
        self._current_index = MutableObservable("current_index", 1)
        self._score = MutableObservable("score", 0)
        self._correct_responses = MutableObservable("correct_responses", 0)
        self._feedback = MutableObservable("feedback", Feedback.NONE)
        self._high_score = MutableObservable("high_score", self._read_high_score())
        self._phase = MutableObservable("phase", Phase.IDLE)

    # Observables -----------------------------------------------------------

    @property
    def game_type(self) -> Observable[Modality]:
        return self._game_type

    @property
    def current_stimulus(self) -> Observable[int]:
        return self._current_stimulus

    @property
    def current_index(self) -> Observable[int]:
        return self._current_index

    @property
    def score(self) -> Observable[int]:
        return self._score

    @property
    def correct_responses(self) -> Observable[int]:
        return self._correct_responses

    @property
    def feedback(self) -> Observable[Feedback]:
        return self._feedback

    @property
    def high_score(self) -> Observable[int]:
        return self._high_score

    @property
    def phase(self) -> Observable[Phase]:
        return self._phase

    # Read accessors --------------------------------------------------------

    @property
    def config(self) -> GameConfig | None:
        return self._config

    @property
    def seed(self) -> int | None:
        return None if self._generator is None else self._generator.seed

    @property
    def sequence(self) -> tuple[int, ...]:
        return self._sequence

    @property
    def presentation_loop(self) -> PresentationLoop | None:
        return self._loop

    @property
    def rounds_started(self) -> int:
        return self._rounds_started

    def history_values(self) -> tuple[int, ...]:
        return () if self._history is None else self._history.values()

    def events(self) -> list[ResponseEvent]:
        with self._lock:
            return list(self._events)

    def snapshot(self) -> SessionState:
        with self._lock:
            cfg = self._config
            return SessionState(
                game_type=self._game_type.value,
                current_stimulus=self._current_stimulus.value,
                current_index=self._current_index.value,
                correct_responses=self._correct_responses.value,
                score=self._score.value,
                feedback=self._feedback.value,
                phase=self._phase.value,
                high_score=self._high_score.value,
                n_back=0 if cfg is None else cfg.n_back,
                round_size=0 if cfg is None else cfg.round_size,
            )

    # Commands --------------------------------------------------------------

    def configure(self, config: GameConfig) -> None:
        """Store ``config`` for the next round. Stops a round in progress."""

        validate_config(config)
        with self._lock:
            if self._phase.value is not Phase.IDLE:
                self._halt()
                self._current_stimulus.set(BLANK_STIMULUS)
                self._phase.set(Phase.IDLE)
            self._config = config
            if self._fixed_generator is not None:
                self._generator = self._fixed_generator
            else:
                self._generator = SequenceGenerator(seed=config.seed if config.seed is not None else new_seed())
            seed = self._generator.seed
            self._game_type.set(config.modality)
            logger.info(
                "Configured %s %d-back: %d stimuli over %d values, %d%% matches (seed=%d)",
                config.modality.value,
                config.n_back,
                config.round_size,
                config.combinations,
                config.percent_match,
                seed,
            )

    def start_round(self) -> None:
        with self._lock:
            cfg = self._config
            if cfg is None or self._generator is None:
                raise ConfigError("no game config; call configure() first")

            # The previous loop is dead before the new sequence exists.
            self._halt()

            self._score.set(0)
            self._correct_responses.set(0)
            self._feedback.set(Feedback.NONE)
            self._current_index.set(1)
            self._current_stimulus.set(BLANK_STIMULUS)
            self._events = []
            self._stimulus_shown_at_s = None

            self._sequence = self._generator.generate(
                cfg.round_size,
                cfg.combinations,
                cfg.percent_match,
                cfg.n_back,
            )
            self._history = EventHistory(cfg.n_back)
            self._evaluator = MatchEvaluator(
                n_back=cfg.n_back,
                scheduler=self._scheduler,
                feedback_hold_s=cfg.feedback_hold_s,
            )
            self._loop = PresentationLoop(
                scheduler=self._scheduler,
                history=self._history,
                listener=_LoopBinding(self, self._round_epoch),
                blank_interval_s=cfg.blank_interval_s,
                stimulus_interval_s=cfg.stimulus_interval_s,
            )
            self._rounds_started += 1
            logger.info("Round %d started", self._rounds_started)
            self._loop.start(self._sequence)

    def reset_round(self) -> None:
        with self._lock:
            self.stop()
            self.start_round()

    def submit_response(self, response: int | None = None) -> Evaluation | None:
        """Score a response against the lag window.

        Ignored (returns None) while no round has been started. After the
        round completes responses are still judged against the last window.
        """

        with self._lock:
            if self._phase.value is Phase.IDLE:
                return None
            assert self._config is not None
            assert self._history is not None
            assert self._evaluator is not None

            modality = self._config.modality
            evaluation = self._evaluator.judge(
                response,
                current_stimulus=self._current_stimulus.value,
                history=self._history,
                modality=modality,
                sink=_ScoreBinding(self, self._round_epoch),
            )

            answered_at_s = self._scheduler.now()
            rt = None
            if self._phase.value is Phase.PRESENTING and self._stimulus_shown_at_s is not None:
                rt = max(0.0, answered_at_s - self._stimulus_shown_at_s)
            self._events.append(
                ResponseEvent(
                    index=self._current_index.value,
                    phase=self._phase.value,
                    modality=modality,
                    response=response,
                    current_stimulus=evaluation.current_stimulus,
                    lagged=evaluation.lagged,
                    is_match=evaluation.is_match,
                    answered_at_s=answered_at_s,
                    response_time_s=rt,
                )
            )
            return evaluation

    def stop(self) -> None:
        """Cancel everything in flight and go IDLE. Safe to call repeatedly."""

        with self._lock:
            was_active = self._phase.value is not Phase.IDLE
            self._halt()
            self._current_stimulus.set(BLANK_STIMULUS)
            self._phase.set(Phase.IDLE)
            if was_active:
                logger.info("Session stopped")

    def update(self) -> None:
        with self._lock:
            self._scheduler.run_due()

    # Internals -------------------------------------------------------------

    def _halt(self) -> None:
        self._round_epoch += 1
        if self._loop is not None:
            self._loop.cancel()
        if self._evaluator is not None:
            self._evaluator.cancel_pending()
        self._playback.stop()
        self._feedback.set(Feedback.NONE)

    def _read_high_score(self, fallback: int = 0) -> int:
        try:
            return max(0, int(self._persistence.get_high_score()))
        except Exception as exc:
            logger.warning("Could not read high score (%s); keeping %d", exc, fallback)
            return fallback

    def _on_blank(self, index: int) -> None:
        self._stimulus_shown_at_s = None
        self._current_stimulus.set(BLANK_STIMULUS)
        self._current_index.set(index + 1)
        self._phase.set(Phase.BLANK)

    def _on_stimulus(self, index: int, value: int) -> None:
        assert self._config is not None
        self._stimulus_shown_at_s = self._scheduler.now()
        self._current_stimulus.set(value)
        self._phase.set(Phase.PRESENTING)
        logger.debug(
            "Stimulus %d/%d: %d (history %s)",
            index + 1,
            len(self._sequence),
            value,
            self.history_values(),
        )
        self._playback.on_stimulus(value, self._config.modality)

    def _on_complete(self) -> None:
        self._stimulus_shown_at_s = None
        self._current_stimulus.set(BLANK_STIMULUS)
        self._current_index.set(1)
        self._phase.set(Phase.COMPLETE)
        logger.info(
            "Round %d complete: score %d (%d correct)",
            self._rounds_started,
            self._score.value,
            self._correct_responses.value,
        )

    def _award_match(self) -> None:
        score = self._score.value + 1
        self._score.set(score)
        self._correct_responses.set(self._correct_responses.value + 1)
        previous = self._high_score.value
        if score > previous:
            try:
                self._persistence.set_high_score(score)
            except Exception as exc:
                # The stored best stays where it was.
                logger.warning("Could not store high score %d: %s", score, exc)
                return
            stored = self._read_high_score(previous)
            if stored >= score:
                logger.info("New high score: %d", stored)
            self._high_score.set(stored)

    def _set_feedback(self, feedback: Feedback) -> None:
        self._feedback.set(feedback)


class _LoopBinding:
    """Presentation callbacks for one round; inert once the round is gone."""

    __slots__ = ("_session", "_epoch")

    def __init__(self, session: SessionController, epoch: int) -> None:
        self._session = session
        self._epoch = epoch

    def _current(self) -> bool:
        return self._epoch == self._session._round_epoch

    def loop_blank(self, index: int) -> None:
        if self._current():
            self._session._on_blank(index)

    def loop_stimulus(self, index: int, value: int) -> None:
        if self._current():
            self._session._on_stimulus(index, value)

    def loop_complete(self) -> None:
        if self._current():
            self._session._on_complete()


class _ScoreBinding:
    __slots__ = ("_session", "_epoch")

    def __init__(self, session: SessionController, epoch: int) -> None:
        self._session = session
        self._epoch = epoch

    def award_match(self) -> None:
        if self._epoch == self._session._round_epoch:
            self._session._award_match()

    def set_feedback(self, feedback: Feedback) -> None:
        if self._epoch == self._session._round_epoch:
            self._session._set_feedback(feedback)
