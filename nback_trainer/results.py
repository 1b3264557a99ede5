from __future__ import annotations

from dataclasses import dataclass

from .config import GameConfig
from .presentation import Phase
from .sequence import count_matches
from .session import ResponseEvent, SessionController


@dataclass(frozen=True, slots=True)
class RoundResult:
    """Persistable summary + response log for one round."""

    config: GameConfig
    seed: int
    sequence: tuple[int, ...]
    completed: bool

    score: int
    correct_responses: int
    responses: int
    targets: int
    accuracy: float
    mean_rt_ms: float | None

    events: list[ResponseEvent]


def round_result_from_session(session: SessionController) -> RoundResult:
    """Build a RoundResult from the controller's current (or last) round."""

    cfg = session.config
    seed = session.seed
    if cfg is None or seed is None:
        raise ValueError("session has not been configured")

    state = session.snapshot()
    events = session.events()
    responses = len(events)
    accuracy = 0.0 if responses == 0 else state.correct_responses / responses

    rts_ms = [e.response_time_s * 1000.0 for e in events if e.response_time_s is not None]
    mean_ms = None if not rts_ms else float(sum(rts_ms)) / float(len(rts_ms))

    return RoundResult(
        config=cfg,
        seed=int(seed),
        sequence=tuple(session.sequence),
        completed=state.phase is Phase.COMPLETE,
        score=int(state.score),
        correct_responses=int(state.correct_responses),
        responses=responses,
        targets=count_matches(session.sequence, cfg.n_back),
        accuracy=float(accuracy),
        mean_rt_ms=mean_ms,
        events=events,
    )
