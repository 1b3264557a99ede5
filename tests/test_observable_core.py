from __future__ import annotations

import logging

from nback_trainer.observable import MutableObservable


def test_only_distinct_values_are_delivered() -> None:
    obs = MutableObservable("score", 0)
    seen: list[int] = []
    obs.subscribe(seen.append)

    obs.set(0)
    obs.set(1)
    obs.set(1)
    obs.set(2)

    assert seen == [1, 2]
    assert obs.value == 2


def test_replay_and_unsubscribe() -> None:
    obs = MutableObservable("phase", "idle")
    seen: list[str] = []
    unsubscribe = obs.subscribe(seen.append, replay=True)
    assert seen == ["idle"]

    unsubscribe()
    unsubscribe()
    obs.set("blank")
    assert seen == ["idle"]
    assert obs.subscriber_count() == 0


def test_failing_subscriber_does_not_starve_others(caplog) -> None:
    obs = MutableObservable("feedback", "none")
    seen: list[str] = []

    def boom(_: str) -> None:
        raise RuntimeError("boom")

    obs.subscribe(boom)
    obs.subscribe(seen.append)
    with caplog.at_level(logging.ERROR, logger="nback_trainer.observable"):
        obs.set("correct")

    assert seen == ["correct"]
    assert "feedback" in caplog.text
