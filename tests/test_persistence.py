from __future__ import annotations

import sqlite3
from pathlib import Path

from nback_trainer.clock import ManualClock
from nback_trainer.config import GameConfig
from nback_trainer.persistence import SCHEMA_VERSION, ScoreStore, default_db_path, open_db
from nback_trainer.results import round_result_from_session
from nback_trainer.session import SessionController


def _played_session() -> SessionController:
    clock = ManualClock()
    session = SessionController(clock=clock)
    session.configure(GameConfig(n_back=1, round_size=4, blank_interval_ms=250, seed=3))
    session.start_round()
    for _ in range(40):
        clock.advance(0.25)
        session.update()
        if session.current_index.value == 2:
            session.submit_response(session.current_stimulus.value)
    return session


def test_migrations_set_user_version(tmp_path: Path) -> None:
    conn = open_db(tmp_path / "nested" / "scores.sqlite3")
    try:
        (ver,) = conn.execute("PRAGMA user_version;").fetchone()
    finally:
        conn.close()
    assert ver == SCHEMA_VERSION


def test_high_score_only_moves_up(tmp_path: Path) -> None:
    store = ScoreStore(tmp_path / "scores.sqlite3")
    assert store.get_high_score() == 0

    store.set_high_score(5)
    assert store.get_high_score() == 5
    store.set_high_score(3)
    assert store.get_high_score() == 5
    store.set_high_score(8)

    # A fresh store on the same file sees the persisted value.
    assert ScoreStore(tmp_path / "scores.sqlite3").get_high_score() == 8


def test_session_reads_and_writes_high_score_through_store(tmp_path: Path) -> None:
    store = ScoreStore(tmp_path / "scores.sqlite3")
    store.set_high_score(2)
    session = SessionController(clock=ManualClock(), persistence=store)
    assert session.high_score.value == 2


def test_record_round_stores_summary_and_events(tmp_path: Path) -> None:
    path = tmp_path / "scores.sqlite3"
    store = ScoreStore(path)
    session = _played_session()
    result = round_result_from_session(session)
    assert result.completed

    round_id = store.record_round(result)
    assert round_id is not None

    conn = sqlite3.connect(path)
    try:
        (n_events,) = conn.execute(
            "SELECT COUNT(*) FROM response_event WHERE round_id = ?", (round_id,)
        ).fetchone()
        (sequence,) = conn.execute("SELECT sequence FROM round_result WHERE id = ?", (round_id,)).fetchone()
    finally:
        conn.close()
    assert n_events == len(result.events)
    assert sequence == ",".join(str(v) for v in result.sequence)

    rounds = store.recent_rounds()
    assert len(rounds) == 1
    assert rounds[0]["id"] == round_id
    assert rounds[0]["modality"] == "visual"
    assert rounds[0]["score"] == result.score


def test_recent_rounds_newest_first(tmp_path: Path) -> None:
    store = ScoreStore(tmp_path / "scores.sqlite3")
    result = round_result_from_session(_played_session())
    ids = [store.record_round(result) for _ in range(3)]

    rounds = store.recent_rounds(limit=2)
    assert [r["id"] for r in rounds] == [ids[2], ids[1]]


def test_unusable_path_is_logged_not_raised(tmp_path: Path, caplog) -> None:
    # A directory cannot be opened as a database file.
    store = ScoreStore(tmp_path)

    assert store.get_high_score() == 0
    store.set_high_score(4)
    assert store.get_high_score() == 0
    assert store.record_round(round_result_from_session(_played_session())) is None
    assert store.recent_rounds() == []
    assert "Could not" in caplog.text


def test_default_db_path_honours_env(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("NBACK_DB_PATH", str(tmp_path / "x.sqlite3"))
    assert default_db_path() == tmp_path / "x.sqlite3"
    monkeypatch.delenv("NBACK_DB_PATH")
    assert default_db_path().name == ".nback_trainer.sqlite3"
