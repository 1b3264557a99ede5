from __future__ import annotations

import json
import logging
import os
import sqlite3
import time
from pathlib import Path

from .results import RoundResult

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
DB_PATH_ENV = "NBACK_DB_PATH"


def default_db_path() -> Path:
    explicit = os.environ.get(DB_PATH_ENV)
    if explicit:
        return Path(explicit).expanduser()
    return Path.home() / ".nback_trainer.sqlite3"


def open_db(path: Path) -> sqlite3.Connection:
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path)
    conn.execute("PRAGMA foreign_keys=ON;")
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    _migrate(conn)
    return conn


def _utc_now_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(time.time()))


def _migrate(conn: sqlite3.Connection) -> None:
    row = conn.execute("PRAGMA user_version;").fetchone()
    ver = int(row[0]) if row else 0
    if ver >= SCHEMA_VERSION:
        return

    with conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS high_score (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                value INTEGER NOT NULL,
                updated_at_utc TEXT NOT NULL
            );
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS round_result (
                id INTEGER PRIMARY KEY,
                modality TEXT NOT NULL,
                n_back INTEGER NOT NULL,
                config_json TEXT NOT NULL,
                rng_seed INTEGER NOT NULL,
                sequence TEXT NOT NULL,
                completed INTEGER NOT NULL,
                score INTEGER NOT NULL,
                correct_responses INTEGER NOT NULL,
                responses INTEGER NOT NULL,
                targets INTEGER NOT NULL,
                accuracy REAL NOT NULL,
                mean_rt_ms REAL,
                recorded_at_utc TEXT NOT NULL
            );
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS response_event (
                id INTEGER PRIMARY KEY,
                round_id INTEGER NOT NULL REFERENCES round_result(id) ON DELETE CASCADE,
                seq INTEGER NOT NULL,
                stimulus_index INTEGER NOT NULL,
                phase TEXT NOT NULL,
                response TEXT NOT NULL,
                current_stimulus INTEGER NOT NULL,
                lagged INTEGER,
                is_match INTEGER NOT NULL,
                answered_at_ms INTEGER NOT NULL,
                rt_ms INTEGER
            );
            """
        )
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_response_event_round_seq ON response_event(round_id, seq);"
        )
        conn.execute(f"PRAGMA user_version={SCHEMA_VERSION};")


class ScoreStore:
    """sqlite-backed high score and round history.

    Best-effort: storage errors are logged here and never raised, so the
    session keeps running with the last value it could read.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._last_high_score = 0

    @property
    def path(self) -> Path:
        return self._path

    def get_high_score(self) -> int:
        try:
            conn = open_db(self._path)
            try:
                row = conn.execute("SELECT value FROM high_score WHERE id = 1").fetchone()
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as exc:
            logger.warning("Could not read high score from %s: %s", self._path, exc)
            return self._last_high_score
        self._last_high_score = 0 if row is None else int(row[0])
        return self._last_high_score

    def set_high_score(self, value: int) -> None:
        """Store ``value`` if it beats the stored high score."""

        try:
            conn = open_db(self._path)
            try:
                with conn:
                    conn.execute(
                        """
                        INSERT INTO high_score(id, value, updated_at_utc) VALUES (1, ?, ?)
                        ON CONFLICT(id) DO UPDATE SET
                            value = excluded.value,
                            updated_at_utc = excluded.updated_at_utc
                        WHERE excluded.value > high_score.value
                        """,
                        (int(value), _utc_now_iso()),
                    )
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as exc:
            logger.warning("Could not store high score %d in %s: %s", value, self._path, exc)

    def record_round(self, result: RoundResult) -> int | None:
        """Persist ``result``; returns the new row id, or None if storage failed."""

        try:
            conn = open_db(self._path)
            try:
                return _insert_round(conn=conn, result=result)
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as exc:
            logger.warning("Could not record round in %s: %s", self._path, exc)
            return None

    def recent_rounds(self, limit: int = 10) -> list[dict[str, object]]:
        try:
            conn = open_db(self._path)
            try:
                conn.row_factory = sqlite3.Row
                rows = conn.execute(
                    """
                    SELECT id, modality, n_back, score, correct_responses, responses,
                           targets, accuracy, completed, recorded_at_utc
                    FROM round_result ORDER BY id DESC LIMIT ?
                    """,
                    (int(limit),),
                ).fetchall()
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as exc:
            logger.warning("Could not read round history from %s: %s", self._path, exc)
            return []
        return [dict(r) for r in rows]


def _insert_round(*, conn: sqlite3.Connection, result: RoundResult) -> int:
    cfg = result.config
    with conn:
        cur = conn.execute(
            """
            INSERT INTO round_result(
                modality, n_back, config_json, rng_seed, sequence, completed,
                score, correct_responses, responses, targets, accuracy, mean_rt_ms,
                recorded_at_utc
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                str(cfg.modality.value),
                int(cfg.n_back),
                json.dumps(cfg.to_dict(), sort_keys=True),
                int(result.seed),
                ",".join(str(v) for v in result.sequence),
                1 if result.completed else 0,
                int(result.score),
                int(result.correct_responses),
                int(result.responses),
                int(result.targets),
                float(result.accuracy),
                result.mean_rt_ms,
                _utc_now_iso(),
            ),
        )
        round_id = int(cur.lastrowid)

        for seq, e in enumerate(result.events):
            conn.execute(
                """
                INSERT INTO response_event(
                    round_id, seq, stimulus_index, phase, response, current_stimulus,
                    lagged, is_match, answered_at_ms, rt_ms
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    round_id,
                    seq,
                    int(e.index),
                    str(e.phase.value),
                    "match" if e.response is None else str(e.response),
                    int(e.current_stimulus),
                    e.lagged,
                    1 if e.is_match else 0,
                    int(round(e.answered_at_s * 1000.0)),
                    None if e.response_time_s is None else int(round(e.response_time_s * 1000.0)),
                ),
            )

    return round_id
