from __future__ import annotations

import json
from pathlib import Path

import pytest

from nback_trainer.config import ConfigError, GameConfig, Modality, load_game_config


def test_defaults_are_a_classic_round() -> None:
    cfg = GameConfig()
    assert cfg.n_back == 1
    assert cfg.round_size == 10
    assert cfg.combinations == 9
    assert cfg.percent_match == 30
    assert cfg.modality is Modality.VISUAL
    assert cfg.stimulus_interval_s == 2.0
    assert cfg.feedback_hold_s == 0.5


def test_dict_round_trip_and_coercion() -> None:
    cfg = GameConfig.from_dict(
        {
            "n_back": "2",
            "round_size": 20.0,
            "modality": " Audio ",
            "seed": "17",
            "unknown": "ignored",
        }
    )
    assert cfg.n_back == 2
    assert cfg.round_size == 20
    assert cfg.modality is Modality.AUDIO
    assert cfg.seed == 17

    data = cfg.to_dict()
    assert data["modality"] == "audio"
    assert GameConfig.from_dict(data) == cfg


def test_with_modality_keeps_other_fields() -> None:
    cfg = GameConfig(n_back=3, round_size=12)
    audio = cfg.with_modality(Modality.AUDIO)
    assert audio.modality is Modality.AUDIO
    assert (audio.n_back, audio.round_size) == (3, 12)


@pytest.mark.parametrize(
    "overrides",
    [
        {"n_back": 0},
        {"n_back": 3, "round_size": 3},
        {"combinations": 1},
        {"percent_match": 101},
        {"percent_match": -5},
        {"stimulus_interval_ms": 0},
        {"blank_interval_ms": -1},
        {"feedback_hold_ms": -1},
        {"n_back": 1.5},
        {"round_size": 10.0},
        {"combinations": True},
        {"seed": "7"},
    ],
)
def test_invalid_values_raise(overrides: dict[str, object]) -> None:
    with pytest.raises(ConfigError):
        GameConfig(**overrides)  # type: ignore[arg-type]


@pytest.mark.parametrize(
    "payload",
    [
        {"modality": "smell"},
        {"n_back": "two"},
        {"round_size": True},
        {"percent_match": 30.5},
        ["not", "a", "mapping"],
    ],
)
def test_from_dict_rejects_bad_payloads(payload: object) -> None:
    with pytest.raises(ConfigError):
        GameConfig.from_dict(payload)


def test_config_error_is_a_value_error() -> None:
    assert issubclass(ConfigError, ValueError)


def test_load_missing_file_gives_defaults(tmp_path: Path) -> None:
    assert load_game_config(tmp_path / "nope.json") == GameConfig()


def test_load_unparseable_file_gives_defaults(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")
    assert load_game_config(path) == GameConfig()


def test_load_valid_file(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"n_back": 2, "percent_match": 50}), encoding="utf-8")
    cfg = load_game_config(path)
    assert (cfg.n_back, cfg.percent_match) == (2, 50)


def test_load_invalid_values_raise(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"n_back": 5, "round_size": 4}), encoding="utf-8")
    with pytest.raises(ConfigError):
        load_game_config(path)
