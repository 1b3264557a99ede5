from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, fields, replace
from enum import StrEnum
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Raised when a game configuration cannot be used to run a round."""


class Modality(StrEnum):
    VISUAL = "visual"
    AUDIO = "audio"


@dataclass(frozen=True, slots=True)
class GameConfig:
    # Defaults describe a classic 1-back round.
    n_back: int = 1
    round_size: int = 10
    combinations: int = 9
    percent_match: int = 30
    stimulus_interval_ms: int = 2000
    blank_interval_ms: int = 300
    feedback_hold_ms: int = 500
    modality: Modality = Modality.VISUAL
    seed: int | None = None

    def __post_init__(self) -> None:
        validate_config(self)

    @property
    def stimulus_interval_s(self) -> float:
        return self.stimulus_interval_ms / 1000.0

    @property
    def blank_interval_s(self) -> float:
        return self.blank_interval_ms / 1000.0

    @property
    def feedback_hold_s(self) -> float:
        return self.feedback_hold_ms / 1000.0

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["modality"] = str(self.modality.value)
        return data

    @classmethod
    def from_dict(cls, data: object) -> "GameConfig":
        if not isinstance(data, dict):
            raise ConfigError("game config must be a mapping")
        known = {f.name for f in fields(cls)}
        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            if key not in known:
                logger.debug("Ignoring unknown config key %r", key)
                continue
            kwargs[key] = value

        if "modality" in kwargs:
            try:
                kwargs["modality"] = Modality(str(kwargs["modality"]).strip().lower())
            except ValueError as exc:
                raise ConfigError(f"unknown modality: {kwargs['modality']!r}") from exc
        for key in known - {"modality", "seed"}:
            if key in kwargs:
                kwargs[key] = _as_int(key, kwargs[key])
        if kwargs.get("seed") is not None:
            kwargs["seed"] = _as_int("seed", kwargs["seed"])
        return cls(**kwargs)

    def with_modality(self, modality: Modality) -> "GameConfig":
        return replace(self, modality=Modality(modality))


def _as_int(key: str, value: object) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{key} must be an integer")
    if isinstance(value, float) and not value.is_integer():
        raise ConfigError(f"{key} must be a whole number, got {value!r}")
    try:
        return int(value)  # type: ignore[call-overload]
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{key} must be an integer, got {value!r}") from exc


_INT_FIELDS = (
    "n_back",
    "round_size",
    "combinations",
    "percent_match",
    "stimulus_interval_ms",
    "blank_interval_ms",
    "feedback_hold_ms",
)


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_config(config: GameConfig) -> None:
    for name in _INT_FIELDS:
        value = getattr(config, name)
        if not _is_int(value):
            raise ConfigError(f"{name} must be an integer, got {value!r}")
    if config.seed is not None and not _is_int(config.seed):
        raise ConfigError(f"seed must be an integer, got {config.seed!r}")
    if config.n_back < 1:
        raise ConfigError("n_back must be >= 1")
    if config.round_size <= config.n_back:
        raise ConfigError("round_size must be > n_back")
    if config.combinations < 2:
        raise ConfigError("combinations must be >= 2")
    if not (0 <= config.percent_match <= 100):
        raise ConfigError("percent_match must be in [0, 100]")
    if config.stimulus_interval_ms <= 0:
        raise ConfigError("stimulus_interval_ms must be > 0")
    if config.blank_interval_ms < 0:
        raise ConfigError("blank_interval_ms must be >= 0")
    if config.feedback_hold_ms < 0:
        raise ConfigError("feedback_hold_ms must be >= 0")
    if not isinstance(config.modality, Modality):
        raise ConfigError(f"unknown modality: {config.modality!r}")


def load_game_config(path: Path) -> GameConfig:
    """Read a GameConfig from a JSON file.

    A missing or unreadable file falls back to defaults. A readable file with
    invalid values raises ConfigError.
    """

    if not path.exists():
        return GameConfig()
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Could not read game config %s (%s); using defaults", path, exc)
        return GameConfig()
    return GameConfig.from_dict(payload)
