from __future__ import annotations

import json
import os


def _key(key: int) -> None:
    import pygame

    pygame.event.post(pygame.event.Event(pygame.KEYDOWN, {"key": key, "unicode": ""}))


def test_ui_smoke_open_visual_game_and_answer(tmp_path, monkeypatch) -> None:
    # Headless SDL for CI.
    os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
    os.environ.setdefault("SDL_AUDIODRIVER", "dummy")
    monkeypatch.setenv("NBACK_DB_PATH", str(tmp_path / "scores.sqlite3"))
    monkeypatch.delenv("NBACK_CONFIG_PATH", raising=False)

    import pygame

    from nback_trainer.app import run

    def inject(frame: int) -> None:
        # Main Menu -> Start Visual, press a digit, restart, back out.
        if frame == 1:
            _key(pygame.K_RETURN)
        elif frame == 3:
            _key(pygame.K_5)
        elif frame == 4:
            _key(pygame.K_r)
        elif frame == 6:
            _key(pygame.K_ESCAPE)

    assert run(max_frames=10, event_injector=inject) == 0


def test_ui_smoke_open_audio_game_with_config_file(tmp_path, monkeypatch) -> None:
    os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
    os.environ.setdefault("SDL_AUDIODRIVER", "dummy")
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps({"n_back": 2, "stimulus_interval_ms": 500}), encoding="utf-8")
    monkeypatch.setenv("NBACK_CONFIG_PATH", str(config_path))
    monkeypatch.setenv("NBACK_DB_PATH", str(tmp_path / "scores.sqlite3"))

    import pygame

    from nback_trainer.app import run

    def inject(frame: int) -> None:
        # Main Menu -> Start Audio, claim a match, back out.
        if frame == 1:
            _key(pygame.K_DOWN)
        elif frame == 2:
            _key(pygame.K_RETURN)
        elif frame == 4:
            _key(pygame.K_SPACE)
        elif frame == 6:
            _key(pygame.K_ESCAPE)

    assert run(max_frames=10, event_injector=inject) == 0
