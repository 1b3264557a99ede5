"""Pygame UI shell for the N-Back Trainer.

A home menu starts a Visual (tile grid) or Audio (spoken letter) round; the
game screen renders the session's observable state and routes input back
as responses.

Timing/scoring/RNG/state lives in nback_trainer/* (engine modules); this
module only draws and forwards input.
"""

from __future__ import annotations

import logging
import math
import os
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import pygame

from .clock import RealClock
from .config import GameConfig, Modality, load_game_config
from .evaluator import Feedback
from .persistence import ScoreStore, default_db_path
from .playback import SpeechPlayback, letter_for
from .presentation import Phase
from .results import round_result_from_session
from .session import BLANK_STIMULUS, SessionController

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV = "NBACK_CONFIG_PATH"

WINDOW_SIZE = (960, 640)
TARGET_FPS = 60

_BG = (3, 9, 78)
_PANEL_BG = (8, 18, 104)
_BORDER = (226, 236, 255)
_TEXT_MAIN = (238, 245, 255)
_TEXT_MUTED = (186, 200, 224)
_TILE_IDLE = (62, 84, 152)
_TILE_LIT = (220, 60, 60)

_FEEDBACK_COLORS: dict[Feedback, tuple[int, int, int]] = {
    Feedback.NONE: _TEXT_MAIN,
    Feedback.CORRECT: (80, 220, 120),
    Feedback.INCORRECT: (235, 80, 80),
}

_DIGIT_KEYS: dict[int, int] = {
    **{getattr(pygame, f"K_{n}"): n for n in range(1, 10)},
    **{getattr(pygame, f"K_KP{n}"): n for n in range(1, 10)},
}


class Screen(Protocol):
    def handle_event(self, event: pygame.event.Event) -> None: ...
    def render(self, surface: pygame.Surface) -> None: ...


@dataclass(frozen=True, slots=True)
class MenuItem:
    label: str
    action: Callable[[], None]


class App:
    def __init__(self, surface: pygame.Surface, font: pygame.font.Font) -> None:
        self._surface = surface
        self._font = font
        self._screens: list[Screen] = []
        self._running = True

    @property
    def running(self) -> bool:
        return self._running

    @property
    def font(self) -> pygame.font.Font:
        return self._font

    def push(self, screen: Screen) -> None:
        self._screens.append(screen)

    def pop(self) -> None:
        # Never pop the last/root screen; root handles its own quit/back behavior.
        if len(self._screens) > 1:
            self._screens.pop()

    def quit(self) -> None:
        self._running = False

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.QUIT:
            self.quit()
            return
        if not self._screens:
            return
        self._screens[-1].handle_event(event)

    def render(self) -> None:
        if not self._screens:
            return
        self._screens[-1].render(self._surface)


class MenuScreen:
    def __init__(
        self,
        app: App,
        title: str,
        items: list[MenuItem],
        *,
        info_lines: Callable[[], list[str]] | None = None,
        is_root: bool = False,
    ) -> None:
        self._app = app
        self._title = title
        self._items = items
        self._info_lines = info_lines
        self._selected = 0
        self._is_root = is_root
        self._title_font = pygame.font.Font(None, 42)
        self._item_font = pygame.font.Font(None, 32)
        self._hint_font = pygame.font.Font(None, 22)

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        if event.key in (pygame.K_UP, pygame.K_w):
            self._move(-1)
        elif event.key in (pygame.K_DOWN, pygame.K_s):
            self._move(1)
        elif event.key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
            self._activate()
        elif event.key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
            self._back()

    def _move(self, delta: int) -> None:
        if not self._items:
            return
        self._selected = (self._selected + delta) % len(self._items)

    def _activate(self) -> None:
        if not self._items:
            return
        self._items[self._selected].action()

    def _back(self) -> None:
        if self._is_root:
            self._app.quit()
        else:
            self._app.pop()

    def render(self, surface: pygame.Surface) -> None:
        w, h = surface.get_size()
        surface.fill(_BG)

        margin = max(10, min(26, w // 34))
        frame = pygame.Rect(margin, margin, max(260, w - margin * 2), max(220, h - margin * 2))
        pygame.draw.rect(surface, _PANEL_BG, frame)
        pygame.draw.rect(surface, _BORDER, frame, 2)

        title = self._title_font.render(self._title, True, _TEXT_MAIN)
        surface.blit(title, title.get_rect(midtop=(frame.centerx, frame.y + 18)))

        y = frame.y + 72
        if self._info_lines is not None:
            for line in self._info_lines():
                text = self._hint_font.render(line, True, _TEXT_MUTED)
                surface.blit(text, text.get_rect(midtop=(frame.centerx, y)))
                y += text.get_height() + 6
            y += 18

        row_h = 40
        for idx, item in enumerate(self._items):
            row = pygame.Rect(frame.x + 60, y, frame.w - 120, row_h)
            selected = idx == self._selected
            pygame.draw.rect(surface, (244, 248, 255) if selected else (9, 20, 106), row)
            pygame.draw.rect(surface, (120, 142, 196) if selected else _TILE_IDLE, row, 1)
            color = (14, 26, 74) if selected else _TEXT_MAIN
            text = self._item_font.render(item.label, True, color)
            surface.blit(text, (row.x + 10, row.y + (row.h - text.get_height()) // 2))
            y += row_h + 8

        foot = self._hint_font.render("Enter/Space: Select  |  Esc: Back", True, _TEXT_MUTED)
        surface.blit(foot, foot.get_rect(midbottom=(frame.centerx, frame.bottom - 10)))


def grid_columns(combinations: int) -> int:
    return max(1, math.ceil(math.sqrt(combinations)))


class GameScreen:
    """Renders one session and routes tile clicks / key presses to it."""

    def __init__(
        self,
        app: App,
        *,
        session: SessionController,
        playback: SpeechPlayback,
        store: ScoreStore | None,
        on_round_recorded: Callable[[], None] | None = None,
    ) -> None:
        self._app = app
        self._session = session
        self._playback = playback
        self._store = store
        self._on_round_recorded = on_round_recorded
        self._tile_hitboxes: list[tuple[pygame.Rect, int]] = []

        self._small_font = pygame.font.Font(None, 26)
        self._mid_font = pygame.font.Font(None, 48)
        self._big_font = pygame.font.Font(None, 160)

        self._unsubscribe = session.phase.subscribe(self._on_phase)

    def start(self) -> None:
        self._session.start_round()

    def close(self) -> None:
        self._session.stop()
        self._unsubscribe()
        self._app.pop()

    def _on_phase(self, phase: Phase) -> None:
        if phase is not Phase.COMPLETE or self._store is None:
            return
        self._store.record_round(round_result_from_session(self._session))
        if self._on_round_recorded is not None:
            self._on_round_recorded()

    def handle_event(self, event: pygame.event.Event) -> None:
        cfg = self._session.config
        if cfg is None:
            return

        if event.type == pygame.MOUSEBUTTONDOWN and getattr(event, "button", 0) == 1:
            pos = getattr(event, "pos", None)
            if pos is None or cfg.modality is not Modality.VISUAL:
                return
            for rect, tile in self._tile_hitboxes:
                if rect.collidepoint(pos):
                    self._session.submit_response(tile)
                    return
            return

        if event.type != pygame.KEYDOWN:
            return
        if event.key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
            self.close()
        elif event.key == pygame.K_r:
            self._session.reset_round()
        elif event.key in (pygame.K_RETURN, pygame.K_KP_ENTER):
            if self._session.phase.value is Phase.COMPLETE:
                self._session.start_round()
        elif event.key == pygame.K_SPACE:
            if cfg.modality is Modality.AUDIO:
                self._session.submit_response()
        elif event.key in _DIGIT_KEYS and cfg.modality is Modality.VISUAL:
            tile = _DIGIT_KEYS[event.key]
            if tile <= cfg.combinations:
                self._session.submit_response(tile)

    def render(self, surface: pygame.Surface) -> None:
        self._session.update()
        self._playback.update()
        snap = self._session.snapshot()
        cfg = self._session.config

        w, h = surface.get_size()
        surface.fill(_BG)

        header = self._small_font.render(
            f"Game Type: {snap.game_type.value.title()}   N-Back: {snap.n_back}   "
            f"Event {snap.current_index}/{snap.round_size}   High score: {snap.high_score}",
            True,
            _TEXT_MUTED,
        )
        surface.blit(header, (24, 18))

        stage = pygame.Rect(0, 60, w, h - 180)
        if cfg is not None and cfg.modality is Modality.VISUAL:
            self._render_grid(surface, stage, cfg.combinations, snap.current_stimulus)
        else:
            self._tile_hitboxes = []
            self._render_letter(surface, stage, snap.current_stimulus)

        score = self._mid_font.render(f"Score: {snap.score}", True, _FEEDBACK_COLORS[snap.feedback])
        surface.blit(score, score.get_rect(midtop=(w // 2, stage.bottom + 12)))

        if snap.phase is Phase.COMPLETE:
            hint = "Round complete. Enter: Play again  R: Reset  Esc: Back"
        elif cfg is not None and cfg.modality is Modality.AUDIO:
            hint = "Space: Match  R: Reset  Esc: Back"
        else:
            hint = "Click tile or 1-9: Match  R: Reset  Esc: Back"
        foot = self._small_font.render(hint, True, _TEXT_MUTED)
        surface.blit(foot, foot.get_rect(midbottom=(w // 2, h - 14)))

    def _render_grid(self, surface: pygame.Surface, area: pygame.Rect, combinations: int, lit: int) -> None:
        cols = grid_columns(combinations)
        rows = math.ceil(combinations / cols)
        gap = 8
        cell = max(24, min((area.w - 80) // cols, (area.h - 20) // rows) - gap)
        total_w = cols * cell + (cols - 1) * gap
        total_h = rows * cell + (rows - 1) * gap
        x0 = area.centerx - total_w // 2
        y0 = area.centery - total_h // 2

        hitboxes: list[tuple[pygame.Rect, int]] = []
        for tile in range(1, combinations + 1):
            r, c = divmod(tile - 1, cols)
            rect = pygame.Rect(x0 + c * (cell + gap), y0 + r * (cell + gap), cell, cell)
            is_lit = lit != BLANK_STIMULUS and tile == lit
            pygame.draw.rect(surface, _TILE_LIT if is_lit else _TILE_IDLE, rect)
            pygame.draw.rect(surface, _BORDER, rect, 1)
            hitboxes.append((rect, tile))
        self._tile_hitboxes = hitboxes

    def _render_letter(self, surface: pygame.Surface, area: pygame.Rect, value: int) -> None:
        if value == BLANK_STIMULUS:
            return
        try:
            label = letter_for(value)
        except ValueError:
            label = str(value)
        text = self._big_font.render(label, True, _TEXT_MAIN)
        surface.blit(text, text.get_rect(center=area.center))


def _load_config() -> GameConfig:
    explicit = os.environ.get(CONFIG_PATH_ENV)
    if not explicit:
        return GameConfig()
    return load_game_config(Path(explicit).expanduser())


def run(*, max_frames: int | None = None, event_injector: Callable[[int], None] | None = None) -> int:
    pygame.init()

    pygame.display.set_caption("N-Back Trainer")
    surface = pygame.display.set_mode(WINDOW_SIZE, pygame.RESIZABLE)

    font = pygame.font.Font(None, 36)
    clock = pygame.time.Clock()

    app = App(surface=surface, font=font)

    base_config = _load_config()
    store = ScoreStore(default_db_path())
    playback = SpeechPlayback()
    session = SessionController(clock=RealClock(), playback=playback, persistence=store)
    logger.info("Trainer started (store=%s, high score=%d)", store.path, session.high_score.value)

    recent_lines: list[str] = []

    def refresh_recent() -> None:
        recent_lines[:] = [
            f"{str(row['modality']).title()} {row['n_back']}-back: {row['score']}/{row['targets']} targets"
            for row in store.recent_rounds(limit=3)
        ]

    refresh_recent()

    def open_game(modality: Modality) -> None:
        session.configure(base_config.with_modality(modality))
        screen = GameScreen(
            app,
            session=session,
            playback=playback,
            store=store,
            on_round_recorded=refresh_recent,
        )
        app.push(screen)
        screen.start()

    def home_info() -> list[str]:
        cfg = base_config
        lines = [
            f"High-Score = {session.high_score.value}",
            f"N-Back Level: {cfg.n_back}",
            f"Time Between Events: {cfg.stimulus_interval_ms} ms",
            f"Events in Round: {cfg.round_size}",
        ]
        if recent_lines:
            lines.append("Recent rounds:")
            lines.extend(recent_lines)
        return lines

    main_items = [
        MenuItem("Start Visual", lambda: open_game(Modality.VISUAL)),
        MenuItem("Start Audio", lambda: open_game(Modality.AUDIO)),
        MenuItem("Quit", app.quit),
    ]
    app.push(MenuScreen(app, "N-Back Trainer", main_items, info_lines=home_info, is_root=True))

    frame = 0
    try:
        while app.running:
            if event_injector is not None:
                event_injector(frame)

            for event in pygame.event.get():
                app.handle_event(event)

            app.render()

            pygame.display.flip()

            frame += 1
            if max_frames is not None and frame >= max_frames:
                break

            clock.tick(TARGET_FPS)
    finally:
        session.stop()
        playback.stop()
        pygame.quit()

    return 0
