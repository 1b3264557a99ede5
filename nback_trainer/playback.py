from __future__ import annotations

import importlib.util
import logging
import os
import shutil
import string
import subprocess
import sys
import time

from .config import Modality

logger = logging.getLogger(__name__)

# Letters that are easy to tell apart when spoken.
LETTERS: tuple[str, ...] = tuple(c for c in string.ascii_uppercase if c not in {"I", "O", "Q"})

SPEECH_BACKENDS: tuple[str, ...] = ("say", "powershell", "pyttsx3", "espeak")


def letter_for(value: int) -> str:
    """Map a stimulus value in [1, len(LETTERS)] to its spoken letter."""

    if not (1 <= value <= len(LETTERS)):
        raise ValueError(f"no letter for stimulus {value}")
    return LETTERS[value - 1]


class NullPlayback:
    """Playback that renders nothing. The UI reads stimuli from observables."""

    def on_stimulus(self, value: int, modality: Modality) -> None:
        return None

    def stop(self) -> None:
        return None

    def update(self) -> None:
        return None


class SpeechPlayback:
    """Speaks audio stimuli as letters through an out-of-process TTS command.

    One utterance at a time: a new letter terminates whatever is still being
    spoken. update() reaps finished processes and cuts off any that overrun.
    """

    max_utterance_s = 3.0

    def __init__(self) -> None:
        self._backends: list[str] = []
        self._proc: subprocess.Popen[bytes] | None = None
        self._started_s = 0.0

        if os.environ.get("NBACK_DISABLE_TTS", "0") == "1":
            return
        if os.environ.get("SDL_AUDIODRIVER", "").strip().lower() == "dummy":
            # Headless runs stay silent.
            return

        self._backends = _available_backends(os.environ.get("NBACK_TTS_BACKEND", ""))
        if self._backends:
            logger.info("Speech playback using %s", self._backends[0])
        else:
            logger.info("No speech backend available; audio stimuli are shown as text only")

    @property
    def enabled(self) -> bool:
        return bool(self._backends)

    @property
    def backend(self) -> str | None:
        return self._backends[0] if self._backends else None

    @property
    def speaking(self) -> bool:
        return self._proc is not None

    def on_stimulus(self, value: int, modality: Modality) -> None:
        if modality is not Modality.AUDIO or not self._backends:
            return
        try:
            letter = letter_for(value)
        except ValueError:
            logger.warning("Stimulus %d has no spoken letter", value)
            return
        self.stop()
        while self._backends:
            backend = self._backends[0]
            try:
                self._proc = subprocess.Popen(
                    _speech_command(backend, letter),
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.DEVNULL,
                )
            except OSError as exc:
                logger.warning("Speech backend %s failed (%s); trying the next one", backend, exc)
                self._backends.pop(0)
                continue
            self._started_s = time.monotonic()
            return

    def update(self) -> None:
        proc = self._proc
        if proc is None:
            return
        if proc.poll() is not None:
            self._proc = None
        elif time.monotonic() - self._started_s > self.max_utterance_s:
            self.stop()

    def stop(self) -> None:
        proc, self._proc = self._proc, None
        if proc is None or proc.poll() is not None:
            return
        proc.terminate()
        try:
            proc.wait(timeout=0.5)
        except subprocess.TimeoutExpired:
            proc.kill()


_PYTTSX3_SCRIPT = (
    "import sys, pyttsx3\n"
    "engine = pyttsx3.init()\n"
    "engine.setProperty('rate', 150)\n"
    "engine.say(sys.argv[1])\n"
    "engine.runAndWait()\n"
)

_POWERSHELL_SCRIPT = (
    "Add-Type -AssemblyName System.Speech; "
    "(New-Object System.Speech.Synthesis.SpeechSynthesizer).Speak($args[0]);"
)


def _speech_command(backend: str, text: str) -> list[str]:
    if backend == "say":
        return ["say", "-r", "150", text]
    if backend == "powershell":
        exe = shutil.which("powershell") or shutil.which("pwsh") or "powershell"
        return [exe, "-NoProfile", "-NonInteractive", "-Command", _POWERSHELL_SCRIPT, text]
    if backend == "pyttsx3":
        return [sys.executable, "-c", _PYTTSX3_SCRIPT, text]
    if backend == "espeak":
        return ["espeak", "-s", "150", text]
    raise ValueError(f"unknown speech backend: {backend!r}")


def _backend_installed(backend: str) -> bool:
    if backend == "pyttsx3":
        return importlib.util.find_spec("pyttsx3") is not None
    if backend == "powershell":
        return shutil.which("powershell") is not None or shutil.which("pwsh") is not None
    return shutil.which(backend) is not None


def _available_backends(forced: str = "") -> list[str]:
    """Installed backends in preference order; ``forced`` alone if it is installed."""

    forced = forced.strip().lower()
    if forced in SPEECH_BACKENDS and _backend_installed(forced):
        return [forced]

    preferred: list[str] = []
    if sys.platform == "darwin":
        preferred.append("say")
    if os.name == "nt":
        preferred.append("powershell")
    preferred.extend(("pyttsx3", "espeak"))
    return [name for name in preferred if _backend_installed(name)]
