"""Local announcement engine powered by ``pyttsx3``."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from switchboard.errors import BackendUnavailableError

_INSTALL_HINT = "Install extras with: pip install 'switchboard[speech]'"


def _load_engine() -> Any:
    try:
        import pyttsx3
    except ImportError as exc:  # pragma: no cover - import guard
        raise BackendUnavailableError(f"Speech backend unavailable. {_INSTALL_HINT}") from exc
    try:
        return pyttsx3.init()
    except Exception as exc:  # noqa: BLE001
        raise BackendUnavailableError(f"No speech driver could be initialised: {exc}") from exc


class Pyttsx3Announcer:
    """Synthesizer and speaker backed by one pyttsx3 engine.

    pyttsx3 synthesizes and plays in one step, so ``synthesize`` only encodes
    the text and ``play`` does the actual speaking.
    """

    def __init__(
        self,
        *,
        voice_id: str | None = None,
        rate: int | None = None,
        volume: float | None = None,
        engine: Any | None = None,
    ) -> None:
        self._engine = engine if engine is not None else _load_engine()
        if voice_id:
            self._engine.setProperty("voice", voice_id)
        if rate is not None:
            self._engine.setProperty("rate", rate)
        if volume is not None:
            self._engine.setProperty("volume", max(0.0, min(1.0, volume)))

    def voices(self) -> list[tuple[str, str]]:
        """Installed voices as ``(id, name)`` pairs."""
        return [(voice.id, voice.name) for voice in self._engine.getProperty("voices")]

    def synthesize(self, text: str) -> bytes:
        return text.encode("utf-8")

    def play(self, audio_bytes: bytes) -> None:
        text = audio_bytes.decode("utf-8", errors="ignore").strip()
        if not text:
            return
        self._engine.say(text)
        self._engine.runAndWait()

    def save(self, text: str, path: str | Path) -> Path:
        """Render ``text`` to an audio file instead of the speakers."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        self._engine.save_to_file(text, str(target))
        self._engine.runAndWait()
        return target

    def stop(self) -> None:
        self._engine.stop()
