"""Speech synthesis boundary used by the speech backend."""

from .interfaces import AudioOutputDevice, SpeechSynthesizer

__all__ = ["AudioOutputDevice", "SpeechSynthesizer"]
