"""Silent provider - offline placeholder audio, for previews and testing."""

import io
import wave
from typing import Optional

from rebook.models import AudioClip, NarrationConfig
from rebook.tts import register_provider
from rebook.tts.base import NarrationProvider

SAMPLE_RATE = 16000
# Roughly the pace of narrated speech
WORDS_PER_SECOND = 2.5


@register_provider("silent")
class SilentNarrationProvider(NarrationProvider):
    """Produces silence as long as the text would take to read aloud."""

    def initialize(self) -> None:
        pass

    async def synthesize(self, text: str, config: NarrationConfig) -> AudioClip:
        seconds = max(len(text.split()) / (WORDS_PER_SECOND * max(config.speed, 0.1)), 0.1)
        frames = int(seconds * SAMPLE_RATE)

        buffer = io.BytesIO()
        with wave.open(buffer, "wb") as wav:
            wav.setnchannels(1)
            wav.setsampwidth(2)
            wav.setframerate(SAMPLE_RATE)
            wav.writeframes(b"\x00\x00" * frames)
        return AudioClip(data=buffer.getvalue(), mime="audio/wav")

    def list_voices(self, language: Optional[str] = None) -> list[dict]:
        return [{"name": "silence", "language": language or "any", "gender": ""}]

    @property
    def name(self) -> str:
        return "Silent"

    @property
    def output_format(self) -> str:
        return "wav"
