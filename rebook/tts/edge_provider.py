"""Edge TTS provider - free online neural TTS via Microsoft Edge."""

import asyncio
import logging
import re
from threading import Thread
from typing import Optional

from rebook.models import AudioClip, NarrationConfig
from rebook.tts import register_provider
from rebook.tts.base import NarrationProvider

logger = logging.getLogger(__name__)

# Default voices per language
DEFAULT_VOICES = {
    "en": "en-US-AriaNeural",
    "it": "it-IT-IsabellaNeural",
    "es": "es-ES-ElviraNeural",
    "fr": "fr-FR-DeniseNeural",
    "de": "de-DE-KatjaNeural",
}

# Max characters per TTS request to avoid Edge TTS limits
MAX_CHUNK_CHARS = 3000


def _run_async(coro):
    """Run a coroutine from sync code, even if an event loop is already running.

    Inside a running loop (e.g. FastAPI/uvicorn) the coroutine runs in a
    fresh event loop on a separate thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)

    result = None
    exception = None

    def _target():
        nonlocal result, exception
        try:
            result = asyncio.run(coro)
        except Exception as e:
            exception = e

    t = Thread(target=_target)
    t.start()
    t.join()

    if exception:
        raise exception
    return result


@register_provider("edge")
class EdgeNarrationProvider(NarrationProvider):
    """Narration using Microsoft Edge's free online neural voices."""

    def initialize(self) -> None:
        import edge_tts  # noqa: F401

    async def synthesize(self, text: str, config: NarrationConfig) -> AudioClip:
        import edge_tts

        voice = config.voice or DEFAULT_VOICES.get(config.language, DEFAULT_VOICES["en"])
        rate = self._speed_to_rate(config.speed)
        pitch = config.pitch or "+0Hz"

        audio = bytearray()
        for chunk in self._split_text(text):
            communicate = edge_tts.Communicate(chunk, voice, rate=rate, pitch=pitch)
            async for message in communicate.stream():
                if message["type"] == "audio":
                    audio.extend(message["data"])

        if not audio:
            raise RuntimeError(f"Edge TTS returned no audio (text length: {len(text)})")
        return AudioClip(data=bytes(audio), mime="audio/mpeg")

    def list_voices(self, language: Optional[str] = None) -> list[dict]:
        return _run_async(self._list_voices_async(language))

    async def _list_voices_async(self, language: Optional[str] = None) -> list[dict]:
        import edge_tts

        voices = await edge_tts.list_voices()
        result = []
        for v in voices:
            locale = v.get("Locale", "")
            if language and not locale.lower().startswith(language.lower()):
                continue
            result.append({
                "name": v["ShortName"],
                "language": locale,
                "gender": v.get("Gender", ""),
            })
        return result

    @property
    def name(self) -> str:
        return "Edge TTS"

    @property
    def output_format(self) -> str:
        return "mp3"

    @staticmethod
    def _speed_to_rate(speed: float) -> str:
        """Convert speed multiplier (e.g. 1.2) to Edge TTS rate string (e.g. '+20%')."""
        percent = round((speed - 1.0) * 100)
        if percent >= 0:
            return f"+{percent}%"
        return f"{percent}%"

    @staticmethod
    def _split_text(text: str) -> list[str]:
        """Split text into requests at sentence boundaries, respecting MAX_CHUNK_CHARS."""
        if len(text) <= MAX_CHUNK_CHARS:
            return [text]

        sentences = re.split(r"(?<=[.!?…])\s+", text)

        chunks = []
        current_chunk = ""

        for sentence in sentences:
            if len(current_chunk) + len(sentence) + 1 > MAX_CHUNK_CHARS and current_chunk:
                chunks.append(current_chunk.strip())
                current_chunk = sentence
            else:
                current_chunk = f"{current_chunk} {sentence}" if current_chunk else sentence

        if current_chunk.strip():
            chunks.append(current_chunk.strip())

        return chunks if chunks else [text]
