"""Kokoro provider - open source, offline neural TTS."""

import asyncio
import io
import logging
from typing import Optional

from rebook.models import AudioClip, NarrationConfig
from rebook.tts import register_provider
from rebook.tts.base import NarrationProvider

logger = logging.getLogger(__name__)

# Kokoro language code prefixes
LANGUAGE_CODES = {
    "en": "a",  # American English
    "it": "i",
    "es": "e",
    "fr": "f",
    "ja": "j",
    "zh": "z",
}

DEFAULT_VOICES = {
    "en": "af_heart",
    "it": "if_sara",
    "es": "ef_dora",
    "fr": "ff_siwis",
}

KNOWN_VOICES = {
    "en": [
        {"name": "af_heart", "language": "en", "gender": "Female"},
        {"name": "am_adam", "language": "en", "gender": "Male"},
    ],
    "it": [
        {"name": "if_sara", "language": "it", "gender": "Female"},
        {"name": "im_nicola", "language": "it", "gender": "Male"},
    ],
}

SAMPLE_RATE = 24000


@register_provider("kokoro")
class KokoroNarrationProvider(NarrationProvider):
    """Narration using Kokoro, a lightweight open source neural TTS."""

    def __init__(self):
        self._pipeline = None
        self._lang_code = None

    def initialize(self) -> None:
        import kokoro  # noqa: F401
        import soundfile  # noqa: F401
        logger.info(
            "Kokoro ready. The model (~350 MB) is downloaded from HuggingFace on first use."
        )

    async def synthesize(self, text: str, config: NarrationConfig) -> AudioClip:
        # Inference blocks; keep the event loop free while it runs
        data = await asyncio.to_thread(self._synthesize_wav, text, config)
        return AudioClip(data=data, mime="audio/wav")

    def _synthesize_wav(self, text: str, config: NarrationConfig) -> bytes:
        import numpy as np
        import soundfile as sf
        from kokoro import KPipeline

        lang_code = LANGUAGE_CODES.get(config.language, "a")
        if self._pipeline is None or self._lang_code != lang_code:
            logger.info("Loading Kokoro model (language: %s)...", lang_code)
            self._pipeline = KPipeline(lang_code=lang_code)
            self._lang_code = lang_code

        voice = config.voice or DEFAULT_VOICES.get(config.language, DEFAULT_VOICES["en"])

        audio_segments = []
        for _graphemes, _phonemes, audio in self._pipeline(text, voice=voice, speed=config.speed):
            if audio is not None:
                audio_segments.append(audio)

        if not audio_segments:
            raise RuntimeError(f"Kokoro produced no audio (text length: {len(text)})")

        buffer = io.BytesIO()
        sf.write(buffer, np.concatenate(audio_segments), SAMPLE_RATE, format="WAV")
        return buffer.getvalue()

    def list_voices(self, language: Optional[str] = None) -> list[dict]:
        if language and language in KNOWN_VOICES:
            return KNOWN_VOICES[language]
        if language:
            return []
        all_voices = []
        for voices in KNOWN_VOICES.values():
            all_voices.extend(voices)
        return all_voices

    @property
    def name(self) -> str:
        return "Kokoro TTS"

    @property
    def output_format(self) -> str:
        return "wav"
