"""External HTTP narration provider.

Posts ``{"text", "voiceId", "format"}`` to ``<base_url>/synthesize`` and
accepts either an ``audio/*`` body or JSON ``{"audioBase64", "mime"}``.
"""

import asyncio
import base64
import json
import logging
import urllib.error
import urllib.request
from typing import Optional

from rebook.models import AudioClip, NarrationConfig
from rebook.tts import register_provider
from rebook.tts.base import NarrationProvider

logger = logging.getLogger(__name__)

# Timeout for HTTP requests (seconds)
REQUEST_TIMEOUT = 60


@register_provider("external")
class ExternalNarrationProvider(NarrationProvider):
    """Narration through a user-hosted TTS HTTP service."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        output_format: str = "mp3",
    ):
        self.base_url = base_url
        self.api_key = api_key
        self._output_format = output_format

    def initialize(self) -> None:
        if not self.base_url:
            raise RuntimeError("External TTS base URL missing (set REBOOK_EXTERNAL_TTS_URL)")

    async def synthesize(self, text: str, config: NarrationConfig) -> AudioClip:
        return await asyncio.to_thread(self._synthesize_blocking, text, config)

    def _synthesize_blocking(self, text: str, config: NarrationConfig) -> AudioClip:
        payload = {
            "text": text,
            "voiceId": config.voice or None,
            "format": self._output_format,
        }
        headers = {"Content-Type": "application/json", "User-Agent": "rebook/0.1"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        req = urllib.request.Request(
            self.endpoint,
            data=json.dumps(payload).encode("utf-8"),
            headers=headers,
            method="POST",
        )
        try:
            with urllib.request.urlopen(req, timeout=REQUEST_TIMEOUT) as resp:
                content_type = resp.headers.get("Content-Type", "")
                body = resp.read()
        except urllib.error.HTTPError as e:
            detail = e.read().decode("utf-8", errors="replace")
            raise RuntimeError(f"TTS service returned {e.code}: {detail}") from e
        except urllib.error.URLError as e:
            raise RuntimeError(f"TTS request failed: {e.reason}") from e

        return self._parse_response(content_type, body)

    @staticmethod
    def _parse_response(content_type: str, body: bytes) -> AudioClip:
        if content_type.startswith("audio/"):
            return AudioClip(data=body, mime=content_type.split(";")[0].strip())

        try:
            data = json.loads(body)
            audio = base64.b64decode(data["audioBase64"])
        except (ValueError, KeyError, TypeError) as e:
            raise RuntimeError(f"Failed parsing TTS JSON response: {e}") from e
        if not audio:
            raise RuntimeError("TTS service returned empty audio")
        return AudioClip(data=audio, mime=data.get("mime") or "audio/mpeg")

    @property
    def endpoint(self) -> str:
        return f"{(self.base_url or '').rstrip('/')}/synthesize"

    def list_voices(self, language: Optional[str] = None) -> list[dict]:
        return []

    @property
    def name(self) -> str:
        return "External TTS"

    @property
    def output_format(self) -> str:
        return self._output_format
