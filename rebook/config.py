"""Reader configuration from environment variables and ``.env`` files."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from rebook.mapper import DEFAULT_LOOKAHEAD
from rebook.playback import CHUNK_SIZE
from rebook.text.paginator import DEFAULT_WORD_LIMIT

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path.home() / ".rebook"


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning("Ignoring %s=%r: not an integer", name, value)
        return default


@dataclass
class ReaderConfig:
    """Settings shared by the CLI and the web server."""
    word_limit: int = DEFAULT_WORD_LIMIT
    lookahead_pages: int = DEFAULT_LOOKAHEAD
    chunk_size: int = CHUNK_SIZE
    data_dir: Path = field(default_factory=lambda: DEFAULT_DATA_DIR)
    provider: str = "edge"
    voice: str = ""
    language: str = "en"
    external_tts_url: Optional[str] = None
    external_tts_api_key: Optional[str] = None

    def __post_init__(self) -> None:
        if self.word_limit <= 0:
            raise ValueError("word_limit must be positive")
        if self.lookahead_pages < 1:
            raise ValueError("lookahead_pages must be at least 1")
        if self.chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")
        self.data_dir = Path(self.data_dir).expanduser()

    @property
    def library_path(self) -> Path:
        return self.data_dir / "library.json"

    @property
    def positions_path(self) -> Path:
        return self.data_dir / "positions.json"

    def provider_options(self) -> dict:
        """Constructor arguments for the configured narration provider."""
        if self.provider == "external":
            return {"base_url": self.external_tts_url, "api_key": self.external_tts_api_key}
        return {}

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "ReaderConfig":
        """Build a config from ``REBOOK_*`` variables (loading ``.env`` first)."""
        if dotenv:
            load_dotenv()
        return cls(
            word_limit=_env_int("REBOOK_WORD_LIMIT", DEFAULT_WORD_LIMIT),
            lookahead_pages=_env_int("REBOOK_LOOKAHEAD_PAGES", DEFAULT_LOOKAHEAD),
            chunk_size=_env_int("REBOOK_CHUNK_SIZE", CHUNK_SIZE),
            data_dir=Path(os.environ.get("REBOOK_DATA_DIR") or DEFAULT_DATA_DIR),
            provider=os.environ.get("REBOOK_PROVIDER", "edge"),
            voice=os.environ.get("REBOOK_VOICE", ""),
            language=os.environ.get("REBOOK_LANGUAGE", "en"),
            external_tts_url=os.environ.get("REBOOK_EXTERNAL_TTS_URL") or None,
            external_tts_api_key=os.environ.get("REBOOK_EXTERNAL_TTS_API_KEY") or None,
        )
