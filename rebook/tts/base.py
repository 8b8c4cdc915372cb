"""Abstract base class for narration providers."""

from abc import ABC, abstractmethod
from typing import Optional

from rebook.models import AudioClip, NarrationConfig


class NarrationProvider(ABC):
    """Abstract base class that all narration providers must implement."""

    @abstractmethod
    def initialize(self) -> None:
        """Initialize the provider (load models, check availability).

        Raises:
            RuntimeError: If the provider cannot be used (missing deps, etc.).
        """
        ...

    @abstractmethod
    async def synthesize(self, text: str, config: NarrationConfig) -> AudioClip:
        """Synthesize text to an in-memory audio clip.

        Args:
            text: Plain text to narrate.
            config: Voice, speed, pitch settings.

        Raises:
            RuntimeError: If synthesis fails.
        """
        ...

    @abstractmethod
    def list_voices(self, language: Optional[str] = None) -> list[dict]:
        """Return available voices, optionally filtered by language.

        Each dict contains at least 'name' and 'language' keys.
        """
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable provider name."""
        ...

    @property
    @abstractmethod
    def output_format(self) -> str:
        """Audio format produced natively: 'wav' or 'mp3'."""
        ...
