"""Audio sinks: where narrated chunks are played."""

import asyncio
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from rebook.audio.audio_utils import extension_for_mime, probe_clip_duration_ms
from rebook.models import AudioClip

logger = logging.getLogger(__name__)


class AudioSink(ABC):
    """Plays one clip at a time."""

    @abstractmethod
    async def play(self, clip: AudioClip) -> None:
        """Play a clip and return when playback has ended or was stopped."""
        ...

    @abstractmethod
    def stop(self) -> None:
        """Stop the clip currently playing, if any."""
        ...


class FileAudioSink(AudioSink):
    """Writes each chunk to ``output_dir`` as ``chunk_<start index>.<ext>``.

    With ``realtime`` the sink also waits for the clip's duration, so reading
    position advances at listening pace.
    """

    def __init__(self, output_dir: str | Path, realtime: bool = False):
        self.output_dir = Path(output_dir)
        self.realtime = realtime
        self.written: list[Path] = []
        self._stopped: Optional[asyncio.Event] = None

    async def play(self, clip: AudioClip) -> None:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / f"chunk_{clip.start_index:05d}.{extension_for_mime(clip.mime)}"
        path.write_bytes(clip.data)
        self.written.append(path)
        logger.debug("Wrote %s (%d bytes)", path.name, len(clip.data))

        if not self.realtime:
            return

        duration_ms = await asyncio.to_thread(probe_clip_duration_ms, clip)
        self._stopped = asyncio.Event()
        try:
            await asyncio.wait_for(self._stopped.wait(), timeout=duration_ms / 1000)
        except asyncio.TimeoutError:
            pass
        finally:
            self._stopped = None

    def stop(self) -> None:
        if self._stopped is not None:
            self._stopped.set()
