"""Event fan-out and browser-side audio playback for the web reader."""

import asyncio
import base64
import logging
import uuid
from typing import Optional

from rebook.audio.sink import AudioSink
from rebook.models import AudioClip

logger = logging.getLogger(__name__)


class EventHub:
    """Fan-out of reader events to SSE subscribers.

    Every subscriber gets its own queue; publishing never blocks.
    """

    def __init__(self, max_queued: int = 256):
        self._subscribers: set[asyncio.Queue] = set()
        self._max_queued = max_queued

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._max_queued)
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)

    def publish(self, event: str, data: dict) -> None:
        for queue in list(self._subscribers):
            try:
                queue.put_nowait({"event": event, "data": data})
            except asyncio.QueueFull:
                logger.warning("Dropping '%s' event for a slow subscriber", event)


class ClientAudioSink(AudioSink):
    """Sends clips to the browser and waits for its "ended" callback."""

    def __init__(self, hub: EventHub):
        self.hub = hub
        self.current_clip_id: Optional[str] = None
        self._ended: Optional[asyncio.Future] = None

    async def play(self, clip: AudioClip) -> None:
        clip_id = uuid.uuid4().hex[:12]
        loop = asyncio.get_running_loop()
        self._ended = loop.create_future()
        self.current_clip_id = clip_id
        self.hub.publish("audio", {
            "clipId": clip_id,
            "startIndex": clip.start_index,
            "mime": clip.mime,
            "audioBase64": base64.b64encode(clip.data).decode("ascii"),
        })
        try:
            await self._ended
        finally:
            if self.current_clip_id == clip_id:
                self.current_clip_id = None
                self._ended = None

    def ended(self, clip_id: str) -> bool:
        """Mark a clip as finished. Returns False for unknown or stale clips."""
        if clip_id != self.current_clip_id or self._ended is None:
            return False
        if not self._ended.done():
            self._ended.set_result(None)
        return True

    def stop(self) -> None:
        if self._ended is not None and not self._ended.done():
            self._ended.set_result(None)
        if self.current_clip_id is not None:
            self.hub.publish("stop", {"clipId": self.current_clip_id})
