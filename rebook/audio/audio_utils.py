"""Audio utility functions - duration probing, format helpers, and ffmpeg paths."""

import json
import subprocess
import tempfile
from pathlib import Path

import static_ffmpeg

from rebook.models import AudioClip

MIME_EXTENSIONS = {
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/wave": "wav",
    "audio/ogg": "ogg",
    "audio/aac": "aac",
    "audio/mp4": "m4a",
    "audio/flac": "flac",
}


def extension_for_mime(mime: str) -> str:
    """File extension for an audio mime type ('bin' when unknown)."""
    return MIME_EXTENSIONS.get(mime.split(";")[0].strip().lower(), "bin")


def get_ffmpeg_paths() -> tuple[str, str]:
    """Return (ffmpeg_path, ffprobe_path) using the bundled static-ffmpeg binaries.

    Downloads binaries on first use if not already present.
    """
    ffmpeg_path, ffprobe_path = static_ffmpeg.run.get_or_fetch_platform_executables_else_raise()
    return ffmpeg_path, ffprobe_path


def get_ffprobe() -> str:
    """Return the path to the ffprobe executable."""
    _, ffprobe = get_ffmpeg_paths()
    return ffprobe


def check_ffmpeg() -> None:
    """Verify that ffmpeg and ffprobe are available (downloads if needed)."""
    try:
        get_ffmpeg_paths()
    except Exception as e:
        raise RuntimeError(
            f"Unable to obtain ffmpeg: {e}\n"
            f"Try reinstalling: pip install --force-reinstall static-ffmpeg"
        ) from e


def probe_duration_ms(audio_path: Path) -> int:
    """Get audio file duration in milliseconds using ffprobe."""
    ffprobe = get_ffprobe()
    result = subprocess.run(
        [
            ffprobe, "-v", "quiet",
            "-print_format", "json",
            "-show_format",
            str(audio_path),
        ],
        capture_output=True,
        text=True,
        check=True,
    )
    data = json.loads(result.stdout)
    duration_seconds = float(data["format"]["duration"])
    return int(duration_seconds * 1000)


def probe_clip_duration_ms(clip: AudioClip) -> int:
    """Duration of an in-memory clip, probed through a temporary file."""
    suffix = f".{extension_for_mime(clip.mime)}"
    with tempfile.TemporaryDirectory(prefix="rebook_") as tmp:
        path = Path(tmp) / f"clip{suffix}"
        path.write_bytes(clip.data)
        return probe_duration_ms(path)
