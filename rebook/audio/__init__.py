"""Audio playback sinks and ffmpeg helpers."""
