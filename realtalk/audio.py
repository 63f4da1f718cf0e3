"""PCM16 conversion and the shared capture/playback audio state.

Capture arrives at 48 kHz and is decimated to 24 kHz; playback audio is
24 kHz and is upsampled to 48 kHz by repeating each sample.
"""

from __future__ import annotations

import math
import struct
import threading
import time
from collections.abc import Iterable, Sequence

_PCM16_SCALE = 32767.0


def _to_i16(sample: float) -> int:
    if math.isnan(sample):
        return 0
    clamped = max(-1.0, min(1.0, sample))
    return int(clamped * _PCM16_SCALE)


def f32_to_pcm16(samples: Iterable[float]) -> bytes:
    """Encode float samples in [-1, 1] as little-endian signed 16-bit PCM."""
    values = [_to_i16(sample) for sample in samples]
    return struct.pack(f"<{len(values)}h", *values)


def pcm16_to_f32(data: bytes) -> list[float]:
    """Decode little-endian signed 16-bit PCM to floats; a trailing odd byte is ignored."""
    usable = len(data) - len(data) % 2
    return [value / _PCM16_SCALE for (value,) in struct.iter_unpack("<h", data[:usable])]


class AudioEngine:
    """Thread-safe buffers shared between the audio callbacks and the client."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._recorded: list[float] = []
        self._playback: list[float] = []
        self._recording = False
        self._playing = False
        self._position = 0

    @property
    def recording(self) -> bool:
        with self._lock:
            return self._recording

    @recording.setter
    def recording(self, value: bool) -> None:
        with self._lock:
            self._recording = bool(value)

    @property
    def playing(self) -> bool:
        with self._lock:
            return self._playing

    @property
    def position(self) -> int:
        """Playback position in output (48 kHz) frames."""
        with self._lock:
            return self._position

    @property
    def buffered(self) -> int:
        """Number of 24 kHz samples held for playback."""
        with self._lock:
            return len(self._playback)

    def capture(self, samples: Sequence[float]) -> None:
        """Take one 48 kHz input block, keeping every other sample while recording."""
        with self._lock:
            if self._recording:
                self._recorded.extend(samples[::2])

    def render(self, frame_count: int, channel_count: int) -> list[list[float]]:
        """Produce one output block, the same mono signal on every channel."""
        channels = [[0.0] * frame_count for _ in range(channel_count)]
        with self._lock:
            playback = self._playback
            if self._playing and playback and self._position < len(playback) * 2:
                for frame in range(frame_count):
                    sample_index = self._position // 2
                    if sample_index >= len(playback):
                        self._playing = False
                        self._position = 0
                        break
                    sample = playback[sample_index]
                    for channel in channels:
                        channel[frame] = sample
                    self._position += 1
            elif self._playing and not playback:
                self._playing = False
                self._position = 0
        return channels

    def take_recorded(self) -> list[float]:
        """Remove and return everything captured so far."""
        with self._lock:
            recorded, self._recorded = self._recorded, []
        return recorded

    def enqueue_playback(self, samples: Iterable[float]) -> bool:
        """Queue samples for playback.

        If nothing is playing, old audio is discarded and playback restarts
        from the beginning. Returns True when a fresh playback was started.
        """
        with self._lock:
            fresh = not self._playing
            if fresh:
                self._playback.clear()
                self._position = 0
                self._playing = True
            self._playback.extend(samples)
        return fresh

    def stop_playback(self) -> int:
        """Stop playback and drop queued audio; returns the number of samples dropped."""
        with self._lock:
            cleared = len(self._playback)
            self._playback.clear()
            self._playing = False
            self._position = 0
        return cleared

    def reset(self) -> None:
        """Drop all captured and queued audio and stop playback."""
        with self._lock:
            self._recorded.clear()
            self._playback.clear()
            self._playing = False
            self._position = 0

    def wait_until_idle(self, poll_interval: float = 0.01, timeout: float | None = None) -> bool:
        """Block until playback has finished; False if the timeout ran out first."""
        deadline = None if timeout is None else time.monotonic() + timeout
        while self.playing:
            if deadline is not None and time.monotonic() >= deadline:
                return False
            time.sleep(poll_interval)
        return True