from __future__ import annotations

import asyncio
import io

import numpy as np
import sounddevice as sd
import soundfile as sf

from kuber.telemetry.logging import get_logger


def decode_audio(audio: bytes) -> tuple[np.ndarray, int]:
    """Decode a WAV/FLAC/OGG payload into float32 samples clipped to [-1, 1]."""
    with io.BytesIO(audio) as buffer:
        samples, sample_rate = sf.read(buffer, dtype="float32", always_2d=False)
    return np.clip(np.asarray(samples), -1.0, 1.0), int(sample_rate)


class AudioOutputController:
    """Plays one clip at a time on the default output device.

    Cancelling the coroutine that is awaiting ``play_*`` stops the device
    immediately; the next clip waits for the previous one to release it.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._current_tag: str | None = None
        self._logger = get_logger(__name__)

    async def play_bytes(self, audio: bytes, tag: str) -> float:
        if not audio:
            self._logger.warning("audio.output.empty", tag=tag)
            return 0.0
        samples, sample_rate = decode_audio(audio)
        return await self.play_array(samples, sample_rate, tag)

    async def play_array(self, samples: np.ndarray, sample_rate: int, tag: str) -> float:
        """Block until *samples* finish playing; returns their duration in seconds."""
        if sample_rate <= 0 or samples.size == 0:
            self._logger.warning("audio.output.invalid", tag=tag, sample_rate=sample_rate, frames=int(samples.size))
            return 0.0
        duration = samples.shape[0] / float(sample_rate)

        async with self._lock:
            self._current_tag = tag
            self._logger.debug("audio.output.play", tag=tag, seconds=round(duration, 2))
            try:
                await asyncio.to_thread(sd.play, samples, sample_rate, blocking=True)
            except asyncio.CancelledError:
                sd.stop()
                self._logger.info("audio.output.interrupted", tag=tag)
                raise
            finally:
                self._current_tag = None
        return duration

    def stop(self) -> bool:
        if self._current_tag is None:
            return False
        sd.stop()
        return True

    def current_tag(self) -> str | None:
        return self._current_tag


__all__ = ["AudioOutputController", "decode_audio"]
