from __future__ import annotations

import asyncio
import queue
from collections.abc import AsyncIterator
from typing import Any

import sounddevice as sd

from kuber.telemetry.logging import get_logger


class MicrophoneSource:
    """PCM16 mono blocks from an input device, sized for the recognizer.

    PortAudio delivers blocks on its own thread; they reach the event loop
    through a bounded queue that drops the oldest block when the consumer
    falls behind.
    """

    def __init__(
        self,
        sample_rate: int = 16_000,
        frame_ms: int = 30,
        device: str | int | None = None,
        max_pending: int = 200,
    ) -> None:
        self.sample_rate = sample_rate
        self.block_size = max(int(sample_rate * frame_ms / 1000), 1)
        self.dropped = 0
        self._device = device
        self._blocks: queue.Queue[bytes | None] = queue.Queue(maxsize=max_pending)
        self._stream: Any = None
        self._logger = get_logger(__name__)

    def start(self) -> None:
        if self._stream is not None:
            return
        self._stream = sd.RawInputStream(
            samplerate=self.sample_rate,
            channels=1,
            dtype="int16",
            blocksize=self.block_size,
            device=self._device,
            callback=self._on_block,
        )
        self._stream.start()
        self._logger.info("audio.capture.started", sample_rate=self.sample_rate, block=self.block_size, device=self._device)

    def close(self) -> None:
        stream, self._stream = self._stream, None
        if stream is not None:
            stream.stop()
            stream.close()
            self._logger.info("audio.capture.stopped", dropped=self.dropped)
        self._offer(None)

    async def frames(self) -> AsyncIterator[bytes]:
        loop = asyncio.get_running_loop()
        while True:
            block = await loop.run_in_executor(None, self._blocks.get)
            if block is None:
                return
            yield block

    def _on_block(self, indata, frames, time_info, status) -> None:
        if status:
            self._logger.warning("audio.capture.status", status=str(status))
        self._offer(bytes(indata))

    def _offer(self, block: bytes | None) -> None:
        try:
            self._blocks.put_nowait(block)
        except queue.Full:
            try:
                self._blocks.get_nowait()
                self.dropped += 1
            except queue.Empty:
                pass
            self._blocks.put_nowait(block)


def input_device_available(device: str | int | None = None, sample_rate: int = 16_000) -> bool:
    """True when *device* can be opened as a mono PCM16 input at *sample_rate*."""
    try:
        sd.check_input_settings(device=device, channels=1, dtype="int16", samplerate=sample_rate)
    except Exception as exc:
        get_logger(__name__).warning("audio.capture.unavailable", device=device, error=str(exc))
        return False
    return True


__all__ = ["MicrophoneSource", "input_device_available"]
