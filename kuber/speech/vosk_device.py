from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Callable
from typing import Any, Protocol

from vosk import KaldiRecognizer, Model, SetLogLevel  # type: ignore[import]

from kuber.audio.capture import MicrophoneSource
from kuber.speech.base import CaptureDevice
from kuber.telemetry.logging import get_logger


class FrameSource(Protocol):
    def start(self) -> None: ...

    def close(self) -> None: ...

    def frames(self) -> AsyncIterator[bytes]: ...


class Recognizer(Protocol):
    def AcceptWaveform(self, data: bytes) -> bool: ...

    def Result(self) -> str: ...

    def PartialResult(self) -> str: ...

    def FinalResult(self) -> str: ...


class _CaptureRun:
    def __init__(self, source: FrameSource, recognizer: Recognizer) -> None:
        self.source = source
        self.recognizer = recognizer
        self.finals: list[str] = []
        self.partial = ""
        self.halted = False
        self.error: Exception | None = None
        self.task: asyncio.Task[None] | None = None

    def segments(self) -> list[str]:
        texts = [text for text in (*self.finals, self.partial) if text]
        return [text if index == 0 else f" {text}" for index, text in enumerate(texts)]


class VoskCaptureDevice(CaptureDevice):
    """Microphone capture decoded by a Vosk recognizer.

    With ``max_capture_seconds`` set the device ends each capture on its own
    once the limit is reached, the way mobile recognizers do.
    """

    def __init__(
        self,
        model_path: str,
        sample_rate: int = 16_000,
        frame_ms: int = 30,
        input_device: str | int | None = None,
        max_capture_seconds: float | None = None,
        source_factory: Callable[[], FrameSource] | None = None,
        recognizer_factory: Callable[[], Recognizer] | None = None,
    ) -> None:
        super().__init__()
        if not model_path and recognizer_factory is None:
            raise ValueError("Vosk model path must be provided.")
        self._model_path = model_path
        self._model: Any = None
        self._sample_rate = max(sample_rate, 1)
        self._frame_ms = frame_ms
        self._input_device = input_device
        self._max_capture_seconds = max_capture_seconds
        self.restarts_on_timeout = max_capture_seconds is not None
        self._source_factory = source_factory or self._default_source
        self._recognizer_factory = recognizer_factory or self._default_recognizer
        self._run: _CaptureRun | None = None
        self._logger = get_logger(__name__)

    def start(self) -> None:
        if self._run is not None:
            return
        run = _CaptureRun(self._source_factory(), self._recognizer_factory())
        run.source.start()
        self._run = run
        run.task = asyncio.get_running_loop().create_task(self._pump(run), name="vosk-capture")

    def stop(self) -> None:
        self._halt("stop")

    def abort(self) -> None:
        self._halt("abort")

    def _halt(self, reason: str) -> None:
        run = self._run
        if run is None:
            return
        # The detached run drains silently; the next start gets a fresh one.
        run.halted = True
        self._run = None
        run.source.close()
        self._logger.debug("vosk.capture.halted", reason=reason)
        self.emit_end()

    async def _pump(self, run: _CaptureRun) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._max_capture_seconds if self._max_capture_seconds else None
        try:
            async for pcm in run.source.frames():
                if run.halted:
                    break
                self._accept(run, pcm)
                if deadline is not None and loop.time() >= deadline:
                    self._logger.info("vosk.capture.timeout", seconds=self._max_capture_seconds)
                    break
            if not run.halted:
                self._consume(run, run.recognizer.FinalResult(), is_final=True)
        except Exception as exc:
            run.error = exc
            self._logger.error("vosk.capture.failed", error=str(exc))
        finally:
            run.source.close()
            if self._run is run:
                self._run = None
                if run.error is not None:
                    self.emit_error(run.error)
                else:
                    self.emit_end()

    def _accept(self, run: _CaptureRun, pcm: bytes) -> None:
        if run.recognizer.AcceptWaveform(pcm):
            self._consume(run, run.recognizer.Result(), is_final=True)
        else:
            self._consume(run, run.recognizer.PartialResult(), is_final=False)

    def _consume(self, run: _CaptureRun, payload: str, is_final: bool) -> None:
        if not payload:
            return
        try:
            data = json.loads(payload)
        except json.JSONDecodeError:
            self._logger.debug("vosk.payload.unparsable", payload=payload[:120])
            return
        text = (data.get("text") or data.get("partial") or "").strip()
        if is_final:
            run.partial = ""
            if text:
                run.finals.append(text)
        else:
            if text == run.partial:
                return
            run.partial = text
        if self._run is run:
            self.emit_result(run.segments())

    def _default_source(self) -> FrameSource:
        return MicrophoneSource(sample_rate=self._sample_rate, frame_ms=self._frame_ms, device=self._input_device)

    def _default_recognizer(self) -> Recognizer:
        if self._model is None:
            SetLogLevel(-1)
            self._model = Model(self._model_path)
        return KaldiRecognizer(self._model, self._sample_rate)


__all__ = ["VoskCaptureDevice", "FrameSource", "Recognizer"]
