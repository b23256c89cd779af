from __future__ import annotations

import asyncio
from collections.abc import Callable

from kuber.telemetry.logging import get_logger
from kuber.tts.client import Speaker

SpeakingListener = Callable[[bool], None]


class PlaybackController:
    """Holds the one utterance allowed to play at a time.

    Every ``speak`` replaces the current utterance; there is no queue.
    """

    def __init__(self, speaker: Speaker | None) -> None:
        self._speaker = speaker
        self._task: asyncio.Task[None] | None = None
        self._speaking = False
        self._listeners: list[SpeakingListener] = []
        self._logger = get_logger(__name__)

    @property
    def available(self) -> bool:
        return self._speaker is not None

    @property
    def is_speaking(self) -> bool:
        return self._speaking

    def subscribe(self, listener: SpeakingListener) -> None:
        self._listeners.append(listener)

    def speak(self, text: str, language_code: str) -> asyncio.Task[None] | None:
        self.cancel()
        if self._speaker is None:
            self._logger.debug("playback.skipped", reason="no_speaker")
            return None
        task = asyncio.get_running_loop().create_task(self._run(text, language_code), name="playback")
        self._task = task
        self._set_speaking(True)
        return task

    def cancel(self) -> bool:
        task = self._task
        self._task = None
        if task is None or task.done():
            self._set_speaking(False)
            return False
        task.cancel()
        self._set_speaking(False)
        self._logger.info("playback.cancelled")
        return True

    def toggle(self, text: str, language_code: str) -> asyncio.Task[None] | None:
        if self._speaking:
            self.cancel()
            return None
        return self.speak(text, language_code)

    async def _run(self, text: str, language_code: str) -> None:
        speaker = self._speaker
        if speaker is None:
            raise RuntimeError("no speaker is configured")
        try:
            await speaker.say(text, language_code)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._logger.error("playback.failed", language=language_code, error=str(exc))
        finally:
            if self._task is asyncio.current_task():
                self._task = None
                self._set_speaking(False)

    def _set_speaking(self, speaking: bool) -> None:
        if speaking == self._speaking:
            return
        self._speaking = speaking
        for listener in list(self._listeners):
            try:
                listener(speaking)
            except Exception as exc:
                self._logger.error("playback.listener.failed", error=str(exc))


__all__ = ["PlaybackController"]
