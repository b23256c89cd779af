from __future__ import annotations

import asyncio

import pytest

from kuber.orchestrator.playback import PlaybackController


class HeldSpeaker:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self.cancelled = 0
        self.release = asyncio.Event()

    async def say(self, text: str, language_code: str) -> None:
        self.calls.append((text, language_code))
        try:
            await self.release.wait()
        except asyncio.CancelledError:
            self.cancelled += 1
            raise


class BrokenSpeaker:
    async def say(self, text: str, language_code: str) -> None:
        raise RuntimeError("tts unavailable")


async def settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.mark.anyio("asyncio")
async def test_speak_marks_speaking_until_finished() -> None:
    speaker = HeldSpeaker()
    playback = PlaybackController(speaker)
    seen: list[bool] = []
    playback.subscribe(seen.append)

    task = playback.speak("namaste", "hi-IN")
    assert playback.is_speaking is True
    await settle()
    speaker.release.set()
    await task

    assert speaker.calls == [("namaste", "hi-IN")]
    assert playback.is_speaking is False
    assert seen == [True, False]


@pytest.mark.anyio("asyncio")
async def test_speak_replaces_current_utterance() -> None:
    speaker = HeldSpeaker()
    playback = PlaybackController(speaker)

    first = playback.speak("one", "en-IN")
    await settle()
    playback.speak("two", "en-IN")
    await settle()

    assert first.cancelled()
    assert speaker.cancelled == 1
    assert playback.is_speaking is True
    playback.cancel()
    await settle()


@pytest.mark.anyio("asyncio")
async def test_toggle_stops_then_restarts() -> None:
    speaker = HeldSpeaker()
    playback = PlaybackController(speaker)
    playback.speak("hello", "en-IN")
    await settle()

    assert playback.toggle("hello", "en-IN") is None
    assert playback.is_speaking is False
    assert playback.toggle("hello", "en-IN") is not None
    assert playback.is_speaking is True
    playback.cancel()
    await settle()


@pytest.mark.anyio("asyncio")
async def test_cancel_without_playback_returns_false() -> None:
    playback = PlaybackController(HeldSpeaker())
    assert playback.cancel() is False


@pytest.mark.anyio("asyncio")
async def test_speaker_errors_end_playback() -> None:
    playback = PlaybackController(BrokenSpeaker())

    task = playback.speak("hello", "en-IN")
    await task

    assert playback.is_speaking is False


@pytest.mark.anyio("asyncio")
async def test_no_speaker_means_no_playback() -> None:
    playback = PlaybackController(None)
    assert playback.available is False
    assert playback.speak("hello", "en-IN") is None
    assert playback.is_speaking is False
