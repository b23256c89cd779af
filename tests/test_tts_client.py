from __future__ import annotations

import json

import httpx
import pytest

from kuber.tts.client import SpeechSynthesisClient, SynthesizedSpeaker
from kuber.tts.voices import VoiceCatalog

CATALOG = VoiceCatalog(
    {
        "default_language": "en-IN",
        "languages": {
            "en-IN": {"voice": "en-voice", "params": {"speed": 1.0}},
            "hi-IN": {"voice": "hi-voice", "params": {"speed": "slow"}},
        },
        "scripts": {"en": "en-IN", "hi": "hi-IN"},
    }
)


def test_build_request_uses_turn_language() -> None:
    client = SpeechSynthesisClient("http://tts.test/v1/audio/speech", None, CATALOG)
    payload = client.build_request("Digital Gold", "en-IN")
    assert payload == {
        "model": "tts",
        "voice": "en-voice",
        "input": "Digital Gold",
        "language": "en-IN",
        "response_format": "wav",
        "speed": 1.0,
    }


def test_invalid_speed_is_dropped() -> None:
    client = SpeechSynthesisClient("http://tts.test/v1/audio/speech", None, CATALOG)
    payload = client.build_request("नमस्ते", "hi-IN")
    assert payload["voice"] == "hi-voice"
    assert "speed" not in payload


@pytest.mark.anyio("asyncio")
async def test_synthesize_posts_and_collects_audio() -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, content=b"RIFFdata")

    client = SpeechSynthesisClient(
        "http://tts.test/v1/audio/speech", "tts-key", CATALOG, transport=httpx.MockTransport(handler)
    )
    audio = await client.synthesize("hello", "en-IN")
    await client.aclose()

    assert audio == b"RIFFdata"
    assert seen["auth"] == "Bearer tts-key"
    assert seen["body"]["input"] == "hello"


@pytest.mark.anyio("asyncio")
async def test_speaker_plays_synthesized_audio() -> None:
    class RecordingOutput:
        def __init__(self) -> None:
            self.played: list[tuple[bytes, str]] = []

        async def play_bytes(self, audio: bytes, tag: str) -> float:
            self.played.append((audio, tag))
            return 0.1

    client = SpeechSynthesisClient(
        "http://tts.test/v1/audio/speech",
        None,
        CATALOG,
        transport=httpx.MockTransport(lambda request: httpx.Response(200, content=b"wav")),
    )
    output = RecordingOutput()
    speaker = SynthesizedSpeaker(client, output)  # type: ignore[arg-type]

    await speaker.say("hello", "en-IN")
    await client.aclose()

    assert output.played == [(b"wav", "tts:1")]
