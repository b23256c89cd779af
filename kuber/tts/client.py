from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import httpx

from kuber.telemetry.logging import get_logger
from kuber.tts.voices import VoiceCatalog

if TYPE_CHECKING:
    from kuber.audio.output import AudioOutputController


class Speaker(Protocol):
    async def say(self, text: str, language_code: str) -> None: ...


class SpeechSynthesisClient:
    """OpenAI-style ``/audio/speech`` client returning encoded audio bytes."""

    def __init__(
        self,
        base_url: str,
        api_key: str | None,
        catalog: VoiceCatalog,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url
        self._api_key = api_key
        self._catalog = catalog
        self._client = httpx.AsyncClient(timeout=httpx.Timeout(15.0, connect=5.0), transport=transport)
        self._logger = get_logger(__name__)

    def build_request(self, text: str, language_code: str | None) -> dict[str, Any]:
        voice, language = self._catalog.resolve(language_code, text)
        payload: dict[str, Any] = {
            "model": voice.get("model", "tts"),
            "voice": voice.get("voice", "default"),
            "input": text,
            "language": language,
            "response_format": voice.get("response_format", "wav"),
        }
        if "speed" in voice:
            try:
                payload["speed"] = float(voice["speed"])
            except (TypeError, ValueError):
                self._logger.warning("tts.invalid_speed", speed=voice["speed"])
        return payload

    async def synthesize(self, text: str, language_code: str | None) -> bytes:
        payload = self.build_request(text, language_code)
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        self._logger.info("tts.request", language=payload["language"], voice=payload["voice"], chars=len(text))
        async with self._client.stream("POST", self._base_url, headers=headers, json=payload) as resp:
            resp.raise_for_status()
            chunks: list[bytes] = []
            async for chunk in resp.aiter_bytes():
                chunks.append(chunk)
        return b"".join(chunks)

    async def aclose(self) -> None:
        await self._client.aclose()


class SynthesizedSpeaker:
    def __init__(self, client: SpeechSynthesisClient, output: AudioOutputController) -> None:
        self._client = client
        self._output = output
        self._counter = 0

    async def say(self, text: str, language_code: str) -> None:
        self._counter += 1
        audio = await self._client.synthesize(text, language_code)
        await self._output.play_bytes(audio, tag=f"tts:{self._counter}")


__all__ = ["Speaker", "SpeechSynthesisClient", "SynthesizedSpeaker"]
