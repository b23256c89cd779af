from __future__ import annotations

from typing import Any, Sequence

import httpx

from kuber.llm.types import ChatProvider, HistoryItem
from kuber.prompts import SYSTEM_PROMPT
from kuber.telemetry.logging import get_logger


class GeminiProvider(ChatProvider):
    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        temperature: float = 0.7,
        timeout: float = 60.0,
        system_prompt: str = SYSTEM_PROMPT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)
        self._api_key = api_key
        self._model = model
        self._temperature = temperature
        self._system_prompt = system_prompt
        self._logger = get_logger(__name__)
        self.name = "gemini"

    def build_payload(self, history: Sequence[HistoryItem], message: str) -> dict[str, Any]:
        contents = [{"role": item.role, "parts": [{"text": item.text}]} for item in history]
        contents.append({"role": "user", "parts": [{"text": message}]})
        return {
            "systemInstruction": {"role": "system", "parts": [{"text": self._system_prompt}]},
            "contents": contents,
            "generationConfig": {"temperature": self._temperature},
        }

    async def generate(self, history: Sequence[HistoryItem], message: str) -> str:
        payload = self.build_payload(history, message)
        self._logger.info("gemini.generate", model=self._model, history_len=len(history), message_len=len(message))
        resp = await self._client.post(
            f"/models/{self._model}:generateContent",
            params={"key": self._api_key},
            json=payload,
        )
        resp.raise_for_status()
        data = resp.json()
        text = ""
        candidates = data.get("candidates") or []
        if candidates:
            parts = candidates[0].get("content", {}).get("parts") or []
            text = "".join(part.get("text", "") for part in parts)
        if not text:
            finish_reason = candidates[0].get("finishReason") if candidates else None
            self._logger.warning("gemini.generate.empty", finish_reason=finish_reason)
        return text

    async def aclose(self) -> None:
        await self._client.aclose()


__all__ = ["GeminiProvider"]
