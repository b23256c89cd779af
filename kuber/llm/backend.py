from __future__ import annotations

import httpx

from kuber.telemetry.logging import get_logger


class ChatBackendClient:
    """HTTP client for the chat backend's ``POST /api/chat`` route.

    Returns the raw response body; callers run it through
    :func:`kuber.llm.envelope.recover_envelope`. Non-2xx responses raise
    ``httpx.HTTPStatusError`` so they are treated as a failed turn.
    """

    def __init__(
        self,
        chat_url: str,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._chat_url = chat_url
        self._client = httpx.AsyncClient(timeout=httpx.Timeout(timeout, connect=5.0), transport=transport)
        self._logger = get_logger(__name__)

    async def generate_reply(self, history: list[dict[str, str]], message: str) -> str:
        self._logger.info("backend.request", history_len=len(history), message_len=len(message))
        resp = await self._client.post(self._chat_url, json={"history": history, "message": message})
        resp.raise_for_status()
        return resp.text

    async def aclose(self) -> None:
        await self._client.aclose()


__all__ = ["ChatBackendClient"]
