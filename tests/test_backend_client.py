from __future__ import annotations

import json

import httpx
import pytest

from kuber.llm.backend import ChatBackendClient


@pytest.mark.anyio("asyncio")
async def test_posts_history_and_message_and_returns_raw_body() -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, text='{"reply": "Hi", "language_code": "en-IN"}')

    client = ChatBackendClient("http://backend.test/api/chat", transport=httpx.MockTransport(handler))
    history = [{"role": "user", "text": "Hello"}, {"role": "model", "text": "Hi there"}]

    raw = await client.generate_reply(history, "What is SIP?")
    await client.aclose()

    assert raw == '{"reply": "Hi", "language_code": "en-IN"}'
    assert seen["url"] == "http://backend.test/api/chat"
    assert seen["body"] == {"history": history, "message": "What is SIP?"}


@pytest.mark.anyio("asyncio")
async def test_error_status_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"reply": "Sorry", "language_code": "en-IN"})

    client = ChatBackendClient("http://backend.test/api/chat", transport=httpx.MockTransport(handler))
    with pytest.raises(httpx.HTTPStatusError):
        await client.generate_reply([], "hello")
    await client.aclose()
