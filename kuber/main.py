from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from kuber import speech as speech_devices
from kuber.config import AppSettings, load_settings
from kuber.llm.backend import ChatBackendClient
from kuber.llm.types import ReplyBackend
from kuber.orchestrator.conversation import ConversationOrchestrator
from kuber.orchestrator.playback import PlaybackController
from kuber.speech.base import CaptureDevice
from kuber.speech.session import SpeechSessionManager, resolve_platform_mode
from kuber.telemetry.logging import configure_logging, get_logger
from kuber.tts.client import Speaker
from kuber.ui.websocket import StateBridge

logger = get_logger(__name__)


class MessageRequest(BaseModel):
    text: str


@dataclass
class Runtime:
    orchestrator: ConversationOrchestrator
    bridge: StateBridge
    closers: list[Callable[[], Any]] = field(default_factory=list)

    async def shutdown(self) -> None:
        logger.info("runtime.shutdown.start")
        await self.orchestrator.aclose()
        for closer in self.closers:
            result = closer()
            if hasattr(result, "__await__"):
                await result
        logger.info("runtime.shutdown.complete")


def build_device_factory(settings: AppSettings) -> Callable[[], CaptureDevice] | None:
    """Return a capture-device factory, or None when voice input cannot work here."""
    speech = settings.speech
    if speech_devices.VoskCaptureDevice is None:
        logger.warning("speech.unavailable", reason="vosk or sounddevice not installed")
        return None
    if not speech.vosk_model_path or not Path(speech.vosk_model_path).exists():
        logger.warning("speech.unavailable", reason="model path missing", path=speech.vosk_model_path)
        return None
    from kuber.audio.capture import input_device_available

    if not input_device_available(speech.input_device, speech.sample_rate):
        return None

    def factory() -> CaptureDevice:
        return speech_devices.VoskCaptureDevice(
            model_path=speech.vosk_model_path or "",
            sample_rate=speech.sample_rate,
            frame_ms=speech.frame_ms,
            input_device=speech.input_device,
            max_capture_seconds=speech.max_capture_seconds,
        )

    return factory


def build_speaker(settings: AppSettings, closers: list[Callable[[], Any]]) -> Speaker | None:
    if not settings.tts.base_url:
        logger.warning("playback.unavailable", reason="TTS_API_URL missing")
        return None
    try:
        from kuber.audio.output import AudioOutputController
        from kuber.tts.client import SpeechSynthesisClient, SynthesizedSpeaker
        from kuber.tts.voices import load_catalog

        catalog = load_catalog(settings.tts.voices_path)
        client = SpeechSynthesisClient(settings.tts.base_url, settings.tts.api_key, catalog)
        speaker = SynthesizedSpeaker(client, AudioOutputController())
    except (OSError, ValueError) as exc:
        logger.error("playback.init.failed", error=str(exc))
        return None
    closers.append(client.aclose)
    return speaker


def build_runtime(
    settings: AppSettings,
    backend: ReplyBackend | None = None,
    device_factory: Callable[[], CaptureDevice] | None = None,
    speaker: Speaker | None = None,
    user_agent: str | None = None,
) -> Runtime:
    closers: list[Callable[[], Any]] = []
    if backend is None:
        client = ChatBackendClient(settings.backend.chat_url, timeout=settings.backend.timeout_seconds)
        closers.append(client.aclose)
        backend = client
    mode = resolve_platform_mode(
        settings.speech.platform_mode,
        user_agent=user_agent or settings.speech.user_agent,
        device_restarts_on_timeout=settings.speech.max_capture_seconds is not None,
    )
    speech = SpeechSessionManager(device_factory, platform_mode=mode, language=settings.speech.language)
    bridge = StateBridge()
    orchestrator = ConversationOrchestrator(
        backend=backend,
        speech=speech,
        playback=PlaybackController(speaker),
        ui_bridge=bridge,
    )
    logger.info(
        "runtime.built",
        platform_mode=mode.value,
        voice_available=speech.available,
        playback_available=speaker is not None,
    )
    return Runtime(orchestrator=orchestrator, bridge=bridge, closers=closers)


def _runtime(request: Request) -> Runtime:
    runtime: Runtime | None = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise HTTPException(status_code=503, detail="Assistant not ready yet.")
    return runtime


def create_app(settings: AppSettings | None = None, runtime: Runtime | None = None) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.telemetry.log_level, settings.telemetry.json_logs)

    if runtime is None:
        closers: list[Callable[[], Any]] = []
        speaker = build_speaker(settings, closers)
        runtime = build_runtime(settings, device_factory=build_device_factory(settings), speaker=speaker)
        runtime.closers.extend(closers)

    app = FastAPI(title="Kuber Voice Client")
    app.state.runtime = runtime
    app.include_router(runtime.bridge.router)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.ui.origin],
        allow_methods=["*"],
        allow_headers=["*"],
        allow_credentials=True,
    )

    @app.on_event("shutdown")
    async def shutdown_event() -> None:
        await runtime.shutdown()

    @app.get("/conversation")
    async def conversation(request: Request) -> dict[str, Any]:
        return _runtime(request).orchestrator.snapshot()

    @app.post("/messages")
    async def send_message(request: Request, body: MessageRequest) -> dict[str, Any]:
        orchestrator = _runtime(request).orchestrator
        turn = await orchestrator.submit_text(body.text)
        return {"turn": turn.to_dict() if turn else None, "state": orchestrator.snapshot()}

    @app.post("/mic/toggle")
    async def mic_toggle(request: Request) -> dict[str, Any]:
        orchestrator = _runtime(request).orchestrator
        turn = await orchestrator.toggle_listening()
        return {"turn": turn.to_dict() if turn else None, "state": orchestrator.snapshot()}

    @app.post("/mic/cancel")
    async def mic_cancel(request: Request) -> dict[str, Any]:
        orchestrator = _runtime(request).orchestrator
        orchestrator.cancel_listening()
        return orchestrator.snapshot()

    @app.post("/turns/{index}/playback")
    async def toggle_playback(request: Request, index: int) -> dict[str, Any]:
        orchestrator = _runtime(request).orchestrator
        if index < 0 or index >= len(orchestrator.history):
            raise HTTPException(status_code=404, detail="No such turn.")
        try:
            speaking = orchestrator.toggle_playback(index)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return {"is_speaking": speaking}

    return app


def run(host: str = "127.0.0.1", port: int = 8010) -> None:
    import uvicorn

    uvicorn.run(create_app(), host=host, port=port)


__all__ = ["Runtime", "build_runtime", "build_device_factory", "build_speaker", "create_app", "run"]
