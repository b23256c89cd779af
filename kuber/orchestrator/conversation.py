from __future__ import annotations

import asyncio
from typing import Any, Protocol

from kuber.config import DEFAULT_LANGUAGE_CODE
from kuber.llm.envelope import FALLBACK_ENVELOPE, ResponseEnvelope, recover_envelope
from kuber.llm.types import ReplyBackend
from kuber.orchestrator.events import Role, State, Turn
from kuber.orchestrator.playback import PlaybackController
from kuber.speech.session import SpeechSession, SpeechSessionManager
from kuber.telemetry.logging import bind_turn, clear_turn, get_logger


class UIBridge(Protocol):
    async def publish_state(self, state: State, payload: dict | None = None) -> None: ...


class ConversationOrchestrator:
    """Turn-taking between the user, the chat backend and the speaker.

    At most one request is in flight; while it is pending, text submission and
    starting a new speech session are refused rather than queued.
    """

    def __init__(
        self,
        backend: ReplyBackend,
        speech: SpeechSessionManager,
        playback: PlaybackController,
        ui_bridge: UIBridge | None = None,
    ) -> None:
        self._backend = backend
        self._speech = speech
        self._playback = playback
        self._ui = ui_bridge
        self._history: list[Turn] = []
        self._pending = False
        self._tasks: set[asyncio.Task[None]] = set()
        self._inflight: asyncio.Task[Turn] | None = None
        self._logger = get_logger(__name__)
        speech.subscribe(self._on_speech_change)
        playback.subscribe(self._on_speaking_change)

    @property
    def history(self) -> tuple[Turn, ...]:
        return tuple(self._history)

    @property
    def is_loading(self) -> bool:
        return self._pending

    @property
    def is_listening(self) -> bool:
        return self._speech.is_listening

    @property
    def is_speaking(self) -> bool:
        return self._playback.is_speaking

    @property
    def live_transcript(self) -> str:
        return self._speech.live_transcript

    @property
    def voice_available(self) -> bool:
        return self._speech.available

    @property
    def input_enabled(self) -> bool:
        return not self._pending and not self._speech.is_listening

    async def submit_text(self, message: str) -> Turn | None:
        if not message or not message.strip():
            return None
        if self._pending:
            self._logger.info("conversation.submit.ignored", reason="pending")
            return None
        if self._speech.is_listening:
            # Typed text wins over whatever was being dictated.
            self._speech.stop()

        history = [turn.to_history_item() for turn in self._history]
        self._append(Turn(role=Role.USER, text=message))
        self._pending = True
        bind_turn(len(self._history))
        answer = asyncio.get_running_loop().create_task(self._answer(history, message), name="conversation-turn")
        clear_turn()
        self._inflight = answer
        # A sent request always lands as a model turn, even if the caller is cancelled.
        model_turn = await asyncio.shield(answer)
        await self._publish("TURN", {"index": len(self._history) - 1, **model_turn.to_dict()})
        self._playback.speak(model_turn.text, model_turn.language_code or DEFAULT_LANGUAGE_CODE)
        return model_turn

    async def submit_from_speech(self) -> Turn | None:
        transcript = self._speech.stop()
        if not transcript:
            self._logger.info("conversation.speech.empty")
            return None
        return await self.submit_text(transcript)

    async def toggle_listening(self) -> Turn | None:
        """Mic gesture: stop-and-send while listening, otherwise start listening."""
        if self._speech.is_listening:
            return await self.submit_from_speech()
        if self._pending:
            self._logger.info("conversation.listen.ignored", reason="pending")
            return None
        self._speech.start()
        return None

    def cancel_listening(self) -> None:
        self._speech.cancel()

    def toggle_playback(self, index: int) -> bool:
        """Stop playback if anything is speaking, else replay the model turn at *index*."""
        turn = self._history[index]
        if turn.role is not Role.MODEL:
            raise ValueError(f"turn {index} is not a model turn")
        self._playback.toggle(turn.text, turn.language_code or DEFAULT_LANGUAGE_CODE)
        return self._playback.is_speaking

    def snapshot(self) -> dict[str, Any]:
        return {
            "history": [turn.to_dict() for turn in self._history],
            "is_loading": self._pending,
            "is_listening": self._speech.is_listening,
            "is_speaking": self._playback.is_speaking,
            "live_transcript": self._speech.live_transcript,
            "input_enabled": self.input_enabled,
            "voice_available": self._speech.available,
            "platform_mode": self._speech.platform_mode.value,
        }

    async def aclose(self) -> None:
        self._speech.cancel()
        self._playback.cancel()
        inflight = self._inflight
        if inflight is not None:
            inflight.cancel()
            await asyncio.gather(inflight, return_exceptions=True)
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

    async def _answer(self, history: list[dict[str, str]], message: str) -> Turn:
        try:
            await self._publish("THINKING", {"message": message})
            envelope = await self._request_reply(history, message)
            model_turn = Turn(role=Role.MODEL, text=envelope.reply, language_code=envelope.language_code)
            self._append(model_turn)
            return model_turn
        finally:
            self._pending = False
            self._inflight = None

    async def _request_reply(self, history: list[dict[str, str]], message: str) -> ResponseEnvelope:
        try:
            raw = await self._backend.generate_reply(history, message)
        except Exception as exc:
            self._logger.error("conversation.backend.failed", error=str(exc), error_type=type(exc).__name__)
            return FALLBACK_ENVELOPE
        return recover_envelope(raw)

    def _append(self, turn: Turn) -> None:
        self._history.append(turn)
        self._logger.info("conversation.turn.appended", role=turn.role.value, index=len(self._history) - 1)

    async def _publish(self, state: State, payload: dict[str, Any] | None = None) -> None:
        if self._ui is None:
            return
        try:
            await self._ui.publish_state(state, payload or {})
        except Exception as exc:
            self._logger.warning("conversation.publish.failed", state=state, error=str(exc))

    def _publish_soon(self, state: State, payload: dict[str, Any]) -> None:
        if self._ui is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        task = loop.create_task(self._publish(state, payload))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _on_speech_change(self, session: SpeechSession) -> None:
        state: State = "LISTENING" if session.is_listening else "IDLE"
        self._publish_soon(state, {"live_transcript": session.live_transcript, "status": session.status.value})

    def _on_speaking_change(self, speaking: bool) -> None:
        self._publish_soon("SPEAKING" if speaking else "IDLE", {"is_speaking": speaking})


__all__ = ["ConversationOrchestrator", "UIBridge"]
