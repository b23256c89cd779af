from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Literal, Protocol

from kuber.orchestrator.events import PlatformMode, SpeechStatus
from kuber.speech.base import CaptureDevice
from kuber.telemetry.logging import get_logger

MOBILE_USER_AGENT = re.compile(r"Android|webOS|iPhone|iPad|iPod|BlackBerry|IEMobile|Opera Mini", re.IGNORECASE)

SessionListener = Callable[["SpeechSession"], None]


def resolve_platform_mode(
    setting: Literal["auto", "restart", "terminate"] | PlatformMode,
    user_agent: str | None = None,
    device_restarts_on_timeout: bool = False,
) -> PlatformMode:
    """Pick the device-end policy once, before the session manager is built.

    Mobile recognizers cut off after a fixed duration while the user is still
    talking, so they are restarted transparently; desktop recognizers end for
    good.
    """
    if isinstance(setting, PlatformMode):
        return setting
    if setting == "restart":
        return PlatformMode.RESTART_ON_TIMEOUT
    if setting == "terminate":
        return PlatformMode.TERMINATE_ON_TIMEOUT
    if user_agent:
        if MOBILE_USER_AGENT.search(user_agent):
            return PlatformMode.RESTART_ON_TIMEOUT
        return PlatformMode.TERMINATE_ON_TIMEOUT
    if device_restarts_on_timeout:
        return PlatformMode.RESTART_ON_TIMEOUT
    return PlatformMode.TERMINATE_ON_TIMEOUT


@dataclass(slots=True)
class SpeechSession:
    platform_mode: PlatformMode
    status: SpeechStatus = SpeechStatus.IDLE
    segments: str = ""
    finalized_prefix: str = ""
    restarts: int = 0

    @property
    def live_transcript(self) -> str:
        return self.finalized_prefix + self.segments

    @property
    def is_listening(self) -> bool:
        return self.status is SpeechStatus.LISTENING

    def reset(self) -> None:
        self.segments = ""
        self.finalized_prefix = ""
        self.restarts = 0

    def freeze(self) -> None:
        """Carry the current hypothesis over a device restart."""
        carried = self.live_transcript.rstrip()
        self.finalized_prefix = f"{carried} " if carried else ""
        self.segments = ""
        self.restarts += 1


class _DeviceEndPolicy(Protocol):
    def on_device_end(self, manager: "SpeechSessionManager") -> None: ...


class _RestartOnTimeout:
    def on_device_end(self, manager: "SpeechSessionManager") -> None:
        manager._restart_after_timeout()


class _TerminateOnTimeout:
    def on_device_end(self, manager: "SpeechSessionManager") -> None:
        manager._end_after_timeout()


_POLICIES: dict[PlatformMode, _DeviceEndPolicy] = {
    PlatformMode.RESTART_ON_TIMEOUT: _RestartOnTimeout(),
    PlatformMode.TERMINATE_ON_TIMEOUT: _TerminateOnTimeout(),
}


class SpeechSessionManager:
    """Owns the single speech-capture session and hides device quirks.

    ``start``/``stop``/``cancel`` are the caller-facing contract. The bound
    device reports through ``on_partial_result`` and ``on_device_end``; since
    a device end looks the same whether the user asked for it or the platform
    timed out, the session status decides which one it was.
    """

    def __init__(
        self,
        device_factory: Callable[[], CaptureDevice] | None,
        platform_mode: PlatformMode = PlatformMode.TERMINATE_ON_TIMEOUT,
        language: str = "en-IN",
    ) -> None:
        self._device_factory = device_factory
        self._device: CaptureDevice | None = None
        self._session = SpeechSession(platform_mode=platform_mode)
        self._policy = _POLICIES[platform_mode]
        self._language = language
        self._listeners: list[SessionListener] = []
        self._logger = get_logger(__name__)

    @property
    def available(self) -> bool:
        return self._device_factory is not None

    @property
    def session(self) -> SpeechSession:
        return self._session

    @property
    def status(self) -> SpeechStatus:
        return self._session.status

    @property
    def platform_mode(self) -> PlatformMode:
        return self._session.platform_mode

    @property
    def is_listening(self) -> bool:
        return self._session.is_listening

    @property
    def live_transcript(self) -> str:
        return self._session.live_transcript

    def subscribe(self, listener: SessionListener) -> None:
        self._listeners.append(listener)

    def start(self) -> bool:
        if not self.available:
            self._logger.info("speech.start.ignored", reason="unavailable")
            return False
        if self._session.is_listening:
            self._logger.debug("speech.start.ignored", reason="already_listening")
            return False
        device = self._ensure_device()
        self._session.reset()
        self._session.status = SpeechStatus.LISTENING
        try:
            device.start()
        except Exception as exc:
            self._logger.error("speech.device.start_failed", error=str(exc))
            self._abandon()
            return False
        self._logger.info("speech.session.started", mode=self._session.platform_mode.value)
        self._notify()
        return True

    def stop(self) -> str:
        if not self._session.is_listening:
            self._logger.debug("speech.stop.ignored", status=self._session.status.value)
            return ""
        self._session.status = SpeechStatus.STOPPING
        transcript = self._session.live_transcript.strip()
        device = self._device
        try:
            if device is not None:
                device.stop()
        except Exception as exc:
            self._logger.error("speech.device.stop_failed", error=str(exc))
        finally:
            self._session.status = SpeechStatus.IDLE
            restarts = self._session.restarts
            self._session.reset()
        self._logger.info("speech.session.stopped", chars=len(transcript), restarts=restarts)
        self._notify()
        return transcript

    def cancel(self) -> None:
        if not self._session.is_listening:
            self._logger.debug("speech.cancel.ignored", status=self._session.status.value)
            return
        self._session.status = SpeechStatus.IDLE
        self._session.reset()
        device = self._device
        try:
            if device is not None:
                device.abort()
        except Exception as exc:
            self._logger.error("speech.device.abort_failed", error=str(exc))
        self._logger.info("speech.session.cancelled")
        self._notify()

    def on_partial_result(self, segments: Sequence[str]) -> None:
        if not self._session.is_listening:
            return
        self._session.segments = "".join(segments)
        self._notify()

    def on_device_end(self) -> None:
        if not self._session.is_listening:
            # Requested via stop/cancel, already handled.
            return
        self._policy.on_device_end(self)

    def on_device_error(self, exc: BaseException) -> None:
        if not self._session.is_listening:
            return
        # A faulted device would fail again on restart; give up on the session.
        self._logger.error("speech.device.failed", error=str(exc), restarts=self._session.restarts)
        self._abandon()

    def _restart_after_timeout(self) -> None:
        self._session.freeze()
        self._logger.info("speech.session.restart", restarts=self._session.restarts)
        device = self._device
        try:
            if device is None:
                raise RuntimeError("capture device is not bound")
            device.start()
        except Exception as exc:
            self._logger.error("speech.device.restart_failed", error=str(exc))
            self._abandon()
            return
        self._notify()

    def _end_after_timeout(self) -> None:
        # The hypothesis stays readable as a draft until the next start.
        self._session.status = SpeechStatus.IDLE
        self._logger.info("speech.session.ended", reason="device_end")
        self._notify()

    def _abandon(self) -> None:
        self._session.status = SpeechStatus.IDLE
        self._session.reset()
        self._notify()

    def _ensure_device(self) -> CaptureDevice:
        if self._device is None:
            if self._device_factory is None:
                raise RuntimeError("no capture device is available")
            device = self._device_factory()
            device.continuous = True
            device.interim_results = True
            device.language = self._language
            device.bind(self.on_partial_result, self.on_device_end, self.on_device_error)
            self._device = device
            self._logger.info("speech.device.bound", device=type(device).__name__)
        return self._device

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._session)
            except Exception as exc:
                self._logger.error("speech.listener.failed", error=str(exc))


__all__ = ["SpeechSession", "SpeechSessionManager", "resolve_platform_mode", "MOBILE_USER_AGENT"]
