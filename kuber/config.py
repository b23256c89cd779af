from __future__ import annotations

import functools
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_LANGUAGE_CODE = "en-IN"


class LLMSettings(BaseModel):
    gemini_api_key: str | None = None
    gemini_model: str = "gemini-2.5-flash"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    temperature: float = 0.7
    timeout_seconds: float = 60.0


class BackendSettings(BaseModel):
    chat_url: str = "http://localhost:8000/api/chat"
    timeout_seconds: float = 60.0


class SpeechSettings(BaseModel):
    platform_mode: Literal["auto", "restart", "terminate"] = "auto"
    language: str = DEFAULT_LANGUAGE_CODE
    vosk_model_path: str | None = None
    sample_rate: int = 16_000
    frame_ms: int = 30
    input_device: str | int | None = None
    max_capture_seconds: float | None = None
    # User agent of the UI host; drives platform_mode "auto".
    user_agent: str | None = None


class TTSSettings(BaseModel):
    base_url: str | None = None
    api_key: str | None = None
    voices_path: Path


class TelemetrySettings(BaseModel):
    log_level: str = "INFO"
    json_logs: bool = True
    otlp_endpoint: str | None = None


class UISettings(BaseModel):
    origin: str = "http://localhost:3000"


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=(".env", ".env.local"), env_file_encoding="utf-8", extra="ignore")

    GEMINI_API_KEY: str | None = None
    GEMINI_MODEL: str = "gemini-2.5-flash"
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"
    GEMINI_TEMPERATURE: float = 0.7
    GEMINI_TIMEOUT_SECONDS: float = 60.0
    CHAT_BACKEND_URL: str = "http://localhost:8000/api/chat"
    CHAT_BACKEND_TIMEOUT_SECONDS: float = 60.0
    SPEECH_PLATFORM_MODE: Literal["auto", "restart", "terminate"] = "auto"
    SPEECH_LANGUAGE: str = DEFAULT_LANGUAGE_CODE
    VOSK_MODEL_PATH: str | None = None
    AUDIO_SAMPLE_RATE: int = 16_000
    AUDIO_FRAME_MS: int = 30
    AUDIO_INPUT_DEVICE: str | int | None = None
    SPEECH_MAX_CAPTURE_SECONDS: float | None = None
    SPEECH_USER_AGENT: str | None = None
    TTS_API_URL: str | None = None
    TTS_API_KEY: str | None = None
    TTS_VOICES_PATH: str | None = None
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True
    OTEL_EXPORTER_OTLP_ENDPOINT: str | None = None
    UI_ORIGIN: str = "http://localhost:3000"

    @field_validator("AUDIO_INPUT_DEVICE", mode="before")
    @classmethod
    def _device_index_or_name(cls, value: object) -> object:
        # Sounddevice takes an index or a name substring; blank means default.
        if isinstance(value, str):
            value = value.strip()
            if not value:
                return None
            return int(value) if value.isdigit() else value
        return value

    @property
    def llm(self) -> LLMSettings:
        return LLMSettings(
            gemini_api_key=self.GEMINI_API_KEY,
            gemini_model=self.GEMINI_MODEL,
            gemini_base_url=self.GEMINI_BASE_URL,
            temperature=self.GEMINI_TEMPERATURE,
            timeout_seconds=self.GEMINI_TIMEOUT_SECONDS,
        )

    @property
    def backend(self) -> BackendSettings:
        return BackendSettings(chat_url=self.CHAT_BACKEND_URL, timeout_seconds=self.CHAT_BACKEND_TIMEOUT_SECONDS)

    @property
    def speech(self) -> SpeechSettings:
        return SpeechSettings(
            platform_mode=self.SPEECH_PLATFORM_MODE,
            language=self.SPEECH_LANGUAGE,
            vosk_model_path=self.VOSK_MODEL_PATH or None,
            sample_rate=self.AUDIO_SAMPLE_RATE,
            frame_ms=self.AUDIO_FRAME_MS,
            input_device=self.AUDIO_INPUT_DEVICE,
            max_capture_seconds=self.SPEECH_MAX_CAPTURE_SECONDS,
            user_agent=self.SPEECH_USER_AGENT or None,
        )

    @property
    def tts(self) -> TTSSettings:
        voices_path = Path(self.TTS_VOICES_PATH) if self.TTS_VOICES_PATH else project_root() / "config" / "voices.yml"
        return TTSSettings(base_url=self.TTS_API_URL, api_key=self.TTS_API_KEY, voices_path=voices_path)

    @property
    def telemetry(self) -> TelemetrySettings:
        return TelemetrySettings(
            log_level=self.LOG_LEVEL,
            json_logs=self.LOG_JSON,
            otlp_endpoint=self.OTEL_EXPORTER_OTLP_ENDPOINT,
        )

    @property
    def ui(self) -> UISettings:
        return UISettings(origin=self.UI_ORIGIN)


@functools.lru_cache(maxsize=1)
def load_settings() -> AppSettings:
    return AppSettings()


def project_root() -> Path:
    return Path(__file__).resolve().parents[1]


__all__ = ["AppSettings", "DEFAULT_LANGUAGE_CODE", "load_settings", "project_root"]
