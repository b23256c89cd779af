from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from kuber.config import DEFAULT_LANGUAGE_CODE
from kuber.telemetry.logging import get_logger

FALLBACK_REPLY = "I'm having a little trouble thinking right now, please try asking in a different way."
CRITICAL_ERROR_REPLY = "Sorry, a critical technical error occurred. Please try again later."

_logger = get_logger(__name__)


class ResponseEnvelope(BaseModel):
    """Structured reply every model turn is built from."""

    model_config = ConfigDict(extra="forbid", strict=True, frozen=True)

    reply: str = Field(..., description="Text shown and spoken to the user")
    language_code: str = Field(..., description="BCP-47 tag used for playback, e.g. en-IN or hi-IN")


FALLBACK_ENVELOPE = ResponseEnvelope(reply=FALLBACK_REPLY, language_code=DEFAULT_LANGUAGE_CODE)
CRITICAL_ERROR_ENVELOPE = ResponseEnvelope(reply=CRITICAL_ERROR_REPLY, language_code=DEFAULT_LANGUAGE_CODE)


def extract_candidate(raw_text: str) -> str:
    """Greedy slice from the first ``{`` to the last ``}``, or "" when there is none."""
    start = raw_text.find("{")
    end = raw_text.rfind("}")
    if start == -1 or end < start:
        return ""
    return raw_text[start : end + 1]


def parse_envelope(raw_text: str) -> ResponseEnvelope | None:
    candidate = extract_candidate(raw_text)
    if not candidate:
        return None
    try:
        return ResponseEnvelope.model_validate_json(candidate)
    except Exception as exc:
        _logger.warning("envelope.parse.failed", candidate=candidate[:200], error=str(exc))
        return None


def recover_envelope(raw_text: str | None) -> ResponseEnvelope:
    """Return the envelope embedded in *raw_text*, or the fallback envelope.

    Generations may wrap the object in prose or code fences; anything that is
    not exactly the two string fields maps to ``FALLBACK_ENVELOPE``.
    """
    envelope = parse_envelope(raw_text) if isinstance(raw_text, str) else None
    if envelope is None:
        preview = raw_text[:200] if isinstance(raw_text, str) else repr(raw_text)
        _logger.error("envelope.fallback", raw=preview)
        return FALLBACK_ENVELOPE
    return envelope


__all__ = [
    "ResponseEnvelope",
    "FALLBACK_ENVELOPE",
    "FALLBACK_REPLY",
    "CRITICAL_ERROR_ENVELOPE",
    "CRITICAL_ERROR_REPLY",
    "extract_candidate",
    "parse_envelope",
    "recover_envelope",
]
