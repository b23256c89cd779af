from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal


class Role(str, Enum):
    USER = "user"
    MODEL = "model"


@dataclass(frozen=True, slots=True)
class Turn:
    role: Role
    text: str
    language_code: str | None = None

    def to_history_item(self) -> dict[str, str]:
        """Backend view of the turn: role and text only."""
        return {"role": self.role.value, "text": self.text}

    def to_dict(self) -> dict[str, Any]:
        return {"role": self.role.value, "text": self.text, "language_code": self.language_code}


class SpeechStatus(str, Enum):
    IDLE = "idle"
    LISTENING = "listening"
    STOPPING = "stopping"


class PlatformMode(str, Enum):
    RESTART_ON_TIMEOUT = "restart"
    TERMINATE_ON_TIMEOUT = "terminate"


State = Literal["IDLE", "LISTENING", "THINKING", "SPEAKING", "TURN"]


__all__ = ["Role", "Turn", "SpeechStatus", "PlatformMode", "State"]
