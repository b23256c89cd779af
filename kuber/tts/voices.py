from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from kuber.lang.script_detect import base_language, detect_script_language


class VoiceCatalog:
    def __init__(self, raw_config: dict[str, Any]) -> None:
        self._languages: dict[str, dict[str, Any]] = raw_config.get("languages") or {}
        if not self._languages:
            raise ValueError("voice config defines no languages")
        self._scripts: dict[str, str] = raw_config.get("scripts") or {}
        default = raw_config.get("default_language")
        if not default or default not in self._languages:
            default = next(iter(self._languages))
        self._default = default

    @property
    def default_language(self) -> str:
        return self._default

    def languages(self) -> list[str]:
        return list(self._languages)

    def resolve(self, language_code: str | None, text: str = "") -> tuple[dict[str, Any], str]:
        """Return flattened voice params and the language tag they belong to.

        Exact tag first, then any configured tag with the same base language,
        then the language implied by the script of *text*.
        """
        tag = self._match(language_code)
        if tag is None:
            tag = self._match(self._scripts.get(detect_script_language(text))) or self._default
        slot = self._languages[tag]
        flat: dict[str, Any] = {}
        params = slot.get("params")
        if isinstance(params, dict):
            flat.update(params)
        if "voice" in slot:
            flat["voice"] = slot["voice"]
        return flat, tag

    def _match(self, language_code: str | None) -> str | None:
        if not language_code:
            return None
        if language_code in self._languages:
            return language_code
        wanted = base_language(language_code)
        for tag in self._languages:
            if base_language(tag) == wanted:
                return tag
        return None


def load_catalog(path: Path) -> VoiceCatalog:
    if not path.exists():
        raise FileNotFoundError(path)
    raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError(f"{path.name} must define a mapping")
    return VoiceCatalog(raw)


__all__ = ["VoiceCatalog", "load_catalog"]
