from __future__ import annotations

import regex as re

DEVANAGARI = re.compile(r"\p{Script=Devanagari}")
LETTERS = re.compile(r"[\p{L}\p{M}]+", re.UNICODE)


def detect_script_language(text: str | None) -> str:
    """Return 'hi' when the letters of *text* include Devanagari, else 'en'.

    Hinglish written in Latin script counts as 'en'.
    """
    if not text or not isinstance(text, str):
        return "en"
    letters = "".join(LETTERS.findall(text))
    if letters and DEVANAGARI.search(letters):
        return "hi"
    return "en"


def base_language(language_code: str | None) -> str | None:
    """'hi-IN' -> 'hi'; blank or missing codes give None."""
    if not language_code or not language_code.strip():
        return None
    return language_code.strip().replace("_", "-").split("-", 1)[0].lower()


__all__ = ["detect_script_language", "base_language"]
