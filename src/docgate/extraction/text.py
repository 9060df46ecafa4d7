"""Text normalization and script-based language detection."""

import re

_WHITESPACE = re.compile(r"\s+")
_CONTROL = re.compile(r"[\x00-\x1f\x7f]")
_KANA = re.compile(r"[\u3040-\u309f\u30a0-\u30ff]")
_HAN = re.compile(r"[\u4e00-\u9faf]")


def clean_text(text: str) -> str:
    """Collapse whitespace runs to one space and strip control characters."""
    text = _WHITESPACE.sub(" ", text)
    return _CONTROL.sub("", text).strip()


def detect_language(text: str, fallback: str = "en") -> str:
    """
    ja if any kana appears, zh for Han ideographs without kana, else `fallback`.
    """
    if _KANA.search(text):
        return "ja"
    if _HAN.search(text):
        return "zh"
    return fallback
