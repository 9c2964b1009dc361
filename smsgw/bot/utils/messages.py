"""Formatting helpers for Telegram replies."""

from __future__ import annotations

import re

from smsgw.utils.segments import split

# Control characters other than tab/newline/carriage return, plus zero-width marks
_STRIP_RE = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\u200b\u200c\u200d\ufeff]")


def sanitize_content(text: str) -> str:
    """Drop characters Telegram rejects or renders invisibly."""

    cleaned = _STRIP_RE.sub("", text or "")
    # Lone surrogates cannot be encoded for the Bot API
    return cleaned.encode("utf-8", errors="ignore").decode("utf-8")


def split_for_telegram(text: str, chunk_length: int) -> list[str]:
    return split(sanitize_content(text), chunk_length)


def paginate(chunks: list[str], header: str) -> list[str]:
    """Prefix multi-part replies with ``header`` formatted by index/total."""

    if len(chunks) <= 1:
        return chunks
    total = len(chunks)
    return [
        f"{header.format(index=index, total=total)}\n\n{chunk}"
        for index, chunk in enumerate(chunks, start=1)
    ]


__all__ = ["paginate", "sanitize_content", "split_for_telegram"]
