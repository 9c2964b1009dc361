"""Map inbound SMS text to gateway commands."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Literal

URL_RE = re.compile(r"https?://[\w\-.]+[\w\-/]*")

CommandKind = Literal["url", "twitter", "search", "wiki", "weather", "subscribe"]


@dataclass(frozen=True, slots=True)
class Command:
    kind: CommandKind
    argument: str
    extra: dict[str, str] = field(default_factory=dict)


def is_url(text: str) -> bool:
    return bool(URL_RE.search(text or ""))


def _strip_prefix(content: str, prefix: str) -> str | None:
    if content.lower().startswith(prefix):
        return content[len(prefix) :].strip()
    return None


def parse_command(text: str) -> Command | None:
    content = (text or "").strip()
    if not content:
        return None

    if (email := _strip_prefix(content, "subscribe ")) is not None:
        return Command("subscribe", email)
    if is_url(content):
        return Command("url", content)
    if (username := _strip_prefix(content, "twitter user ")) is not None:
        return Command("twitter", username)
    if (query := _strip_prefix(content, "websearch ")) is not None:
        return Command("search", query)
    if (rest := _strip_prefix(content, "wiki ")) is not None:
        parts = rest.split(maxsplit=1)
        if len(parts) != 2:
            return None
        return Command("wiki", parts[1].strip(), {"lang": parts[0].strip()})
    if (location := _strip_prefix(content, "weather ")) is not None:
        return Command("weather", location)
    return None


__all__ = ["Command", "is_url", "parse_command"]
