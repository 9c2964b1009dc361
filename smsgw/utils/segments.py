"""Split long text into bounded transport segments and back.

Outbound SMS payloads are cut into fixed-width character chunks, each
base64-encoded and tagged with a ``GW<n>|`` header so a receiver can put
multi-part replies back in order.  Lengths are counted in code points, not
encoded bytes.
"""

from __future__ import annotations

import base64
import binascii
import re
from typing import Iterable

from smsgw.services.exceptions import MalformedSegment

HEADER_PREFIX = "GW"
HEADER_SEPARATOR = "|"
HEADER_RE = re.compile(r"^GW([0-9]+)\|")


def split(text: str, max_length: int) -> list[str]:
    """Cut ``text`` into chunks of at most ``max_length`` characters.

    Line boundaries are ignored, so joining the chunks with ``""`` gives back
    the original text.  Empty input yields no chunks at all.
    """

    if max_length <= 0:
        raise ValueError("max_length must be a positive integer.")
    if not text:
        return []
    if len(text) <= max_length:
        return [text]
    return [text[start : start + max_length] for start in range(0, len(text), max_length)]


def split_and_encode(text: str, max_length: int) -> list[str]:
    """Split ``text`` and render every chunk as ``GW<i>|<base64>``."""

    return [
        f"{HEADER_PREFIX}{index}{HEADER_SEPARATOR}{encode_payload(part)}"
        for index, part in enumerate(split(text, max_length), start=1)
    ]


def decode(raw_segment: str) -> tuple[int, str]:
    """Parse one ``GW<i>|<base64>`` segment into ``(i, text)``."""

    match = HEADER_RE.match(raw_segment or "")
    if match is None:
        raise MalformedSegment("Segment is missing the GW<n>| header.")
    index = int(match.group(1))
    if index < 1:
        raise MalformedSegment("Segment index must start at 1.")

    payload = raw_segment[match.end() :]
    try:
        raw = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise MalformedSegment(f"Segment {index} payload is not valid base64.") from exc
    try:
        return index, raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise MalformedSegment(f"Segment {index} payload is not valid UTF-8.") from exc


def reassemble(raw_segments: Iterable[str]) -> str:
    """Rebuild the original text from a complete set of segments in any order."""

    decoded = sorted((decode(raw) for raw in raw_segments), key=lambda item: item[0])
    indices = [index for index, _ in decoded]
    if indices != list(range(1, len(indices) + 1)):
        raise MalformedSegment(f"Segment sequence is incomplete or duplicated: {indices}.")
    return "".join(text for _, text in decoded)


def encode_payload(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


__all__ = [
    "HEADER_PREFIX",
    "decode",
    "encode_payload",
    "reassemble",
    "split",
    "split_and_encode",
]
