from __future__ import annotations

import re

from herald_v1.errors import OpenQuoteError

REGIONAL_INDICATOR_A = 0x1F1E6
MENTION_RE = re.compile(r"^<@!?(\d+)>$")
UINT64_MAX = (1 << 64) - 1


def get_quote_substrings(text: str) -> list[str]:
    """
    Return the non-empty `"`-delimited spans of `text` in order of appearance.

    Raises OpenQuoteError when a quote is opened and never closed.
    """

    quotes: list[str] = []
    start = -1
    for index, char in enumerate(text):
        if char != '"':
            continue
        if start < 0:
            start = index
            continue
        if index - start > 1:
            quotes.append(text[start + 1 : index])
        start = -1
    if start >= 0:
        raise OpenQuoteError("Open quote")
    return quotes


def get_mention_id(token: str) -> int:
    match = MENTION_RE.match(token or "")
    if not match:
        return 0
    value = int(match.group(1))
    if value > UINT64_MAX:
        return 0
    return value


def get_unicode_letter(index: int) -> str:
    if index < 0 or index >= 26:
        return ""
    return chr(REGIONAL_INDICATOR_A + index)


def encode_uint64(value: int) -> bytes:
    return int(value & UINT64_MAX).to_bytes(8, "little")


def decode_uint64(data: bytes) -> int:
    if len(data) < 8:
        return 0
    return int.from_bytes(data[:8], "little")


def codepoints_to_text(raw: str) -> str:
    """Turn `1F44D` or `1F468-200D-1F469` into the characters they name."""

    parts = [part for part in re.split(r"[-\s]+", raw.strip()) if part]
    if not parts:
        raise ValueError("empty codepoint field")
    return "".join(chr(int(part, 16)) for part in parts)


def split_for_discord(text: str, limit: int = 1900) -> list[str]:
    normalized = str(text or "").replace("\r\n", "\n").strip()
    if not normalized:
        return []

    chunks: list[str] = []
    remaining = normalized
    while len(remaining) > limit:
        cut = remaining.rfind("\n", 0, limit + 1)
        if cut < max(1, int(limit * 0.5)):
            cut = remaining.rfind(" ", 0, limit + 1)
        if cut <= 0:
            cut = limit
        chunk = remaining[:cut].rstrip()
        if not chunk:
            chunk = remaining[:limit]
            cut = len(chunk)
        chunks.append(chunk[:limit])
        remaining = remaining[cut:].lstrip("\n")
    if remaining:
        chunks.append(remaining[:limit])
    return chunks
