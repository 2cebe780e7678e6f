from __future__ import annotations

import pytest

from herald_v1.errors import OpenQuoteError
from herald_v1.utils.text_utils import (
    codepoints_to_text,
    decode_uint64,
    encode_uint64,
    get_mention_id,
    get_quote_substrings,
    get_unicode_letter,
    split_for_discord,
)


def test_quote_substrings_in_order_and_skip_empty_pairs() -> None:
    text = '!bot poll "Best fruit?" "" "Apple" "Banana"'
    assert get_quote_substrings(text) == ["Best fruit?", "Apple", "Banana"]


def test_quote_substrings_without_quotes() -> None:
    assert get_quote_substrings("no quotes here") == []


def test_open_quote_raises() -> None:
    with pytest.raises(OpenQuoteError):
        get_quote_substrings('"title" "dangling')


def test_mention_id_shapes() -> None:
    assert get_mention_id("<@!42>") == 42
    assert get_mention_id("<@42>") == 42
    assert get_mention_id("<@!abc>") == 0
    assert get_mention_id("@someone") == 0
    assert get_mention_id("<@!42") == 0
    assert get_mention_id("") == 0


def test_unicode_letters_are_regional_indicators() -> None:
    assert get_unicode_letter(0) == "\U0001F1E6"
    assert get_unicode_letter(1) == "\U0001F1E7"
    assert get_unicode_letter(25) == "\U0001F1FF"
    assert get_unicode_letter(26) == ""
    assert get_unicode_letter(-1) == ""


def test_uint64_little_endian() -> None:
    assert encode_uint64(1) == b"\x01" + b"\x00" * 7
    assert decode_uint64(encode_uint64(1234567890123456789)) == 1234567890123456789
    assert decode_uint64(b"\x01\x02") == 0


def test_codepoint_sequences() -> None:
    assert codepoints_to_text("1F44D") == "\U0001F44D"
    assert codepoints_to_text("1F468-200D-1F469") == "\U0001F468‍\U0001F469"
    with pytest.raises(ValueError):
        codepoints_to_text("zz")


def test_split_for_discord_keeps_chunks_under_limit() -> None:
    text = "\n".join(f"line {index} " + "x" * 40 for index in range(100))
    chunks = split_for_discord(text, limit=500)
    assert len(chunks) > 1
    assert all(len(chunk) <= 500 for chunk in chunks)
    assert "".join(chunks).replace("\n", "") == text.replace("\n", "")


def test_split_for_discord_empty() -> None:
    assert split_for_discord("   ") == []
