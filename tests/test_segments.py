"""Tests for splitting, encoding and reassembling transport segments."""

from __future__ import annotations

import base64

import pytest

from smsgw.services.exceptions import MalformedSegment
from smsgw.utils import segments
from smsgw.utils.segments import decode, reassemble, split, split_and_encode


def test_split_empty_text_yields_no_chunks():
    assert split("", 10) == []


def test_split_short_text_is_single_chunk():
    assert split("hello", 5) == ["hello"]


def test_split_rejects_non_positive_length():
    with pytest.raises(ValueError):
        split("hello", 0)


@pytest.mark.parametrize(
    "text",
    [
        "a" * 1001,
        "line one\nline two\n\nline three\n" * 40,
        "çğışöü ÇĞİŞÖÜ " * 50,
        "emoji 🚀🌍 and 中文字符 " * 30,
        "tab\tand\rcarriage\x07bell " * 20,
    ],
)
def test_split_is_lossless_and_bounded(text):
    chunks = split(text, 37)

    assert "".join(chunks) == text
    assert all(0 < len(chunk) <= 37 for chunk in chunks)
    assert len(chunks) == -(-len(text) // 37)


def test_split_counts_code_points_not_bytes():
    text = "ş" * 10
    assert split(text, 5) == ["ş" * 5, "ş" * 5]


def test_split_and_encode_tags_each_segment():
    text = "x" * 1200
    encoded = split_and_encode(text, 500)

    assert [item.split("|", 1)[0] for item in encoded] == ["GW1", "GW2", "GW3"]
    lengths = [len(base64.b64decode(item.split("|", 1)[1])) for item in encoded]
    assert lengths == [500, 500, 200]


def test_split_and_encode_empty_text():
    assert split_and_encode("", 500) == []


def test_decode_returns_index_and_text():
    payload = base64.b64encode("merhaba dünya".encode()).decode()
    assert decode(f"GW4|{payload}") == (4, "merhaba dünya")


@pytest.mark.parametrize(
    "raw",
    [
        "",
        "hello",
        "GW|aGVsbG8=",
        "GWx|aGVsbG8=",
        "GW0|aGVsbG8=",
        "GW1aGVsbG8=",
        "GW1|not base64!",
        "GW1|aGVsbG8",
        "GW\u0661|aGk=",
    ],
)
def test_decode_rejects_malformed_segments(raw):
    with pytest.raises(MalformedSegment):
        decode(raw)


def test_decode_rejects_invalid_utf8():
    payload = base64.b64encode(b"\xff\xfe\xfd").decode()
    with pytest.raises(MalformedSegment):
        decode(f"GW1|{payload}")


def test_reassemble_accepts_any_order():
    text = "Ankara'da hava güneşli 🌞 " * 20
    encoded = split_and_encode(text, 33)

    assert reassemble(reversed(encoded)) == text


def test_reassemble_detects_missing_segment():
    encoded = split_and_encode("a" * 30, 10)

    with pytest.raises(MalformedSegment):
        reassemble([encoded[0], encoded[2]])


def test_reassemble_detects_duplicates():
    encoded = split_and_encode("a" * 20, 10)

    with pytest.raises(MalformedSegment):
        reassemble([encoded[0], encoded[0], encoded[1]])


def test_encode_payload_is_padded_standard_base64():
    assert segments.encode_payload("ab") == "YWI="
