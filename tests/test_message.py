from __future__ import annotations

import pytest

from udpft.message import (
    DecodeError,
    Message,
    MessageType,
    decode,
    encode,
    format_chunk_id,
    split_chunk,
)


def test_data_wire_format():
    raw = encode(Message.data("0007", "hello world"))
    assert raw == b'{"Type":"Data","Content":"0007hello world"}'


def test_roundtrip_data():
    m = decode(encode(Message.data("0042", "payload")))
    assert m.type is MessageType.DATA
    assert split_chunk(m.content) == ("0042", "payload")


def test_welcome_and_end_carry_empty_content():
    assert decode(encode(Message.welcome())).content == ""
    assert decode(encode(Message.end())).content == ""


def test_non_ascii_payload_stays_ascii_on_the_wire():
    raw = encode(Message.data("0000", "café"))
    raw.decode("ascii")
    assert decode(raw).content == "0000café"


@pytest.mark.parametrize(
    "raw",
    [
        b'{"Type":"Data"}',
        b'{"Type":"Data","Content":null}',
    ],
)
def test_absent_content_decodes_to_none(raw):
    assert decode(raw).content is None


@pytest.mark.parametrize(
    "raw",
    [
        b"not json",
        b"\xff\xfe",
        b'["Hello","20"]',
        b'{"Type":"Goodbye","Content":""}',
        b'{"Type":null,"Content":""}',
        b'{"Content":"20"}',
        b'{"Type":"Hello","Content":20}',
        b'{"Type":"Hello","Content":"20","Extra":1}',
    ],
)
def test_malformed_messages(raw):
    with pytest.raises(DecodeError):
        decode(raw)


def test_decode_error_is_value_error():
    assert issubclass(DecodeError, ValueError)


def test_chunk_ids_are_zero_padded_and_wrap():
    assert format_chunk_id(0) == "0000"
    assert format_chunk_id(7) == "0007"
    assert format_chunk_id(9999) == "9999"
    assert format_chunk_id(10000) == "0000"
    assert format_chunk_id(10042) == "0042"


def test_split_chunk_rejects_short_content():
    assert split_chunk("0001") == ("0001", "")
    with pytest.raises(ValueError):
        split_chunk("001")
