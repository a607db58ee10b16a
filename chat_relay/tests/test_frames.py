import pytest

from chat_relay.domain.exceptions import StreamInterruptedError
from chat_relay.streaming.frames import (
    FrameDecoder,
    LegacyChunkDecoder,
    encode_frame,
    make_decoder,
)


def test_encode_frame():
    assert encode_frame("hello") == "data: hello\n\n"
    assert encode_frame("") == "data: \n\n"


def test_encode_frame_splits_newlines():
    assert encode_frame("a\nb") == "data: a\ndata: b\n\n"
    assert encode_frame("a\r\nb\n") == "data: a\ndata: b\ndata: \n\n"


def test_encode_frame_unsplit_keeps_raw_text():
    assert encode_frame("a\n\nb", split_newlines=False) == "data: a\n\nb\n\n"


def test_frame_decoder_rejoins_multiline_fragment():
    dec = FrameDecoder()
    text = "".join(encode_frame(f) for f in ["* one\n* two", "\n```x```"])
    assert dec.feed(text) == "* one\n* two\n```x```"
    assert dec.flush() == ""


def test_frame_decoder_handles_split_chunks():
    dec = FrameDecoder()
    assert dec.feed("da") == ""
    assert dec.feed("ta: 4\n") == ""
    assert dec.feed("\ndata: .\n\n") == "4."


def test_frame_decoder_only_strips_line_prefix():
    dec = FrameDecoder()
    assert dec.feed("data: say data: hi\n\n") == "say data: hi"


def test_frame_decoder_ignores_comments_and_other_fields():
    dec = FrameDecoder()
    assert dec.feed(": ping\n\nevent: msg\nid: 1\ndata:x\n\n") == "x"


def test_frame_decoder_crlf():
    dec = FrameDecoder()
    assert dec.feed("data: a\r\n\r") == ""
    assert dec.feed("\n") == "a"


def test_carriage_returns_arrive_as_newlines():
    dec = FrameDecoder()
    text = "".join(encode_frame(f) for f in ["a\r\nb", "c\rd"])
    assert dec.feed(text) == "a\nbc\nd"


def test_frame_decoder_truncated_stream():
    dec = FrameDecoder()
    assert dec.feed("data: 4\n\ndata: par") == "4"
    with pytest.raises(StreamInterruptedError):
        dec.flush()


def test_legacy_decoder_strips_every_occurrence():
    dec = LegacyChunkDecoder()
    chunks = ["data: 4", "data: .", "data: say data: hi\n\n"]
    assert "".join(dec.feed(c) for c in chunks) == "4.say hi\n\n"
    assert dec.flush() == ""


def test_make_decoder():
    assert isinstance(make_decoder(), FrameDecoder)
    assert isinstance(make_decoder("legacy"), LegacyChunkDecoder)
    with pytest.raises(ValueError):
        make_decoder("ndjson")
