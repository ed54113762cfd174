import asyncio
import json

import pytest

from chatrelay.core.exceptions import MalformedFrameError
from chatrelay.services.sse import (
    DONE_FRAME,
    LineBuffer,
    StreamFrame,
    extract_delta,
    format_delta_frame,
    parse_data_line,
    reframe_line,
    reframe_stream,
)

from conftest import aiter_chunks, delta_frame


def collect(chunks):
    async def _run():
        return [frame async for frame in reframe_stream(aiter_chunks(chunks))]

    return asyncio.run(_run())


def contents(frames):
    out = []
    for frame in frames:
        if frame == DONE_FRAME:
            continue
        out.append(json.loads(frame[len("data: "):])["choices"][0]["delta"]["content"])
    return out


class TestLineBuffer:
    def test_returns_only_complete_lines(self):
        buffer = LineBuffer()
        assert buffer.feed(b"data: a\nda") == ["data: a"]
        assert buffer.feed(b"ta: b\n\n") == ["data: b", ""]
        assert buffer.flush() == []

    def test_flush_returns_partial_line(self):
        buffer = LineBuffer()
        assert buffer.feed(b"data: [DO") == []
        assert buffer.feed(b"NE]") == []
        assert buffer.flush() == ["data: [DONE]"]

    def test_strips_carriage_returns(self):
        buffer = LineBuffer()
        assert buffer.feed(b"data: x\r\n\r\n") == ["data: x", ""]

    def test_multibyte_character_split_across_chunks(self):
        encoded = "data: café\n".encode("utf-8")
        split = encoded.index(b"\xa9")
        buffer = LineBuffer()
        assert buffer.feed(encoded[:split]) == []
        assert buffer.feed(encoded[split:]) == ["data: café"]


class TestExtractDelta:
    def test_reads_first_choice(self):
        payload = {"choices": [{"delta": {"content": "hi"}}, {"delta": {"content": "no"}}]}
        assert extract_delta(payload) == "hi"

    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"choices": []},
            {"choices": None},
            {"choices": [{}]},
            {"choices": [{"delta": {}}]},
            {"choices": [{"delta": {"content": None}}]},
            {"choices": [{"delta": {"role": "assistant"}}]},
            {"choices": ["oops"]},
            [1, 2],
            "text",
        ],
    )
    def test_missing_fields_yield_empty_string(self, payload):
        assert extract_delta(payload) == ""


class TestParseDataLine:
    def test_sentinel(self):
        assert parse_data_line("data: [DONE]") == StreamFrame(done=True)

    def test_delta(self):
        assert parse_data_line(delta_frame("x").strip()) == StreamFrame(False, "x")

    def test_delta_that_looks_like_sentinel_is_content(self):
        assert parse_data_line(delta_frame("[DONE]").strip()) == StreamFrame(False, "[DONE]")

    @pytest.mark.parametrize("line", ["", ": keep-alive", "event: message", "data: ", "data:   "])
    def test_lines_without_data(self, line):
        assert parse_data_line(line) is None

    def test_malformed_json_raises(self):
        with pytest.raises(MalformedFrameError):
            parse_data_line("data: {not json")


class TestReframeLine:
    def test_normalizes_delta(self):
        frame = reframe_line('data: {"id":"1","choices":[{"delta":{"content":"A","role":"assistant"}}]}')
        assert frame == format_delta_frame("A")
        assert json.loads(frame[len("data: "):]) == {
            "choices": [{"delta": {"content": "A"}, "index": 0}]
        }
        assert frame.endswith("\n\n")

    def test_sentinel_passthrough(self):
        assert reframe_line("data: [DONE]") == DONE_FRAME

    def test_empty_delta_dropped(self):
        assert reframe_line('data: {"choices":[{"delta":{}}]}') is None

    def test_malformed_dropped(self):
        assert reframe_line("data: {broken") is None


class TestReframeStream:
    def test_concatenates_in_order_and_ends_with_sentinel(self):
        body = "".join(delta_frame(t) for t in ["Hel", "lo", " world"]) + "data: [DONE]\n\n"
        frames = collect([body.encode()])
        assert contents(frames) == ["Hel", "lo", " world"]
        assert frames[-1] == DONE_FRAME
        assert frames.count(DONE_FRAME) == 2

    def test_byte_at_a_time_delivery(self):
        body = (delta_frame("ñandú") + delta_frame("🙂")).encode("utf-8")
        frames = collect([body[i:i + 1] for i in range(len(body))])
        assert contents(frames) == ["ñandú", "🙂"]
        assert frames == [format_delta_frame("ñandú"), format_delta_frame("🙂"), DONE_FRAME]

    def test_sentinel_mid_stream_does_not_end_relay(self):
        body = delta_frame("A") + "data: [DONE]\n\n" + delta_frame("B")
        frames = collect([body.encode()])
        assert frames == [format_delta_frame("A"), DONE_FRAME, format_delta_frame("B"), DONE_FRAME]

    def test_malformed_frame_is_skipped(self):
        body = delta_frame("A") + "data: {oops\n\n" + delta_frame("B")
        assert contents(collect([body.encode()])) == ["A", "B"]

    def test_residual_line_without_newline_is_flushed(self):
        body = delta_frame("A") + delta_frame("B").rstrip("\n")
        frames = collect([body.encode()])
        assert frames == [format_delta_frame("A"), format_delta_frame("B"), DONE_FRAME]

    def test_empty_upstream_still_emits_sentinel(self):
        assert collect([]) == [DONE_FRAME]
