"""Tests for the incremental event-stream decoder"""

import json

from coach_api.relay.sse import SseLineDecoder, StreamFrame, extract_delta

from conftest import SSE_DONE, sse_delta, sse_stream


def _text(frames):
    return "".join(frame.text for frame in frames if not frame.is_done)


def _decode(chunks):
    decoder = SseLineDecoder()
    frames = []
    for chunk in chunks:
        frames.extend(decoder.feed(chunk))
    frames.extend(decoder.finish())
    return frames


def test_decodes_deltas_and_done():
    frames = _decode([sse_stream("Hello", ", ", "world")])
    assert frames == [
        StreamFrame.delta("Hello"),
        StreamFrame.delta(", "),
        StreamFrame.delta("world"),
        StreamFrame.done(),
    ]


def test_every_split_offset_gives_same_text():
    data = sse_stream("Bonjour ", "héllo ", "🙂 ", "done")
    expected = "Bonjour héllo 🙂 done"

    for offset in range(len(data) + 1):
        frames = _decode([data[:offset], data[offset:]])
        assert _text(frames) == expected, f"split at byte {offset}"
        assert frames[-1].is_done


def test_single_byte_chunks():
    data = sse_stream("one ", "two ", "three")
    frames = _decode([data[i:i + 1] for i in range(len(data))])
    assert _text(frames) == "one two three"


def test_json_split_across_reads():
    decoder = SseLineDecoder()
    assert decoder.feed(b'data: {"choi') == []
    frames = decoder.feed(b'ces":[{"delta":{"content":"Hi"}}]}\n')
    assert frames == [StreamFrame.delta("Hi")]
    assert decoder.pending == ""


def test_done_stops_decoding_in_same_chunk():
    decoder = SseLineDecoder()
    frames = decoder.feed(sse_delta("kept") + SSE_DONE + sse_delta("ignored"))
    assert frames == [StreamFrame.delta("kept"), StreamFrame.done()]
    assert decoder.done
    assert decoder.feed(sse_delta("later")) == []
    assert decoder.finish() == []


def test_comments_blank_and_other_fields_ignored():
    chunk = (
        b": keep-alive\n"
        b"\n"
        b"event: message\n"
        b"id: 42\n"
        b"retry: 1000\n"
        + sse_delta("x")
    )
    assert _decode([chunk]) == [StreamFrame.delta("x")]


def test_crlf_line_endings():
    chunk = b'data: {"choices":[{"delta":{"content":"a"}}]}\r\n\r\ndata: [DONE]\r\n'
    assert _decode([chunk]) == [StreamFrame.delta("a"), StreamFrame.done()]


def test_unparseable_line_holds_back_rest_of_chunk_until_finish():
    decoder = SseLineDecoder()
    assert decoder.feed(b"data: {not json\n" + sse_delta("x")) == []
    assert decoder.pending.startswith("data: {not json\n")

    # Still stuck behind the bad line on the next read
    assert decoder.feed(sse_delta("y")) == []

    # Flushing drops the bad line and recovers everything after it
    assert _text(decoder.finish()) == "xy"


def test_final_line_without_newline_flushed():
    decoder = SseLineDecoder()
    payload = json.dumps({"choices": [{"delta": {"content": "tail"}}]})
    assert decoder.feed(f"data: {payload}".encode()) == []
    assert decoder.finish() == [StreamFrame.delta("tail")]


def test_stream_without_done_and_without_content():
    frames = _decode([b'data: {"choices":[{"delta":{"role":"assistant"}}]}\n\n'])
    assert frames == []


def test_finish_only_once():
    decoder = SseLineDecoder()
    decoder.feed(b'data: {"choices":[{"delta":{"content":"z"}}]}')
    assert decoder.finish() == [StreamFrame.delta("z")]
    assert decoder.finish() == []


def test_invalid_utf8_is_replaced_not_raised():
    frames = _decode([b'data: {"choices":[{"delta":{"content":"a\xff"}}]}\n'])
    assert _text(frames) == "a�"


def test_extract_delta_shapes():
    assert extract_delta({"choices": [{"delta": {"content": "ok"}}]}) == "ok"
    assert extract_delta({"choices": [{"delta": {"content": ""}}]}) is None
    assert extract_delta({"choices": []}) is None
    assert extract_delta({"choices": [{"delta": {"content": 5}}]}) is None
    assert extract_delta({"error": "boom"}) is None
    assert extract_delta(["not", "a", "dict"]) is None
