"""
tests/test_decoder.py
Incremental event-stream decoding: chunk splits, UTF-8 splits,
ignored lines, [DONE], malformed-line budget, cancellation.
"""

import asyncio
import json

import pytest

from engigenius.client.decoder import SSEDecoder, assemble, iter_deltas, parse_line

HEL_LO = (
    b'data: {"choices":[{"delta":{"content":"Hel"}}]}\n'
    b'data: {"choices":[{"delta":{"content":"lo"}}]}\n'
    b'data: [DONE]\n'
)


async def _aiter(parts):
    for part in parts:
        yield part


def run_assemble(parts, **kwargs) -> str:
    return asyncio.run(assemble(_aiter(parts), **kwargs))


def split_at(data: bytes, *offsets: int) -> list[bytes]:
    bounds = [0, *offsets, len(data)]
    return [data[a:b] for a, b in zip(bounds, bounds[1:])]


@pytest.mark.parametrize("offset", range(1, len(HEL_LO)))
def test_two_chunk_split_at_any_offset(offset):
    assert run_assemble(split_at(HEL_LO, offset)) == "Hello"


def test_byte_by_byte_delivery():
    assert run_assemble([HEL_LO[i:i + 1] for i in range(len(HEL_LO))]) == "Hello"


def test_split_exactly_at_json_boundary():
    line = b'data: {"choices":[{"delta":{"content":"Hel"}}]}\n'
    boundary = line.index(b"{")
    parts = [line[:boundary], line[boundary:], b'data: [DONE]\n']
    decoder = SSEDecoder()

    deltas = []
    for part in parts:
        deltas.extend(decoder.feed(part))

    assert deltas == ["Hel"]
    assert decoder.done
    assert decoder.dropped_lines == 0


def test_multibyte_character_split_across_chunks():
    body = f"data: {json.dumps({'choices': [{'delta': {'content': 'Δx → 0 ✓'}}]}, ensure_ascii=False)}\n".encode()
    arrow = body.index("→".encode())
    # cut inside the 3-byte arrow
    assert run_assemble(split_at(body, arrow + 1, arrow + 2)) == "Δx → 0 ✓"


def test_stops_after_done_even_with_more_bytes():
    tail = b'data: {"choices":[{"delta":{"content":"ignored"}}]}\n'
    assert run_assemble([HEL_LO + tail, tail]) == "Hello"


def test_done_stops_lazy_iteration():
    consumed = []

    async def chunks():
        for part in [HEL_LO, b'data: {"choices":[{"delta":{"content":"x"}}]}\n']:
            consumed.append(part)
            yield part

    async def collect():
        return [d async for d in iter_deltas(chunks())]

    assert asyncio.run(collect()) == ["Hel", "lo"]
    assert len(consumed) == 1


@pytest.mark.parametrize("line,kind", [
    (": keep-alive", "ignored"),
    (":OPENROUTER PROCESSING", "ignored"),
    ("", "ignored"),
    ("   ", "ignored"),
    ("event: message", "ignored"),
    ("id: 42", "ignored"),
    ("data:[DONE]", "ignored"),          # prefix includes the space
    ("data: [DONE]", "done"),
    ("data:  [DONE]  ", "done"),
    ("data: [DONE]\r", "done"),
    ('data: {"choices":[{"delta":{"role":"assistant"}}]}', "ignored"),
    ('data: {"choices":[]}', "ignored"),
    ('data: {"choices":[{"delta":{"content":""}}]}', "ignored"),
    ("data: [1, 2]", "ignored"),
    ('data: {"choices":[{"delta":{"content":"x"', "malformed"),
    ('data: {"choices":[{"delta":{"content":"x"}}]}', "delta"),
])
def test_parse_line_classification(line, kind):
    assert parse_line(line).kind == kind


def test_crlf_lines():
    body = HEL_LO.replace(b"\n", b"\r\n")
    assert run_assemble(split_at(body, 10, 60)) == "Hello"


def test_comments_and_blank_lines_between_events():
    body = (
        b": connected\n\n"
        b'data: {"choices":[{"delta":{"content":"A"}}]}\n\n'
        b"event: ping\n"
        b'data: {"choices":[{"delta":{"content":"B"}}]}\n'
        b"data: [DONE]\n"
    )
    assert run_assemble([body]) == "AB"


def test_unterminated_last_line_is_flushed():
    body = b'data: {"choices":[{"delta":{"content":"A"}}]}\ndata: {"choices":[{"delta":{"content":"B"}}]}'
    assert run_assemble(split_at(body, 20)) == "AB"


def test_stream_without_done_returns_everything_seen():
    body = b'data: {"choices":[{"delta":{"content":"partial"}}]}\n'
    assert run_assemble([body]) == "partial"


def test_malformed_line_is_retried_then_dropped():
    decoder = SSEDecoder(max_line_retries=2)
    bad = b"data: {not json\n"
    a = b'data: {"choices":[{"delta":{"content":"A"}}]}\n'
    b = b'data: {"choices":[{"delta":{"content":"B"}}]}\n'

    assert decoder.feed(bad) == []          # retry 1
    assert decoder.feed(a) == []            # retry 2, A waits behind it
    assert decoder.feed(b) == ["A", "B"]    # budget spent: dropped
    assert decoder.dropped_lines == 1
    assert decoder.feed(b"data: [DONE]\n") == []
    assert decoder.done


def test_malformed_line_does_not_stall_forever():
    bad = b"data: {oops\n"
    good = [f'data: {{"choices":[{{"delta":{{"content":"{i}"}}}}]}}\n'.encode() for i in range(10)]
    assert run_assemble([bad, *good, b"data: [DONE]\n"]) == "0123456789"


def test_malformed_line_at_end_of_stream_is_dropped():
    decoder = SSEDecoder(max_line_retries=5)
    assert decoder.feed(b'data: {"choices":[{"delta":{"content":"A"}}]}\ndata: {bad\n') == ["A"]
    assert decoder.flush() == []
    assert decoder.dropped_lines == 1


def test_zero_retry_budget_drops_immediately():
    decoder = SSEDecoder(max_line_retries=0)
    out = decoder.feed(b'data: {bad\ndata: {"choices":[{"delta":{"content":"A"}}]}\n')
    assert out == ["A"]
    assert decoder.dropped_lines == 1


def test_deeply_nested_payload_is_malformed_not_fatal():
    nested = b"data: " + b"[" * 100000 + b"\n"
    a = b'data: {"choices":[{"delta":{"content":"A"}}]}\n'

    assert parse_line(nested.decode().rstrip("\n")).kind == "malformed"
    assert run_assemble([nested, a, b"data: [DONE]\n"]) == "A"


def test_on_delta_sees_running_text_in_order():
    seen = []
    text = run_assemble(split_at(HEL_LO, 30, 70), on_delta=lambda d, full: seen.append((d, full)))
    assert seen == [("Hel", "Hel"), ("lo", "Hello")]
    assert text == "Hello"


def test_cancel_stops_before_next_chunk():
    cancel = asyncio.Event()
    chunks = [
        b'data: {"choices":[{"delta":{"content":"A"}}]}\n',
        b'data: {"choices":[{"delta":{"content":"B"}}]}\n',
    ]

    def on_delta(delta, full):
        cancel.set()

    assert run_assemble(chunks, on_delta=on_delta, cancel=cancel) == "A"


@pytest.mark.parametrize("chunk_size", [1, 3, 7, 16, 64, 4096])
def test_concatenation_invariant(chunk_size):
    pieces = ["# Heading\n", "- item **one**\n", "", "```json\n", '{"a": "b\\n"}', "\n```", "ünïcødé ✓"]
    body = b"".join(
        f"data: {json.dumps({'choices': [{'delta': {'content': p}}]})}\n\n".encode() for p in pieces
    ) + b"data: [DONE]\n\n"
    parts = [body[i:i + chunk_size] for i in range(0, len(body), chunk_size)]
    assert run_assemble(parts) == "".join(pieces)
