"""
client/decoder.py

Incremental decoder for the relay's event stream.

Upstream format (one event per line):
  data: {"choices":[{"delta":{"content":"Hel"}}]}
  data: [DONE]

Chunks arrive with arbitrary boundaries: mid-line, mid-JSON, even
mid-UTF-8 character. Bytes go through a stateful UTF-8 decoder into
a text buffer; only complete lines are parsed.

A data line whose JSON fails to parse is pushed back to the front of
the buffer and retried on the next chunk. The same line gets at most
`max_line_retries` retries, then it is dropped and logged so one bad
line cannot stall the rest of the stream.
"""

import asyncio
import codecs
import json
from dataclasses import dataclass
from typing import AsyncIterable, AsyncIterator, Callable, Literal, Optional

from engigenius.core.config import settings
from engigenius.core.logger import get_logger

logger = get_logger(__name__)

DATA_PREFIX = "data: "
COMMENT_PREFIX = ":"
DONE_TOKEN = "[DONE]"

EventKind = Literal["delta", "done", "ignored", "malformed"]


@dataclass(frozen=True)
class StreamEvent:
    kind: EventKind
    text: str = ""


def parse_line(line: str) -> StreamEvent:
    """Classify one complete line (without its line feed)."""
    if line.endswith("\r"):
        line = line[:-1]
    if line.startswith(COMMENT_PREFIX) or line.strip() == "":
        return StreamEvent("ignored")
    if not line.startswith(DATA_PREFIX):
        return StreamEvent("ignored")

    payload = line[len(DATA_PREFIX):].strip()
    if payload == DONE_TOKEN:
        return StreamEvent("done")

    try:
        parsed = json.loads(payload)
    except (ValueError, RecursionError):
        return StreamEvent("malformed")

    content = _delta_content(parsed)
    if content:
        return StreamEvent("delta", content)
    return StreamEvent("ignored")


def _delta_content(parsed) -> Optional[str]:
    """choices[0].delta.content, or None when any level is missing."""
    if not isinstance(parsed, dict):
        return None
    choices = parsed.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    delta = first.get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    return content if isinstance(content, str) else None


class SSEDecoder:
    """Feed raw bytes in, get text deltas out. One instance per stream."""

    def __init__(self, max_line_retries: Optional[int] = None):
        self.max_line_retries = (
            settings.DECODER_MAX_LINE_RETRIES if max_line_retries is None else max_line_retries
        )
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._stalled_line: Optional[str] = None
        self._stall_count = 0
        self.done = False
        self.dropped_lines = 0

    def feed(self, chunk: bytes) -> list[str]:
        if self.done:
            return []
        self._buffer += self._utf8.decode(chunk)
        return self._drain(final=False)

    def flush(self) -> list[str]:
        """End of stream: decode what is left, including an unterminated last line."""
        if self.done:
            return []
        self._buffer += self._utf8.decode(b"", final=True)
        if self._buffer and not self._buffer.endswith("\n"):
            self._buffer += "\n"
        return self._drain(final=True)

    def _drain(self, final: bool) -> list[str]:
        deltas: list[str] = []
        while not self.done:
            newline = self._buffer.find("\n")
            if newline == -1:
                break
            line = self._buffer[:newline]
            self._buffer = self._buffer[newline + 1:]

            event = parse_line(line)
            if event.kind == "done":
                self.done = True
                break
            if event.kind == "malformed":
                if not final and self._retry(line):
                    # maybe truncated; wait for the next chunk
                    self._buffer = line + "\n" + self._buffer
                    break
                self._drop(line)
                continue

            self._stalled_line = None
            self._stall_count = 0
            if event.kind == "delta":
                deltas.append(event.text)
        return deltas

    def _retry(self, line: str) -> bool:
        if line != self._stalled_line:
            self._stalled_line = line
            self._stall_count = 0
        self._stall_count += 1
        return self._stall_count <= self.max_line_retries

    def _drop(self, line: str) -> None:
        self.dropped_lines += 1
        self._stalled_line = None
        self._stall_count = 0
        logger.warning(f"Dropping malformed stream line: {line[:200]!r}")


async def iter_deltas(
    chunks: AsyncIterable[bytes],
    *,
    cancel: Optional[asyncio.Event] = None,
    decoder: Optional[SSEDecoder] = None,
) -> AsyncIterator[str]:
    """
    Lazily yield text deltas from a byte stream.
    Stops after [DONE], at end of stream, or as soon as `cancel` is set.
    """
    decoder = decoder or SSEDecoder()
    async for chunk in chunks:
        if cancel is not None and cancel.is_set():
            logger.info("Stream decoding cancelled")
            return
        for delta in decoder.feed(chunk):
            yield delta
        if decoder.done:
            return
    if cancel is not None and cancel.is_set():
        return
    for delta in decoder.flush():
        yield delta


async def assemble(
    chunks: AsyncIterable[bytes],
    *,
    on_delta: Optional[Callable[[str, str], None]] = None,
    cancel: Optional[asyncio.Event] = None,
    decoder: Optional[SSEDecoder] = None,
) -> str:
    """Full answer text. `on_delta(delta, text_so_far)` fires per delta, in order."""
    full = ""
    async for delta in iter_deltas(chunks, cancel=cancel, decoder=decoder):
        full += delta
        if on_delta is not None:
            on_delta(delta, full)
    return full
