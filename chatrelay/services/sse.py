"""Server-Sent Events framing for chat completion streams.

Upstream providers and the relay speak the same line protocol: every event is a
``data: <json>`` line followed by a blank line, and the stream ends with the
``data: [DONE]`` sentinel. Network reads are not frame aligned, so bytes are
accumulated in a :class:`LineBuffer` and only complete lines are interpreted.
"""

import codecs
import json
from typing import Any, AsyncGenerator, AsyncIterable, List, NamedTuple, Optional

from chatrelay.core.exceptions import MalformedFrameError
from chatrelay.core.logging import setup_logger

logger = setup_logger(__name__)

DATA_PREFIX = "data: "
DONE_MARKER = "[DONE]"
DONE_FRAME = f"{DATA_PREFIX}{DONE_MARKER}\n\n"


class LineBuffer:
    """Accumulates streamed bytes and hands back complete lines only."""

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""

    def feed(self, chunk: bytes) -> List[str]:
        """
        Add a chunk and return every line it completed.

        The trailing partial line, if any, stays buffered until a later chunk
        terminates it or :meth:`flush` is called.
        """
        self._pending += self._decoder.decode(chunk)
        lines = self._pending.split("\n")
        self._pending = lines.pop()
        return [line.rstrip("\r") for line in lines]

    def flush(self) -> List[str]:
        """Return whatever is left once the stream has ended."""
        self._pending += self._decoder.decode(b"", final=True)
        residue, self._pending = self._pending, ""
        if not residue.strip():
            return []
        return [line.rstrip("\r") for line in residue.split("\n")]


def format_delta_frame(content: str) -> str:
    """Build the normalized frame carrying one text delta."""
    chunk = {"choices": [{"delta": {"content": content}, "index": 0}]}
    return f"{DATA_PREFIX}{json.dumps(chunk, ensure_ascii=False)}\n\n"


def extract_delta(payload: Any) -> str:
    """Pull ``choices[0].delta.content`` out of a loosely shaped payload."""
    if not isinstance(payload, dict):
        return ""
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return ""
    first = choices[0]
    if not isinstance(first, dict):
        return ""
    delta = first.get("delta")
    if not isinstance(delta, dict):
        return ""
    content = delta.get("content")
    return content if isinstance(content, str) else ""


class StreamFrame(NamedTuple):
    """A decoded data frame: either the sentinel or a (possibly empty) delta."""

    done: bool
    content: str = ""


def parse_data_line(line: str) -> Optional[StreamFrame]:
    """
    Interpret one complete line of an event stream.

    Returns:
        The decoded frame, or None for lines that carry no data (comments,
        ``event:`` fields, blank separators).

    Raises:
        MalformedFrameError: If a data frame's payload is not valid JSON.
    """
    if not line.startswith(DATA_PREFIX):
        return None
    data = line[len(DATA_PREFIX):]
    if data == DONE_MARKER:
        return StreamFrame(done=True)
    if not data.strip():
        return None
    try:
        payload = json.loads(data)
    except ValueError as e:
        raise MalformedFrameError(
            "Malformed stream frame", details={"frame": data[:200]}
        ) from e
    return StreamFrame(done=False, content=extract_delta(payload))


def reframe_line(line: str) -> Optional[str]:
    """
    Translate one upstream line into the normalized frame to send downstream.

    Malformed frames are dropped so that one corrupt event cannot end an
    otherwise healthy stream.
    """
    try:
        parsed = parse_data_line(line)
    except MalformedFrameError as e:
        logger.debug(f"Skipping malformed upstream frame: {e.details.get('frame')}")
        return None
    if parsed is None:
        return None
    if parsed.done:
        return DONE_FRAME
    if not parsed.content:
        return None
    return format_delta_frame(parsed.content)


async def reframe_stream(chunks: AsyncIterable[bytes]) -> AsyncGenerator[str, None]:
    """
    Re-frame an upstream byte stream into normalized frames.

    Frame order is preserved. A sentinel seen mid-stream is forwarded and the
    stream keeps going; exactly one trailing sentinel is emitted once the
    upstream stream is exhausted.
    """
    buffer = LineBuffer()
    async for chunk in chunks:
        for line in buffer.feed(chunk):
            frame = reframe_line(line)
            if frame:
                yield frame

    for line in buffer.flush():
        frame = reframe_line(line)
        if frame:
            yield frame

    yield DONE_FRAME
