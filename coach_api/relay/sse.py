"""
Incremental decoder for the AI gateway's event stream.

The gateway answers with UTF-8 ``text/event-stream`` lines of the form
``data: {json}`` and a final ``data: [DONE]``. Network reads split that text
anywhere, including inside a multi-byte character or a JSON object, so the
decoder keeps whatever has not been consumed yet and resumes on the next
``feed``.
"""

import codecs
import json
from dataclasses import dataclass
from typing import Any, List, Optional

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


@dataclass(frozen=True)
class StreamFrame:
    """One decoded event: a text delta or the terminal sentinel."""

    kind: str
    text: str = ""

    DELTA = "delta"
    DONE = "done"

    @classmethod
    def delta(cls, text: str) -> "StreamFrame":
        return cls(kind=cls.DELTA, text=text)

    @classmethod
    def done(cls) -> "StreamFrame":
        return cls(kind=cls.DONE)

    @property
    def is_done(self) -> bool:
        return self.kind == self.DONE


def extract_delta(payload: Any) -> Optional[str]:
    """Return ``choices[0].delta.content`` if it is a non-empty string."""
    if not isinstance(payload, dict):
        return None
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    delta = first.get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    if isinstance(content, str) and content:
        return content
    return None


class _Skip:
    """Marker for lines that carry no event."""


_SKIP = _Skip()


def _classify(line: str):
    """
    Classify one line without its terminator.

    Returns ``_SKIP`` for comments, blanks and non-data lines, the done frame
    for the sentinel, otherwise the raw JSON payload string.
    """
    if line.endswith("\r"):
        line = line[:-1]
    if line.startswith(":") or line.strip() == "":
        return _SKIP
    if not line.startswith(DATA_PREFIX):
        return _SKIP
    payload = line[len(DATA_PREFIX):].strip()
    if payload == DONE_SENTINEL:
        return StreamFrame.done()
    return payload


class SseLineDecoder:
    """
    Resumable ``data:`` line decoder.

    Call ``feed`` for every chunk as it arrives and ``finish`` once when the
    upstream ends. Both return the frames decoded by that call. After the
    terminal sentinel nothing else is ever decoded.
    """

    def __init__(self):
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._done = False
        self._finished = False

    @property
    def done(self) -> bool:
        """True once ``data: [DONE]`` has been seen."""
        return self._done

    @property
    def pending(self) -> str:
        """Text received but not consumed yet."""
        return self._buffer

    def feed(self, chunk: bytes) -> List[StreamFrame]:
        if self._done or self._finished:
            return []
        self._buffer += self._utf8.decode(chunk)

        frames: List[StreamFrame] = []
        while True:
            newline_index = self._buffer.find("\n")
            if newline_index == -1:
                break
            line = self._buffer[:newline_index]
            self._buffer = self._buffer[newline_index + 1:]

            classified = _classify(line)
            if classified is _SKIP:
                continue
            if isinstance(classified, StreamFrame):
                self._done = True
                frames.append(classified)
                break

            try:
                parsed = json.loads(classified)
            except ValueError:
                # Incomplete payload: put the line back and wait for more bytes
                self._buffer = line + "\n" + self._buffer
                break

            content = extract_delta(parsed)
            if content:
                frames.append(StreamFrame.delta(content))
        return frames

    def finish(self) -> List[StreamFrame]:
        """Flush the tail of the stream, including a final line without ``\\n``."""
        if self._done or self._finished:
            return []
        self._finished = True
        self._buffer += self._utf8.decode(b"", final=True)
        remaining, self._buffer = self._buffer, ""

        frames: List[StreamFrame] = []
        if not remaining.strip():
            return frames
        for raw in remaining.split("\n"):
            if not raw:
                continue
            classified = _classify(raw)
            if classified is _SKIP:
                continue
            if isinstance(classified, StreamFrame):
                self._done = True
                frames.append(classified)
                break
            try:
                parsed = json.loads(classified)
            except ValueError:
                continue
            content = extract_delta(parsed)
            if content:
                frames.append(StreamFrame.delta(content))
        return frames
