"""Reassembles the assistant's reply from one branch of the duplicated stream."""

from dataclasses import dataclass, field
from typing import AsyncIterator, List

from coach_api.relay.sse import SseLineDecoder


@dataclass
class AccumulatedReply:
    """Text deltas of one relay invocation, in arrival order."""

    parts: List[str] = field(default_factory=list)
    saw_done: bool = False

    def append(self, text: str) -> None:
        self.parts.append(text)

    @property
    def text(self) -> str:
        return "".join(self.parts)


async def accumulate_reply(branch: AsyncIterator[bytes]) -> AccumulatedReply:
    """
    Decode ``branch`` until the terminal sentinel or the end of the stream.

    The branch is closed as soon as decoding stops so the other consumers of
    the stream keep reading on their own. Transport errors propagate.
    """
    decoder = SseLineDecoder()
    reply = AccumulatedReply()
    try:
        async for chunk in branch:
            for frame in decoder.feed(chunk):
                if frame.is_done:
                    reply.saw_done = True
                else:
                    reply.append(frame.text)
            if decoder.done:
                break

        for frame in decoder.finish():
            if frame.is_done:
                reply.saw_done = True
            else:
                reply.append(frame.text)
        return reply
    finally:
        aclose = getattr(branch, "aclose", None)
        if aclose is not None:
            await aclose()
