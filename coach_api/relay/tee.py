"""
Stream duplication.

``StreamTee`` reads one upstream async byte iterator with a single pump task
and fans every chunk out to independent queues, one per branch. Each
branch is drained by its own consumer. Only bounded branches hold the pump
back; a branch that is closed early is detached and the remaining branches
keep receiving the full stream.
"""

import asyncio
import logging
from typing import AsyncIterator, Awaitable, Callable, List, Optional, Sequence, Union

logger = logging.getLogger(__name__)

_EOF = object()


class _UpstreamFailed:
    """Queue item carrying the exception that ended the upstream."""

    def __init__(self, error: BaseException):
        self.error = error


class TeeBranch:
    """One independent read cursor over the duplicated stream."""

    def __init__(self, tee: "StreamTee", index: int, max_buffered_chunks: Optional[int]):
        self._tee = tee
        self.index = index
        # maxsize 0 is an unbounded asyncio.Queue
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_buffered_chunks or 0)
        self._closed = False
        self._finished = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> "TeeBranch":
        return self

    async def __anext__(self) -> bytes:
        if self._closed or self._finished:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _EOF:
            self._finished = True
            raise StopAsyncIteration
        if isinstance(item, _UpstreamFailed):
            self._finished = True
            raise item.error
        return item

    async def aclose(self) -> None:
        """Detach this branch; the other branches are unaffected."""
        if self._closed:
            return
        self._closed = True
        self._drain()
        await self._tee._branch_closed()

    def _drain(self) -> None:
        while True:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return

    async def _put(self, item) -> None:
        if self._closed:
            return
        await self._queue.put(item)
        if self._closed:
            # Closed while the put was pending; keep the queue empty
            self._drain()


class StreamTee:
    """
    Single-producer, multi-consumer fan-out over an async byte iterator.

    Args:
        source: upstream byte chunks
        branches: number of independent consumers
        max_buffered_chunks: per-branch queue bound, either one value for
            every branch or one per branch. ``None`` leaves that branch
            unbounded so a consumer that stalls never holds the pump back.
            The pump waits on the slowest bounded branch once its queue is full
        on_close: awaited exactly once after the pump stops, to release the
            upstream (response, connection, client)
    """

    def __init__(
        self,
        source: AsyncIterator[bytes],
        branches: int = 2,
        max_buffered_chunks: Union[Optional[int], Sequence[Optional[int]]] = 64,
        on_close: Optional[Callable[[], Awaitable[None]]] = None,
    ):
        if branches < 1:
            raise ValueError("branches must be >= 1")
        if max_buffered_chunks is None or isinstance(max_buffered_chunks, int):
            limits = [max_buffered_chunks] * branches
        else:
            limits = list(max_buffered_chunks)
        if len(limits) != branches:
            raise ValueError("max_buffered_chunks needs one limit per branch")
        if any(limit is not None and limit < 1 for limit in limits):
            raise ValueError("max_buffered_chunks must be >= 1")
        self._source = source
        self._on_close = on_close
        self._released = False
        self.branches: List[TeeBranch] = [
            TeeBranch(self, index, limit) for index, limit in enumerate(limits)
        ]
        self._pump_task: Optional[asyncio.Task] = None

    def start(self) -> "StreamTee":
        """Start the pump task on the running loop."""
        if self._pump_task is None:
            self._pump_task = asyncio.get_running_loop().create_task(self._pump())
        return self

    @property
    def pump_task(self) -> Optional[asyncio.Task]:
        return self._pump_task

    def _open_branches(self) -> List[TeeBranch]:
        return [branch for branch in self.branches if not branch.closed]

    async def _pump(self) -> None:
        try:
            async for chunk in self._source:
                if not chunk:
                    continue
                open_branches = self._open_branches()
                if not open_branches:
                    break
                for branch in open_branches:
                    await branch._put(chunk)
        except asyncio.CancelledError:
            for branch in self._open_branches():
                branch._drain()
                await branch._put(_UpstreamFailed(ConnectionError("stream cancelled")))
            raise
        except Exception as e:
            logger.warning(f"Upstream stream failed: {e}")
            for branch in self._open_branches():
                await branch._put(_UpstreamFailed(e))
        else:
            for branch in self._open_branches():
                await branch._put(_EOF)
        finally:
            await self._release()

    async def _branch_closed(self) -> None:
        if not self._open_branches() and self._pump_task is not None and not self._pump_task.done():
            # Nobody is listening any more; stop reading upstream
            self._pump_task.cancel()

    async def _release(self) -> None:
        if self._released:
            return
        self._released = True
        if self._on_close is not None:
            try:
                await self._on_close()
            except Exception as e:
                logger.warning(f"Failed to release upstream stream: {e}")
