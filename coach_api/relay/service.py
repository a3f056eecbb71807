"""
Chat Relay

Stateless request flow:
1. Check configuration (fail before any network call)
2. Prepend the coach's system instruction and open the upstream stream
3. Tee the body: branch A goes back to the caller verbatim, branch B is
   decoded by a detached task
4. Once branch B ends, store the assistant reply at most once
"""

import asyncio
from typing import AsyncIterator, Callable, Optional, Set

import httpx

from coach_api.config import Settings
from coach_api.relay.accumulator import AccumulatedReply, accumulate_reply
from coach_api.relay.gateway import GatewayClient
from coach_api.relay.tee import StreamTee, TeeBranch
from coach_api.schemas.chat import ChatRequest
from coach_api.services.message_store import MessageStore, get_store
from coach_api.utils.logger import relay_logger


class RelayStream:
    """What the caller gets back: its own branch plus a handle on the background work."""

    def __init__(self, client_branch: TeeBranch, accumulation: asyncio.Task, tee: StreamTee):
        self.client_branch = client_branch
        self.accumulation = accumulation
        self.tee = tee

    async def client_body(self) -> AsyncIterator[bytes]:
        """Upstream bytes exactly as received; abandoning it only detaches this branch."""
        try:
            async for chunk in self.client_branch:
                yield chunk
        finally:
            await self.client_branch.aclose()

    async def aclose(self) -> None:
        """Detach the client branch even if its body was never iterated."""
        await self.client_branch.aclose()


class ChatRelay:
    """
    Forwards chat turns upstream and records the assistant's reply.

    Args:
        store_provider: returns the message store for a settings snapshot
        transport: optional httpx transport for the gateway (tests)
    """

    def __init__(
        self,
        store_provider: Callable[[Settings], MessageStore] = get_store,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.store_provider = store_provider
        self.transport = transport
        self._background: Set[asyncio.Task] = set()

    async def open(self, request: ChatRequest, settings: Settings) -> RelayStream:
        """
        Open the upstream stream for ``request``.

        Raises:
            ConfigurationError: credentials or store settings are missing
            UpstreamRateLimited, UpstreamQuotaExceeded, UpstreamProtocolError:
                the gateway refused the request; nothing is streamed or stored
        """
        settings.require_chat()
        store = self.store_provider(settings)

        relay_logger.info(
            "Chat request",
            coach=request.coach_name,
            messages=len(request.messages),
            conversation_id=request.conversation_id,
        )

        gateway = GatewayClient(settings, transport=self.transport)
        upstream = await gateway.open_stream(
            [message.to_upstream() for message in request.messages],
            request.coach_name,
        )

        # Client branch unbounded; only the accumulator applies backpressure
        tee = StreamTee(
            upstream.chunks,
            branches=2,
            max_buffered_chunks=(None, settings.relay_queue_size),
            on_close=upstream.aclose,
        ).start()
        client_branch, accumulator_branch = tee.branches

        task = asyncio.get_running_loop().create_task(
            self._accumulate_and_persist(accumulator_branch, request, store)
        )
        self._background.add(task)
        task.add_done_callback(self._background.discard)

        return RelayStream(client_branch, task, tee)

    async def _accumulate_and_persist(
        self,
        branch: TeeBranch,
        request: ChatRequest,
        store: MessageStore,
    ) -> Optional[AccumulatedReply]:
        try:
            reply = await accumulate_reply(branch)
        except Exception as e:
            relay_logger.error("Accumulator error", error=str(e), conversation_id=request.conversation_id)
            return None

        if not reply.text:
            relay_logger.debug("Empty assistant reply, nothing to save", conversation_id=request.conversation_id)
            return reply
        if not request.can_persist:
            return reply

        try:
            await store.insert_message(
                conversation_id=request.conversation_id,
                sender_id=request.coach_id,
                content=reply.text,
            )
        except Exception as e:
            relay_logger.error(
                "Failed to save assistant message",
                error=str(e),
                conversation_id=request.conversation_id,
            )
        else:
            relay_logger.info(
                "Assistant message saved",
                conversation_id=request.conversation_id,
                length=len(reply.text),
            )
        return reply

    @property
    def pending(self) -> int:
        """Number of background accumulations still running"""
        return len(self._background)

    async def wait_idle(self) -> None:
        """Wait for every detached accumulation to finish."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
