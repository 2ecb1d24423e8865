"""
ResponseChannel — bounded, in-order hand-off between a producer task and a consumer.

Every stream in chatbridge travels through a ResponseChannel: the vendor
adapter's I/O task feeds one, and the StreamBridge's forwarding task feeds
the caller-facing one.

Contract:
  - exactly one producer task, started with ``start()``
  - ``send()`` waits for buffer space, so a slow consumer slows the producer
  - items are delivered in send order, never merged or reordered
  - end-of-stream is marked once, either by the producer calling
    ``finish()`` or implicitly when the producer returns
  - closure (``async for`` ends) is the authoritative end-of-stream signal
  - ``aclose()`` cancels a producer that has not marked end-of-stream and
    waits at most ``grace_s`` for it to unwind; buffered but unread items
    are discarded on that path
  - a producer that already marked end-of-stream is left to finish its
    trailing work (the bridge persists after closing) and is not cancelled
  - an iteration that stops before end-of-stream (consumer task cancelled,
    ``break`` out of ``async for``) closes the channel as ``aclose()`` does;
    after a ``break`` this runs when the iterator is finalized, so call
    ``aclose()`` directly to wait for it
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator, Coroutine
from typing import Any, Generic, TypeVar

import structlog

logger = structlog.get_logger()

T = TypeVar("T")

_END = object()


class ResponseChannel(Generic[T]):
    """Bounded async channel with a single owned producer task."""

    def __init__(self, maxsize: int = 10, *, grace_s: float = 2.0, name: str = "") -> None:
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=maxsize)
        self._grace_s = grace_s
        self._name = name
        self._task: asyncio.Task[None] | None = None
        self._ended = asyncio.Event()
        self._drained = False

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------

    def start(self, producer: Coroutine[Any, Any, None]) -> asyncio.Task[None]:
        """Run *producer* as the channel's task."""
        if self._task is not None:
            raise RuntimeError("ResponseChannel producer already started")
        self._task = asyncio.create_task(self._run(producer), name=self._name or None)
        return self._task

    async def _run(self, producer: Coroutine[Any, Any, None]) -> None:
        try:
            try:
                await producer
            except Exception:  # noqa: BLE001
                logger.exception("channel_producer_failed", channel=self._name)
            await self.finish()
        except asyncio.CancelledError:
            self._force_end()
            raise

    async def send(self, item: T) -> None:
        if self._ended.is_set():
            raise RuntimeError("send on closed ResponseChannel")
        await self._queue.put(item)

    async def finish(self) -> None:
        """Mark end-of-stream after every item already sent. Idempotent."""
        if self._ended.is_set():
            return
        await self._queue.put(_END)
        self._ended.set()

    def _force_end(self) -> None:
        if self._ended.is_set():
            return
        self._ended.set()
        while True:
            try:
                self._queue.put_nowait(_END)
                return
            except asyncio.QueueFull:
                with contextlib.suppress(asyncio.QueueEmpty):
                    self._queue.get_nowait()

    # ------------------------------------------------------------------
    # Consumer side
    # ------------------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._ended.is_set()

    @property
    def task(self) -> asyncio.Task[None] | None:
        return self._task

    async def wait_closed(self) -> None:
        await self._ended.wait()

    def __aiter__(self) -> AsyncIterator[T]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[T]:
        try:
            while not self._drained:
                item = await self._queue.get()
                if item is _END:
                    self._drained = True
                    return
                yield item
        finally:
            # Consumer cancelled or left the loop early
            if not self._drained:
                await self.aclose()

    async def aclose(self) -> None:
        """Stop a producer that is still streaming and wait for it to unwind."""
        task = self._task
        if task is not None and not task.done() and not self._ended.is_set():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError, TimeoutError):
                await asyncio.wait_for(asyncio.shield(task), self._grace_s)
            if not task.done():
                logger.warning("channel_producer_slow_to_cancel", channel=self._name)
        self._force_end()

    async def __aenter__(self) -> ResponseChannel[T]:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
