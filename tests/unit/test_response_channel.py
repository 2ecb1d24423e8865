"""Unit tests for ResponseChannel — ordering, backpressure, closure, cancellation."""

from __future__ import annotations

import asyncio
import time

import pytest

from chatbridge.core.streaming import ResponseChannel


async def _collect(ch: ResponseChannel[int]) -> list[int]:
    return [item async for item in ch]


class TestDelivery:
    @pytest.mark.asyncio
    async def test_items_arrive_in_send_order(self) -> None:
        ch: ResponseChannel[int] = ResponseChannel(maxsize=2)

        async def produce() -> None:
            for i in range(10):
                await ch.send(i)

        ch.start(produce())
        assert await _collect(ch) == list(range(10))

    @pytest.mark.asyncio
    async def test_closes_when_producer_returns(self) -> None:
        ch: ResponseChannel[int] = ResponseChannel()

        async def produce() -> None:
            await ch.send(1)

        ch.start(produce())
        assert await _collect(ch) == [1]
        assert ch.closed

    @pytest.mark.asyncio
    async def test_explicit_finish_is_idempotent(self) -> None:
        ch: ResponseChannel[int] = ResponseChannel()

        async def produce() -> None:
            await ch.send(1)
            await ch.finish()
            await ch.finish()

        ch.start(produce())
        assert await _collect(ch) == [1]

    @pytest.mark.asyncio
    async def test_send_blocks_when_buffer_full(self) -> None:
        ch: ResponseChannel[int] = ResponseChannel(maxsize=1)
        sent: list[int] = []

        async def produce() -> None:
            for i in range(3):
                await ch.send(i)
                sent.append(i)

        ch.start(produce())
        await asyncio.sleep(0.05)
        assert sent == [0]

        assert await _collect(ch) == [0, 1, 2]
        assert sent == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_producer_exception_closes_channel(self) -> None:
        ch: ResponseChannel[int] = ResponseChannel()

        async def produce() -> None:
            await ch.send(1)
            raise ValueError("boom")

        ch.start(produce())
        assert await _collect(ch) == [1]
        await ch.wait_closed()

    @pytest.mark.asyncio
    async def test_send_after_close_raises(self) -> None:
        ch: ResponseChannel[int] = ResponseChannel()

        async def produce() -> None:
            return None

        ch.start(produce())
        await _collect(ch)
        with pytest.raises(RuntimeError):
            await ch.send(1)

    @pytest.mark.asyncio
    async def test_start_twice_raises(self) -> None:
        ch: ResponseChannel[int] = ResponseChannel()

        async def produce() -> None:
            return None

        ch.start(produce())
        second = produce()
        with pytest.raises(RuntimeError):
            ch.start(second)
        second.close()
        await _collect(ch)


class TestClose:
    @pytest.mark.asyncio
    async def test_aclose_cancels_slow_producer(self) -> None:
        ch: ResponseChannel[int] = ResponseChannel(grace_s=1.0)
        cancelled = asyncio.Event()

        async def produce() -> None:
            await ch.send(1)
            try:
                await asyncio.sleep(30)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        ch.start(produce())
        received = []
        async for item in ch:
            received.append(item)
            break

        started = time.monotonic()
        await ch.aclose()
        assert time.monotonic() - started < 1.0
        assert received == [1]
        assert cancelled.is_set()
        assert ch.closed
        assert ch.task is not None and ch.task.done()

    @pytest.mark.asyncio
    async def test_aclose_leaves_finished_producer_running(self) -> None:
        ch: ResponseChannel[int] = ResponseChannel()
        trailing_done = asyncio.Event()

        async def produce() -> None:
            await ch.send(1)
            await ch.finish()
            await asyncio.sleep(0.05)
            trailing_done.set()

        ch.start(produce())
        assert await _collect(ch) == [1]
        await ch.aclose()
        assert ch.task is not None
        await ch.task
        assert trailing_done.is_set()

    @pytest.mark.asyncio
    async def test_context_manager_closes(self) -> None:
        ch: ResponseChannel[int] = ResponseChannel(grace_s=1.0)

        async def produce() -> None:
            while True:
                await ch.send(0)

        ch.start(produce())
        async with ch:
            async for _ in ch:
                break
        assert ch.closed
        assert ch.task is not None and ch.task.cancelled()

    @pytest.mark.asyncio
    async def test_iteration_ends_after_aclose(self) -> None:
        ch: ResponseChannel[int] = ResponseChannel(maxsize=1, grace_s=1.0)

        async def produce() -> None:
            while True:
                await ch.send(0)

        ch.start(produce())
        await asyncio.sleep(0.01)
        await ch.aclose()
        # Buffered items are dropped on cancellation; at most the sentinel remains
        assert await _collect(ch) == []

    @pytest.mark.asyncio
    async def test_cancelled_consumer_cancels_producer(self) -> None:
        ch: ResponseChannel[int] = ResponseChannel(maxsize=2, grace_s=1.0)
        cancelled = asyncio.Event()

        async def produce() -> None:
            try:
                while True:
                    await ch.send(0)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        async def consume() -> None:
            async for _ in ch:
                await asyncio.sleep(30)

        ch.start(produce())
        consumer = asyncio.create_task(consume())
        await asyncio.sleep(0.01)
        consumer.cancel()
        with pytest.raises(asyncio.CancelledError):
            await consumer

        await asyncio.wait_for(cancelled.wait(), 1.0)
        assert ch.closed

    @pytest.mark.asyncio
    async def test_break_without_aclose_cancels_producer(self) -> None:
        ch: ResponseChannel[int] = ResponseChannel(grace_s=1.0)

        async def produce() -> None:
            while True:
                await ch.send(0)

        ch.start(produce())
        async for _ in ch:
            break

        assert ch.task is not None
        await asyncio.wait_for(asyncio.wait({ch.task}), 1.0)
        assert ch.task.cancelled()
        assert ch.closed
