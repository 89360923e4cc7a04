"""
Tests for the per-user outbound message queue.
"""

import asyncio

import pytest

from refuel.core.conversation import OutboundMessage
from refuel.services.runtime import Outbox


@pytest.mark.asyncio
async def test_wait_returns_queued_messages_immediately():
    outbox = Outbox()
    await outbox("u", OutboundMessage("hi"))

    messages = await outbox.wait("u", timeout_s=5)

    assert [m.text for m in messages] == ["hi"]
    assert outbox.drain("u") == []


@pytest.mark.asyncio
async def test_wait_times_out_with_nothing_queued():
    outbox = Outbox()

    assert await outbox.wait("u", timeout_s=0.01) == []


@pytest.mark.asyncio
async def test_waiter_still_wakes_after_a_concurrent_drain():
    outbox = Outbox()
    waiter = asyncio.create_task(outbox.wait("u", timeout_s=5))
    await asyncio.sleep(0)

    assert outbox.drain("u") == []
    await outbox("u", OutboundMessage("hi"))

    messages = await asyncio.wait_for(waiter, timeout=1)
    assert [m.text for m in messages] == ["hi"]
