from __future__ import annotations

import asyncio

import pytest

from src.domain.models.commands import Batch, Command, UpdateClip
from src.domain.services.debounced_executor import DebouncedCommandExecutor


def _drag_updates(clip, steps: int) -> list[UpdateClip]:
    updates = []
    current = clip
    for _ in range(steps):
        moved = current.shifted(100)
        updates.append(UpdateClip(before=current, after=moved))
        current = moved
    return updates


@pytest.mark.asyncio
async def test_rapid_updates_flush_as_single_batch(clip_factory) -> None:
    received: list[Command] = []
    executor = DebouncedCommandExecutor(received.append, delay_ms=16)
    updates = _drag_updates(clip_factory(clip_id="a"), 5)

    for update in updates:
        executor.execute(update)
    assert received == []
    assert executor.pending == tuple(updates)

    await asyncio.sleep(0.1)

    assert received == [Batch(commands=tuple(updates))]
    assert executor.pending == ()


@pytest.mark.asyncio
async def test_single_command_is_sent_unwrapped(clip_factory) -> None:
    received: list[Command] = []
    executor = DebouncedCommandExecutor(received.append, delay_ms=10)
    (update,) = _drag_updates(clip_factory(), 1)

    executor.execute(update)
    await asyncio.sleep(0.1)

    assert received == [update]


@pytest.mark.asyncio
async def test_new_command_rearms_timer(clip_factory) -> None:
    received: list[Command] = []
    executor = DebouncedCommandExecutor(received.append, delay_ms=200)
    first, second = _drag_updates(clip_factory(), 2)

    executor.execute(first)
    await asyncio.sleep(0.12)
    executor.execute(second)
    await asyncio.sleep(0.12)

    # 第一个计时器本应在 0.2s 到期，被第二个命令重置
    assert received == []

    await asyncio.sleep(0.2)
    assert received == [Batch(commands=(first, second))]


@pytest.mark.asyncio
async def test_flush_sends_immediately_and_cancel_drops(clip_factory) -> None:
    received: list[Command] = []
    executor = DebouncedCommandExecutor(received.append, delay_ms=50)
    updates = _drag_updates(clip_factory(), 3)

    executor.execute_batch(updates[:2])
    executor.flush()
    assert received == [Batch(commands=tuple(updates[:2]))]

    executor.execute(updates[2])
    executor.cancel()
    await asyncio.sleep(0.1)

    assert received == [Batch(commands=tuple(updates[:2]))]
    assert executor.pending == ()


def test_flush_without_pending_is_a_no_op() -> None:
    received: list[Command] = []
    executor = DebouncedCommandExecutor(received.append)

    executor.flush()

    assert received == []
    assert executor.delay_ms == 16


def test_execute_without_event_loop_leaves_buffer_untouched(clip_factory) -> None:
    received: list[Command] = []
    executor = DebouncedCommandExecutor(received.append)
    updates = _drag_updates(clip_factory(), 2)

    with pytest.raises(RuntimeError):
        executor.execute(updates[0])
    with pytest.raises(RuntimeError):
        executor.execute_batch(updates)

    assert executor.pending == ()
    executor.flush()
    assert received == []
