from __future__ import annotations

import asyncio

import pytest

from roomsync.state import DeviceState, DeviceStateMirror, MetricsSnapshot, ReadWriteLock


@pytest.mark.asyncio
async def test_mirror_starts_all_off() -> None:
    mirror = DeviceStateMirror()

    assert await mirror.get() == DeviceState(relay_commanded=False, led_state=False, manual_mode=False)


@pytest.mark.asyncio
async def test_mirror_setters_touch_only_their_field() -> None:
    mirror = DeviceStateMirror()

    await mirror.set_relay(True)
    await mirror.set_led(True)
    state = await mirror.get()
    assert state.relay_commanded is True
    assert state.led_state is True
    assert state.manual_mode is False

    await mirror.set_manual_mode(True)
    await mirror.set_led(False)
    state = await mirror.get()
    assert state == DeviceState(relay_commanded=True, led_state=False, manual_mode=True)


@pytest.mark.asyncio
async def test_mirror_get_is_point_in_time_copy() -> None:
    mirror = DeviceStateMirror()
    before = await mirror.get()

    await mirror.set_led(True)

    assert before.led_state is False
    assert (await mirror.get()).led_state is True


@pytest.mark.asyncio
async def test_concurrent_commands_keep_last_issued_value() -> None:
    mirror = DeviceStateMirror()
    values = [i % 2 == 0 for i in range(51)]

    await asyncio.gather(*(mirror.set_led(v) for v in values), *(mirror.set_manual_mode(not v) for v in values))

    state = await mirror.get()
    assert state.led_state is values[-1]
    assert state.manual_mode is (not values[-1])


@pytest.mark.asyncio
async def test_metrics_merge_overwrites_and_inserts() -> None:
    metrics = MetricsSnapshot()

    await metrics.merge({"temp": 21.5, "humidity": 40})
    assert await metrics.snapshot() == {"temp": 21.5, "humidity": 40}

    await metrics.merge({"humidity": 41})
    assert await metrics.snapshot() == {"temp": 21.5, "humidity": 41}


@pytest.mark.asyncio
async def test_metrics_reingesting_same_snapshot_is_noop() -> None:
    metrics = MetricsSnapshot()
    payload = {"temp": 21.5, "Relay": True, "mode": "auto"}

    await metrics.merge(payload)
    first = await metrics.snapshot()
    await metrics.merge(dict(payload))

    assert await metrics.snapshot() == first


@pytest.mark.asyncio
async def test_metrics_snapshot_is_detached_from_store() -> None:
    metrics = MetricsSnapshot()
    await metrics.merge({"temp": 20})

    snapshot = await metrics.snapshot()
    snapshot["temp"] = 99

    assert (await metrics.snapshot())["temp"] == 20


@pytest.mark.asyncio
async def test_writer_waits_for_readers() -> None:
    lock = ReadWriteLock()
    events: list[str] = []
    release_reader = asyncio.Event()

    async def reader() -> None:
        async with lock.read():
            events.append("read-start")
            await release_reader.wait()
            events.append("read-end")

    async def writer() -> None:
        async with lock.write():
            events.append("write")

    reader_task = asyncio.create_task(reader())
    await asyncio.sleep(0)
    writer_task = asyncio.create_task(writer())
    await asyncio.sleep(0)
    assert events == ["read-start"]

    release_reader.set()
    await asyncio.gather(reader_task, writer_task)
    assert events == ["read-start", "read-end", "write"]


@pytest.mark.asyncio
async def test_readers_share_the_lock() -> None:
    lock = ReadWriteLock()
    inside = 0
    peak = 0
    gate = asyncio.Event()

    async def reader() -> None:
        nonlocal inside, peak
        async with lock.read():
            inside += 1
            peak = max(peak, inside)
            await gate.wait()
            inside -= 1

    tasks = [asyncio.create_task(reader()) for _ in range(3)]
    await asyncio.sleep(0)
    gate.set()
    await asyncio.gather(*tasks)

    assert peak == 3


@pytest.mark.asyncio
async def test_waiting_writer_blocks_new_readers() -> None:
    lock = ReadWriteLock()
    events: list[str] = []
    release_first = asyncio.Event()

    async def first_reader() -> None:
        async with lock.read():
            events.append("read-1")
            await release_first.wait()

    async def writer() -> None:
        async with lock.write():
            events.append("write")

    async def late_reader() -> None:
        async with lock.read():
            events.append("read-2")

    first = asyncio.create_task(first_reader())
    await asyncio.sleep(0)
    pending_write = asyncio.create_task(writer())
    await asyncio.sleep(0)
    late = asyncio.create_task(late_reader())
    await asyncio.sleep(0)
    assert events == ["read-1"]

    release_first.set()
    await asyncio.gather(first, pending_write, late)
    assert events == ["read-1", "write", "read-2"]


@pytest.mark.asyncio
async def test_cancelled_writer_releases_waiting_readers() -> None:
    lock = ReadWriteLock()
    release_first = asyncio.Event()
    reads: list[str] = []

    async def first_reader() -> None:
        async with lock.read():
            await release_first.wait()

    async def writer() -> None:
        async with lock.write():
            pass

    async def late_reader() -> None:
        async with lock.read():
            reads.append("read-2")

    first = asyncio.create_task(first_reader())
    await asyncio.sleep(0)
    pending_write = asyncio.create_task(writer())
    await asyncio.sleep(0)
    late = asyncio.create_task(late_reader())
    await asyncio.sleep(0)

    pending_write.cancel()
    await asyncio.wait_for(late, timeout=1)
    assert reads == ["read-2"]

    release_first.set()
    await first
