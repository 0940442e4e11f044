import asyncio

import pytest

from anon_relay.services.rwlock import AsyncRWLock


@pytest.mark.asyncio
async def test_readers_share_the_lock():
    lock = AsyncRWLock()
    inside = 0
    peak = 0

    async def reader():
        nonlocal inside, peak
        async with lock.read():
            inside += 1
            peak = max(peak, inside)
            await asyncio.sleep(0.01)
            inside -= 1

    await asyncio.gather(*(reader() for _ in range(3)))

    assert peak == 3


@pytest.mark.asyncio
async def test_writer_excludes_readers():
    lock = AsyncRWLock()
    events = []

    async def writer():
        async with lock.write():
            events.append("write-start")
            await asyncio.sleep(0.01)
            events.append("write-end")

    async def reader():
        async with lock.read():
            events.append("read")

    task = asyncio.create_task(writer())
    await asyncio.sleep(0)
    await asyncio.gather(reader(), task)

    assert events == ["write-start", "write-end", "read"]


@pytest.mark.asyncio
async def test_waiting_writer_blocks_new_readers():
    lock = AsyncRWLock()
    events = []
    release_first = asyncio.Event()

    async def first_reader():
        async with lock.read():
            events.append("read-1")
            await release_first.wait()

    async def writer():
        async with lock.write():
            events.append("write")

    async def late_reader():
        async with lock.read():
            events.append("read-2")

    tasks = [asyncio.create_task(first_reader())]
    await asyncio.sleep(0)
    tasks.append(asyncio.create_task(writer()))
    await asyncio.sleep(0)
    tasks.append(asyncio.create_task(late_reader()))
    await asyncio.sleep(0)
    release_first.set()
    await asyncio.gather(*tasks)

    assert events == ["read-1", "write", "read-2"]


@pytest.mark.asyncio
async def test_cancelled_writer_unblocks_readers():
    lock = AsyncRWLock()
    release_first = asyncio.Event()
    events = []

    async def first_reader():
        async with lock.read():
            await release_first.wait()

    async def writer():
        async with lock.write():
            events.append("write")

    async def late_reader():
        async with lock.read():
            events.append("read")

    holder = asyncio.create_task(first_reader())
    await asyncio.sleep(0)
    pending_writer = asyncio.create_task(writer())
    await asyncio.sleep(0)
    reader_task = asyncio.create_task(late_reader())
    await asyncio.sleep(0)

    pending_writer.cancel()
    await asyncio.wait_for(reader_task, timeout=1)

    release_first.set()
    await holder
    assert events == ["read"]
