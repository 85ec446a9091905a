import asyncio

import pytest

from listingsync.services.batch_executor import BatchExecutor, partition

from fakes import RecordingSleep


@pytest.mark.parametrize("n,size", [(0, 3), (1, 3), (3, 3), (7, 3), (10, 1), (5, 100)])
def test_partition_concatenates_back_in_order(n, size):
    items = list(range(n))
    chunks = partition(items, size)

    assert [x for chunk in chunks for x in chunk] == items
    assert all(0 < len(chunk) <= size for chunk in chunks)
    assert len(chunks) == -(-n // size)


def test_partition_rejects_non_positive_size():
    with pytest.raises(ValueError):
        partition([1, 2], 0)


@pytest.mark.parametrize("kwargs", [{"batch_size": 0}, {"batch_size": 2, "inter_batch_delay": -1}, {"batch_size": 2, "item_timeout": 0}])
def test_executor_rejects_bad_config(kwargs):
    with pytest.raises(ValueError):
        BatchExecutor(**kwargs)


@pytest.mark.asyncio
async def test_results_follow_input_order_when_later_items_finish_first():
    executor = BatchExecutor(batch_size=5, sleep=RecordingSleep())
    finished: list[int] = []

    async def op(i: int) -> int:
        # later items resolve faster
        await asyncio.sleep(0.01 * (5 - i))
        finished.append(i)
        return i * 10

    results = await executor.run([0, 1, 2, 3, 4], op)

    assert finished == [4, 3, 2, 1, 0]
    assert [r.value for r in results] == [0, 10, 20, 30, 40]
    assert [r.key for r in results] == ["0", "1", "2", "3", "4"]


@pytest.mark.asyncio
async def test_one_failure_does_not_stop_siblings():
    executor = BatchExecutor(batch_size=3, sleep=RecordingSleep())
    done: list[str] = []

    async def op(key: str) -> str:
        if key == "b":
            raise RuntimeError("boom")
        await asyncio.sleep(0.01)
        done.append(key)
        return key.upper()

    results = await executor.run(["a", "b", "c"], op)

    assert sorted(done) == ["a", "c"]
    assert [r.ok for r in results] == [True, False, True]
    assert results[1].key == "b"
    assert isinstance(results[1].error, RuntimeError)
    assert results[1].cause == "RuntimeError: boom"


@pytest.mark.asyncio
async def test_items_in_a_chunk_run_concurrently():
    executor = BatchExecutor(batch_size=3, sleep=RecordingSleep())
    in_flight = 0
    peak = 0

    async def op(i: int) -> int:
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        return i

    await executor.run([1, 2, 3, 4, 5, 6], op)
    assert peak == 3


@pytest.mark.asyncio
@pytest.mark.parametrize("n,expected_waits", [(0, 0), (1, 0), (2, 0), (3, 1), (4, 1), (5, 2), (9, 4)])
async def test_cool_down_between_chunks_only(n, expected_waits):
    sleeps = RecordingSleep()
    executor = BatchExecutor(batch_size=2, inter_batch_delay=60, sleep=sleeps)

    async def op(i: int) -> int:
        return i

    await executor.run(list(range(n)), op)
    assert sleeps.calls == [60] * expected_waits


@pytest.mark.asyncio
async def test_next_chunk_starts_after_cool_down():
    events: list[str] = []

    async def sleep(seconds: float) -> None:
        events.append(f"sleep:{seconds}")

    executor = BatchExecutor(batch_size=2, inter_batch_delay=5, sleep=sleep)

    async def op(i: int) -> int:
        events.append(f"op:{i}")
        return i

    await executor.run([1, 2, 3], op)
    assert events == ["op:1", "op:2", "sleep:5", "op:3"]


@pytest.mark.asyncio
async def test_item_timeout_becomes_failed_result():
    executor = BatchExecutor(batch_size=2, item_timeout=0.01, sleep=RecordingSleep())

    async def op(i: int) -> int:
        if i == 1:
            await asyncio.sleep(1)
        return i

    results = await executor.run([1, 2], op)

    assert results[0].ok is False
    assert isinstance(results[0].error, asyncio.TimeoutError)
    assert results[1].ok is True
