from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Sequence, TypeVar


log = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

SleepFn = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class ItemResult(Generic[R]):
    """Outcome of one work item. `error` is set iff `ok` is False."""
    key: str
    ok: bool
    value: R | None = None
    error: BaseException | None = None

    @property
    def cause(self) -> str | None:
        if self.error is None:
            return None
        return f"{type(self.error).__name__}: {self.error}"


def partition(items: Sequence[T], size: int) -> list[list[T]]:
    """
    Split `items` into consecutive chunks of at most `size`, order preserved.
    Empty input yields no chunks.
    """
    if size <= 0:
        raise ValueError("size must be > 0")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


class BatchExecutor:
    """
    Runs an async operation over many items against a rate-limited API.

    - Items are grouped into chunks of `batch_size`; a chunk's operations run
      concurrently and are all awaited before the next chunk starts.
    - Between chunks the pipeline pauses for `inter_batch_delay` seconds
      (no pause after the last chunk).
    - A failing item becomes an `ItemResult(ok=False)`; it never cancels its
      siblings, never escapes `run()` and is not retried.
    - Optional `item_timeout` bounds each call.
    """

    def __init__(
        self,
        *,
        batch_size: int,
        inter_batch_delay: float = 0.0,
        item_timeout: float | None = None,
        sleep: SleepFn = asyncio.sleep,
    ):
        if batch_size <= 0:
            raise ValueError("batch_size must be > 0")
        if inter_batch_delay < 0:
            raise ValueError("inter_batch_delay must be >= 0")
        if item_timeout is not None and item_timeout <= 0:
            raise ValueError("item_timeout must be > 0")
        self.batch_size = batch_size
        self.inter_batch_delay = inter_batch_delay
        self.item_timeout = item_timeout
        self._sleep = sleep

    async def _run_one(self, item: T, op: Callable[[T], Awaitable[R]], key: str) -> ItemResult[R]:
        try:
            if self.item_timeout is not None:
                value = await asyncio.wait_for(op(item), timeout=self.item_timeout)
            else:
                value = await op(item)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.warning("batch item failed key=%s: %s: %s", key, type(e).__name__, e)
            return ItemResult(key=key, ok=False, error=e)
        return ItemResult(key=key, ok=True, value=value)

    async def run(
        self,
        items: Sequence[T],
        op: Callable[[T], Awaitable[R]],
        *,
        key: Callable[[T], str] = str,
        label: str = "batch",
    ) -> list[ItemResult[R]]:
        chunks = partition(items, self.batch_size)
        results: list[ItemResult[R]] = []

        for n, chunk in enumerate(chunks, start=1):
            log.info("%s: chunk %d/%d (%d items)", label, n, len(chunks), len(chunk))
            # gather keeps argument order regardless of completion order
            chunk_results = await asyncio.gather(*[self._run_one(item, op, key(item)) for item in chunk])
            results.extend(chunk_results)

            if n < len(chunks):
                log.info("%s: cooling down %.1fs before next chunk", label, self.inter_batch_delay)
                await self._sleep(self.inter_batch_delay)

        failed = sum(1 for r in results if not r.ok)
        log.info("%s: done, %d ok, %d failed", label, len(results) - failed, failed)
        return results
