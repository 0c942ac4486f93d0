"""
Bounded-concurrency batch scheduler.

Items are split into consecutive batches of `batch_size`. Batches run strictly
one after another (the barrier exists to respect the judgment capability's
throughput limits); everything inside a batch runs concurrently. Each unit is
tagged with its original index before dispatch and written to that slot, so
completion order never reorders the output.

Failures are not isolated: the first exception cancels the rest of its batch
and propagates. The completion hook is the exception: it runs once after the
last batch under its own timeout, and neither its failure nor its timeout
reaches the caller.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, TypeVar

from consult_audit import config

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

_EMPTY = object()


async def _tagged(index: int, awaitable: Awaitable[R]) -> tuple[int, R]:
    return index, await awaitable


async def gather_in_order(awaitables: Sequence[Awaitable[R]]) -> list[R]:
    """
    Run awaitables concurrently; return results in submission order.

    On the first failure every still-pending unit is cancelled and the
    exception re-raised.
    """
    tasks = [asyncio.ensure_future(_tagged(i, a)) for i, a in enumerate(awaitables)]
    slots: list[Any] = [_EMPTY] * len(tasks)
    try:
        for next_done in asyncio.as_completed(tasks):
            index, result = await next_done
            slots[index] = result
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
    return slots


CompletionHook = Callable[[list], Awaitable[None]]


class BatchScheduler:
    def __init__(
        self,
        batch_size: int = config.BATCH_SIZE,
        completion_hook: CompletionHook | None = None,
        hook_timeout: float | None = config.PERSISTENCE_TIMEOUT_SECONDS,
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self.batch_size = batch_size
        self.completion_hook = completion_hook
        self.hook_timeout = hook_timeout

    def batches(self, items: Sequence[T]) -> list[Sequence[T]]:
        return [items[i:i + self.batch_size] for i in range(0, len(items), self.batch_size)]

    async def run(
        self,
        items: Sequence[T],
        worker: Callable[[T], Awaitable[R]],
        progress_callback: Callable[[int, int, int], None] | None = None,
    ) -> list[R]:
        """
        Apply `worker` to every item; result i corresponds to item i.

        progress_callback, if given, receives (batch_start, batch_end, total)
        as each batch is dispatched (1-based, inclusive).
        """
        results: list[R] = []
        total = len(items)

        for batch in self.batches(items):
            batch_start = len(results)
            batch_end = batch_start + len(batch)
            if progress_callback:
                progress_callback(batch_start + 1, batch_end, total)
            logger.info("Processing batch: items %d-%d of %d", batch_start + 1, batch_end, total)

            results.extend(await gather_in_order([worker(item) for item in batch]))
            logger.info("Batch complete (%d items)", len(batch))

        if self.completion_hook is not None:
            await self._run_completion_hook(results)

        return results

    async def _run_completion_hook(self, results: list) -> None:
        # a failing or hung hook never loses computed results
        try:
            await asyncio.wait_for(self.completion_hook(results), timeout=self.hook_timeout)
        except asyncio.TimeoutError:
            logger.error(
                "Completion hook timed out after %ss; results are unaffected", self.hook_timeout
            )
        except Exception:
            logger.error("Completion hook failed; results are unaffected", exc_info=True)
