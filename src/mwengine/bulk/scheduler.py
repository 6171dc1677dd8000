"""Bulk-operation schedulers.

Both schedulers run a caller-supplied asynchronous ``worker(item, index)``
over a list of items and report a :class:`BatchResult` tally.  They know
nothing about the API; bulk wiki operations pass a worker that calls the
client.

:func:`batch_operation`
    Splits the items into consecutive groups of ``concurrency`` items.
    A group is dispatched at once and the next group starts only after
    every member of the current group has settled, so no more than
    ``concurrency`` workers are ever pending.

:func:`series_batch_operation`
    One item at a time, sleeping ``delay`` seconds between the settlement
    of one item and the dispatch of the next.

Worker failures are counted and logged, never raised.  A worker that does
not return an awaitable is a programming error and raises
:class:`~mwengine.core.exceptions.WorkerContractError` immediately.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Sequence

from mwengine.core.exceptions import WorkerContractError

logger = logging.getLogger(__name__)

Worker = Callable[[Any, int], Awaitable[Any]]


@dataclass
class BatchResult:
    """Final tally of a bulk operation."""

    success_count: int = 0
    failure_count: int = 0

    @property
    def settled(self) -> int:
        return self.success_count + self.failure_count


def _log_progress(result: BatchResult, total: int) -> None:
    done = result.settled
    logger.info(
        "Finished %d/%d (%d%%) tasks, of which %d (%d%%) were successful, and %d failed",
        done,
        total,
        round(done / total * 100),
        result.success_count,
        round(result.success_count / done * 100),
        result.failure_count,
    )


def _start(worker: Worker, item: Any, index: int) -> Awaitable[Any]:
    awaitable = worker(item, index)
    if not inspect.isawaitable(awaitable):
        raise WorkerContractError(
            f"batch_operation worker must return an awaitable, got "
            f"{type(awaitable).__name__} for item {index}"
        )
    return awaitable


def _discard(pending: list[Awaitable[Any]]) -> None:
    """Close coroutines and cancel futures that will never be awaited."""
    for awaitable in pending:
        if inspect.iscoroutine(awaitable):
            awaitable.close()
        elif isinstance(awaitable, asyncio.Future):
            awaitable.cancel()


async def _settle(
    awaitable: Awaitable[Any],
    item: Any,
    index: int,
    total: int,
    result: BatchResult,
    silent: bool,
) -> None:
    try:
        await awaitable
    except Exception as exc:  # noqa: BLE001
        result.failure_count += 1
        logger.warning("bulk: worker failed on item %d (%r): %s", index, item, exc)
    else:
        result.success_count += 1
    if not silent:
        _log_progress(result, total)


async def batch_operation(
    items: Sequence[Any],
    worker: Worker,
    concurrency: int = 5,
    *,
    silent: bool = False,
) -> BatchResult:
    """Run *worker* over *items* with at most *concurrency* pending at once.

    Args:
        items: Items to process, in order.
        worker: ``worker(item, index)`` returning an awaitable.
        concurrency: Group width.
        silent: Suppress the per-settlement progress log lines.

    Returns:
        The success/failure tally; ``success_count + failure_count ==
        len(items)``.

    Raises:
        WorkerContractError: *worker* returned something not awaitable.
            Raised before the offending group is dispatched.
    """
    if concurrency < 1:
        raise ValueError("concurrency must be at least 1")

    total = len(items)
    result = BatchResult()

    for start in range(0, total, concurrency):
        group: list[Awaitable[Any]] = []
        try:
            for index in range(start, min(start + concurrency, total)):
                group.append(_start(worker, items[index], index))
        except BaseException:
            _discard(group)
            raise

        await asyncio.gather(*(
            _settle(awaitable, items[start + offset], start + offset, total, result, silent)
            for offset, awaitable in enumerate(group)
        ))

    return result


async def series_batch_operation(
    items: Sequence[Any],
    worker: Worker,
    delay: float = 5.0,
    *,
    silent: bool = False,
) -> BatchResult:
    """Run *worker* over *items* one at a time, pausing *delay* seconds
    between items.

    There is no pause before the first item or after the last one.

    Raises:
        WorkerContractError: *worker* returned something not awaitable.
    """
    total = len(items)
    result = BatchResult()

    for index, item in enumerate(items):
        if index:
            await asyncio.sleep(delay)
        await _settle(_start(worker, item, index), item, index, total, result, silent)

    return result
