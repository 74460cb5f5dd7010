"""Bounded fan-out / fan-in over a thread pool.

The model collaborator is a blocking call, so concurrency comes from
worker threads. Results always come back in input order regardless of
completion order. The first failure fails the whole group: tasks that
have not started are cancelled and results of running siblings are
ignored.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def fan_out(
    fn: Callable[[int, T], R],
    inputs: Sequence[T],
    *,
    max_workers: int,
    label: str = "task",
) -> list[R]:
    """Run ``fn(index, input)`` for every input and return results in input order.

    Args:
        fn: Work function; receives the input's position and the input.
        inputs: Inputs to process.
        max_workers: Upper bound on concurrently running tasks.
        label: Name used in log lines and worker thread names.

    Returns:
        ``[fn(0, inputs[0]), fn(1, inputs[1]), ...]``.

    Raises:
        Exception: The lowest-indexed failure among the tasks finished
            when the group stopped.
    """
    if not inputs:
        return []
    if max_workers < 1:
        raise ValueError("max_workers must be at least 1")

    workers = min(max_workers, len(inputs))
    logger.debug("Fanning out %d %s task(s) over %d worker(s)", len(inputs), label, workers)

    executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix=f"daybrief-{label}")
    futures: list[Future[R]] = [
        executor.submit(fn, index, item) for index, item in enumerate(inputs)
    ]
    try:
        done, _pending = wait(futures, return_when=FIRST_EXCEPTION)
        errors: list[BaseException] = []
        for future in futures:
            if future in done:
                error = future.exception()
                if error is not None:
                    errors.append(error)
        if errors:
            cancelled = sum(1 for f in futures if f.cancel())
            logger.debug(
                "%s group failed: %d task(s) failed, %d cancelled before start",
                label,
                len(errors),
                cancelled,
            )
            raise errors[0]
        return [f.result() for f in futures]
    finally:
        executor.shutdown(wait=False, cancel_futures=True)
