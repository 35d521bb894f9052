"""Background context for distance annotation.

One worker is created at startup and reused for every proximity query. It is
stateless between calls: each submission carries its own origin and records.
When a background thread cannot be used the worker computes in-process
instead, so a query is slower but never comes back empty.
"""

from __future__ import annotations

import logging
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Callable, Optional, Tuple

import pandas as pd

from src.directory.distance import annotate_distances

logger = logging.getLogger(__name__)

ExecutorFactory = Callable[[], Executor]


def _default_executor() -> Executor:
    return ThreadPoolExecutor(max_workers=1, thread_name_prefix="distance-worker")


def _completed(result: pd.DataFrame) -> "Future[pd.DataFrame]":
    future: "Future[pd.DataFrame]" = Future()
    future.set_result(result)
    return future


def _failed(error: BaseException) -> "Future[pd.DataFrame]":
    future: "Future[pd.DataFrame]" = Future()
    future.set_exception(error)
    return future


class DistanceWorker:
    """Single shared executor for :func:`annotate_distances`.

    Args:
        executor_factory: Builds the executor. Defaults to a one-thread
            ``ThreadPoolExecutor``. If it raises, the worker runs
            synchronously for its whole lifetime.
    """

    def __init__(self, executor_factory: Optional[ExecutorFactory] = None):
        factory = executor_factory or _default_executor
        self._executor: Optional[Executor]
        try:
            self._executor = factory()
        except Exception as e:
            logger.warning(f"Background distance worker unavailable, computing in-process: {e}")
            self._executor = None

    @property
    def is_background(self) -> bool:
        return self._executor is not None

    def submit(self, origin: Tuple[float, float], records: pd.DataFrame) -> "Future[pd.DataFrame]":
        """Annotate ``records`` with distances from ``origin``.

        Empty input resolves immediately without dispatch. The returned future
        yields a new DataFrame in the same order as ``records``.
        """
        if records.empty:
            return _completed(annotate_distances(origin, records))

        if self._executor is not None:
            try:
                return self._executor.submit(annotate_distances, origin, records)
            except RuntimeError as e:
                # Executor already shut down or refusing work
                logger.warning(f"Distance worker rejected job, computing in-process: {e}")

        return self._run_inline(origin, records)

    def _run_inline(self, origin: Tuple[float, float], records: pd.DataFrame) -> "Future[pd.DataFrame]":
        try:
            return _completed(annotate_distances(origin, records))
        except Exception as e:
            logger.exception("In-process distance annotation failed")
            return _failed(e)

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None
