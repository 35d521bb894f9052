"""Performance monitoring for the search engine's hot paths.

Distance annotation and marker clustering are O(n) over the dataset and run
on every query or zoom change. ``monitor_performance`` times them, logs slow
calls and keeps per-function metrics for the diagnostics expander.
"""

import functools
import logging
import time
from datetime import datetime
from typing import Any, Callable, Dict, Optional

import pandas as pd
import psutil

# Use a module-level logger; avoid configuring logging at import time
perf_logger = logging.getLogger(__name__)

_performance_metrics: Dict[str, Dict] = {}


def _current_rss_mb() -> float:
    return psutil.Process().memory_info().rss / 1024 / 1024


def monitor_performance(slow_threshold: float = 1.0, log_memory: bool = False):
    """
    Decorator to time a function and log it when it is slower than expected.

    Args:
        slow_threshold (float): Threshold in seconds above which to log as slow
        log_memory (bool): Whether to log resident memory growth

    Example:
        @monitor_performance(slow_threshold=0.25)
        def annotate_distances(origin, records):
            ...
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            func_name = f"{func.__module__}.{func.__name__}"
            start_time = time.perf_counter()
            start_memory = _current_rss_mb() if log_memory else None

            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _record_call(func_name, time.perf_counter() - start_time, start_memory, slow_threshold, error=str(e))
                raise

            _record_call(func_name, time.perf_counter() - start_time, start_memory, slow_threshold)
            return result

        return wrapper

    return decorator


def _record_call(
    func_name: str,
    execution_time: float,
    start_memory: Optional[float],
    slow_threshold: float,
    error: Optional[str] = None,
) -> None:
    metrics = _performance_metrics.setdefault(
        func_name,
        {
            "call_count": 0,
            "total_time": 0.0,
            "max_time": 0.0,
            "error_count": 0,
            "last_call": None,
        },
    )
    metrics["call_count"] += 1
    metrics["total_time"] += execution_time
    metrics["max_time"] = max(metrics["max_time"], execution_time)
    metrics["last_call"] = datetime.now().isoformat()

    if error is not None:
        metrics["error_count"] += 1
        perf_logger.error(f"{func_name} failed after {execution_time:.3f}s: {error}")
    elif execution_time > slow_threshold:
        perf_logger.warning(f"SLOW: {func_name} took {execution_time:.3f}s (threshold: {slow_threshold}s)")
    else:
        perf_logger.debug(f"{func_name} completed in {execution_time:.3f}s")

    if start_memory is not None:
        memory_diff = _current_rss_mb() - start_memory
        if abs(memory_diff) > 10:  # MB
            perf_logger.info(f"{func_name} memory change: {memory_diff:+.1f}MB")


class PerformanceTracker:
    """Read and reset the metrics collected by :func:`monitor_performance`."""

    @staticmethod
    def get_performance_summary() -> pd.DataFrame:
        """
        Summarise monitored functions, slowest average first.

        Returns:
            pd.DataFrame with columns function_name, call_count, avg_time,
            max_time, error_rate (percent) and last_call.
        """
        if not _performance_metrics:
            return pd.DataFrame()

        rows = []
        for func_name, metrics in _performance_metrics.items():
            calls = metrics["call_count"]
            rows.append(
                {
                    "function_name": func_name,
                    "call_count": calls,
                    "avg_time": metrics["total_time"] / calls,
                    "max_time": metrics["max_time"],
                    "error_rate": metrics["error_count"] / calls * 100,
                    "last_call": metrics["last_call"],
                }
            )
        return pd.DataFrame(rows).sort_values("avg_time", ascending=False).reset_index(drop=True)

    @staticmethod
    def get_slow_functions(threshold: float = 1.0) -> pd.DataFrame:
        summary = PerformanceTracker.get_performance_summary()
        if summary.empty:
            return summary
        return summary[summary["avg_time"] > threshold]

    @staticmethod
    def reset_metrics() -> None:
        _performance_metrics.clear()
        perf_logger.info("Performance metrics reset")


__all__ = ["monitor_performance", "PerformanceTracker"]
