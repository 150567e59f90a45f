"""Bounded asyncio worker pool with per-item exception handling.

Runs one coroutine per item with at most `max_concurrency` in flight. A
failing item never cancels its siblings; failures come back as results.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Sequence


class AsyncWorkerPool:
    """Semaphore-bounded fan-out over a list of items."""

    def __init__(self, max_concurrency: int = 5, logger=None):
        """
        Initialize worker pool.

        Args:
            max_concurrency: Maximum number of coroutines in flight (default: 5)
            logger: Optional logger instance (PipelineLogger or logging.Logger)
        """
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {max_concurrency}")
        self.max_concurrency = max_concurrency
        self.logger = logger or logging.getLogger(__name__)
        self.in_flight = 0
        self.stats = {
            "max_concurrency": max_concurrency,
            "peak_in_flight": 0,
            "total_submitted": 0,
            "total_successful": 0,
            "total_failed": 0,
        }

    async def map(
        self,
        func: Callable[[Any], Awaitable[Any]],
        items: Sequence[Any],
        desc: str = "Processing",
    ) -> list[tuple[bool, Any, Any]]:
        """
        Run `func(item)` for every item.

        Args:
            func: Coroutine function taking one item
            items: Items to process
            desc: Description for log messages

        Returns:
            List of (success, item, result_or_error) in input order
        """
        semaphore = asyncio.Semaphore(self.max_concurrency)
        self.stats["total_submitted"] += len(items)

        async def run(item: Any) -> tuple[bool, Any, Any]:
            async with semaphore:
                self.in_flight += 1
                self.stats["peak_in_flight"] = max(self.stats["peak_in_flight"], self.in_flight)
                try:
                    result = await func(item)
                except Exception as e:
                    self.stats["total_failed"] += 1
                    self.logger.warning(f"{desc}: failed for {item}: {e}")
                    return False, item, e
                finally:
                    self.in_flight -= 1
                self.stats["total_successful"] += 1
                return True, item, result

        results = await asyncio.gather(*(run(item) for item in items))

        self.logger.debug(
            f"{desc} complete: {self.stats['total_successful']} successful, {self.stats['total_failed']} failed"
        )
        return list(results)

    def get_stats(self) -> dict:
        """Get worker pool statistics."""
        return dict(self.stats)
