"""Bridge from the async HTTP layer into the synchronous classifier.

    FastAPI (async) -> asyncio.Semaphore(N) -> ThreadPoolExecutor(N) -> Classifier.classify

Callers waiting longer than ``QUEUE_TIMEOUT_SECONDS`` for a slot get a
``TimeoutError``, which the API turns into a 503.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import numpy as np
    from numpy.typing import NDArray

    from coopvision.config import Settings
    from coopvision.ml.classifier import Classifier, VisionResult

logger = logging.getLogger(__name__)

QUEUE_TIMEOUT_SECONDS: float = 5.0


class InferencePool:
    """Bounds concurrent classify calls and tracks pool occupancy."""

    def __init__(self, settings: Settings, timeout: float = QUEUE_TIMEOUT_SECONDS) -> None:
        self._timeout = timeout
        self._semaphore = asyncio.Semaphore(settings.max_concurrent)
        self._executor = ThreadPoolExecutor(
            max_workers=settings.max_concurrent,
            thread_name_prefix="coop-vision",
        )
        self._active_count: int = 0
        self._queue_depth: int = 0
        self._counter_lock = threading.Lock()

    async def classify(self, classifier: Classifier, image: NDArray[np.uint8]) -> VisionResult:
        """Run ``classifier.classify(image)`` on a worker thread.

        Raises:
            TimeoutError: If no worker slot frees up within the timeout.
        """
        with self._counter_lock:
            self._queue_depth += 1
        try:
            await asyncio.wait_for(self._semaphore.acquire(), timeout=self._timeout)
        except TimeoutError:
            logger.warning("Inference queue full; gave up after %.1fs", self._timeout)
            raise
        finally:
            with self._counter_lock:
                self._queue_depth -= 1

        with self._counter_lock:
            self._active_count += 1
        try:
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(self._executor, classifier.classify, image)
        finally:
            self._semaphore.release()
            with self._counter_lock:
                self._active_count -= 1

    @property
    def active_count(self) -> int:
        """Number of classify calls currently running."""
        with self._counter_lock:
            return self._active_count

    @property
    def queue_depth(self) -> int:
        """Number of classify calls waiting for a worker slot."""
        with self._counter_lock:
            return self._queue_depth

    def shutdown(self) -> None:
        """Wait for running calls and stop the worker threads."""
        self._executor.shutdown(wait=True)
