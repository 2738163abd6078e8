"""
Bounded worker pool for embedding extraction.

Model inference is CPU/accelerator bound and blocking, so it runs on a
thread pool outside the event loop. Admission is capped at
max_workers + max_pending; anything beyond that is rejected immediately.
"""
import asyncio
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional

from faceauth.config import EXTRACTION_WORKERS, EXTRACTION_QUEUE_SIZE, EXTRACTION_TIMEOUT
from faceauth.exceptions import ExtractorBusy, ExtractionTimeout

logger = logging.getLogger(__name__)


class ExtractionPool:
    """Runs extractor.extract on worker threads with backpressure and a timeout."""

    def __init__(
        self,
        extractor,
        max_workers: int = EXTRACTION_WORKERS,
        max_pending: int = EXTRACTION_QUEUE_SIZE,
        timeout: Optional[float] = EXTRACTION_TIMEOUT
    ):
        self.extractor = extractor
        self.max_workers = max_workers
        self.max_pending = max_pending
        self.timeout = timeout
        self._slots = threading.BoundedSemaphore(max_workers + max_pending)
        self._executor: Optional[ThreadPoolExecutor] = None

    def start(self):
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.max_workers,
                thread_name_prefix="extract"
            )
            logger.info(
                f"Extraction pool started ({self.max_workers} workers, "
                f"{self.max_pending} pending, timeout {self.timeout}s)"
            )

    def shutdown(self, wait: bool = True):
        if self._executor is not None:
            self._executor.shutdown(wait=wait, cancel_futures=True)
            self._executor = None
            logger.info("Extraction pool stopped")

    async def extract(self, image_bytes: bytes) -> List[float]:
        """
        Extract an embedding on a worker thread.

        Raises:
            ExtractorBusy: all workers and queue slots are taken
            ExtractionTimeout: extraction took longer than timeout
            plus whatever the extractor raises
        """
        if self._executor is None:
            self.start()

        if not self._slots.acquire(blocking=False):
            logger.warning("Extraction pool saturated, rejecting request")
            raise ExtractorBusy()

        try:
            future = self._executor.submit(self.extractor.extract, image_bytes)
        except RuntimeError:
            self._slots.release()
            raise
        # The slot is held until the worker really finishes, even after a timeout
        future.add_done_callback(lambda _: self._slots.release())

        try:
            return await asyncio.wait_for(asyncio.wrap_future(future), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.warning(f"Extraction exceeded {self.timeout}s")
            raise ExtractionTimeout() from e
