"""
Crawl driver.
Runs a bounded pool of async workers that pull requests from the frontier,
fetch and extract them, store the records and feed discovered links back,
retrying failed requests with backoff until their budget runs out.
"""

import asyncio
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Set

from hotel_crawler.extraction.extractors import extract_for_stage
from hotel_crawler.extraction.fetcher import Fetcher
from hotel_crawler.extraction.normalization import field_completeness
from hotel_crawler.models.crawl import (
    CrawlError, CrawlRequest, CrawlSummary, ExtractError, ExtractionResult,
    FatalInitError, FetchError
)
from hotel_crawler.orchestration.events import CrawlEvent, CrawlEventType, EventSink, create_event_sink
from hotel_crawler.storage.dataset import DatasetSink
from hotel_crawler.storage.failures import FailureLog
from hotel_crawler.storage.frontier import Frontier
from hotel_crawler.utils.config import CrawlConfig, get_config
from hotel_crawler.utils.logging_config import get_logger

logger = get_logger()

class CrawlDriver:
    """Drives the crawl until the frontier is drained or a stop is requested"""

    def __init__(self, frontier: Frontier, fetcher: Fetcher, dataset: DatasetSink,
                 failures: FailureLog, events: Optional[EventSink] = None,
                 config: Optional[CrawlConfig] = None):
        self.frontier = frontier
        self.fetcher = fetcher
        self.dataset = dataset
        self.failures = failures
        self.events = events or create_event_sink()
        self.config = config or get_config().crawl

        self.thread_pool = ThreadPoolExecutor(max_workers=max(1, self.config.concurrency))
        self.summary = CrawlSummary()
        self._retry_tasks: Set[asyncio.Task] = set()
        self._dispatched = 0
        self._stopping = False
        self._stop_reason: Optional[str] = None
        self._running = False

    def request_stop(self, reason: str = "shutdown requested") -> None:
        """Stop dequeuing new requests; in-flight requests still finish"""
        if self._stopping:
            return
        self._stopping = True
        self._stop_reason = reason
        logger.warning(f"Stopping crawl: {reason}")

    @property
    def stop_reason(self) -> Optional[str]:
        return self._stop_reason

    async def run(self) -> CrawlSummary:
        """Run the crawl to completion and return its summary"""
        if self._running:
            raise RuntimeError("Crawl is already running")
        if self.frontier.is_drained():
            raise FatalInitError("Frontier has no seed requests")

        self._running = True
        start_time = time.time()
        self._emit(CrawlEventType.CRAWL_STARTED, message="Crawl started",
                   seed_count=len(self.frontier), concurrency=self.config.concurrency,
                   max_retries=self.config.max_retries)

        await self.dataset.start()
        try:
            workers = [
                asyncio.create_task(self._worker(f"worker_{i + 1}"))
                for i in range(self.config.concurrency)
            ]
            await asyncio.gather(*workers)
        finally:
            for task in list(self._retry_tasks):
                task.cancel()
            if self._retry_tasks:
                await asyncio.gather(*self._retry_tasks, return_exceptions=True)
            abandoned = self.frontier.drop_pending()
            await self.dataset.close()
            self.thread_pool.shutdown(wait=False)
            self._running = False

        self.summary.abandoned_requests = len(abandoned)
        self.summary.stopped_early = self._stopping
        self.summary.records_emitted = len(self.dataset)
        self.summary.records_by_stage = self.dataset.counts_by_stage()
        self.summary.execution_time = time.time() - start_time

        self._emit(CrawlEventType.CRAWL_FINISHED, message="Crawl finished",
                   **self.summary.to_dict())
        return self.summary

    async def _worker(self, worker_id: str) -> None:
        """Pull and handle requests until drained or stopped"""
        logger.debug(f"{worker_id} started")
        while True:
            if self._stopping:
                break

            budget = self.config.max_requests_per_crawl
            if budget and self._dispatched >= budget:
                self.request_stop(f"reached max_requests_per_crawl={budget}")
                break

            request = self.frontier.next()
            if request is None:
                if self.frontier.is_drained():
                    break
                # late discoveries or retries may still arrive
                await asyncio.sleep(self.config.idle_poll_seconds)
                continue

            if request.attempt == 0:
                self._dispatched += 1
            await self._handle_request(worker_id, request)
        logger.debug(f"{worker_id} finished")

    async def _handle_request(self, worker_id: str, request: CrawlRequest) -> None:
        """Fetch, extract and store one request; route any failure to retry or dead-letter"""
        started = time.time()
        self._emit(CrawlEventType.REQUEST_STARTED, request, message=f"{worker_id} picked up request",
                   attempt=request.attempt, worker_id=worker_id)
        try:
            result = await self._fetch_and_extract(request)
        except CrawlError as e:
            error: CrawlError = e
        except Exception as e:
            logger.error(f"Unexpected error handling {request.url}: {str(e)}",
                         request_id=request.id, stage=request.stage.value, exc_info=True)
            error = FetchError(request.url, f"unexpected error: {e}")
        else:
            await self._complete(request, result, started)
            return

        self._handle_failure(request, error)

    async def _fetch_and_extract(self, request: CrawlRequest) -> ExtractionResult:
        loop = asyncio.get_running_loop()
        with self.fetcher.open_page() as page:
            try:
                document = await loop.run_in_executor(self.thread_pool, page.load, request.url)
            except CrawlError:
                raise
            except Exception as e:
                raise FetchError(request.url, str(e)) from e

            if self.config.page_delay_ms:
                await asyncio.sleep(self.config.page_delay_ms / 1000.0)

            try:
                return extract_for_stage(request.stage, document)
            except CrawlError:
                raise
            except Exception as e:
                raise ExtractError(request.stage, request.url, f"unexpected error: {e}") from e

    async def _complete(self, request: CrawlRequest, result: ExtractionResult,
                        started: float) -> None:
        record = result.record
        await self.dataset.append(record)
        self._emit(CrawlEventType.RECORD_EMITTED, request, message="Record emitted",
                   completeness=field_completeness(record.fields))

        enqueued = 0
        for link in result.discovered:
            if self.frontier.add_discovered(link.url, link.stage, link.user_data):
                enqueued += 1

        # release last so the frontier never looks drained before the links are in
        self.frontier.release(request)
        self.summary.requests_handled += 1
        self._emit(CrawlEventType.REQUEST_COMPLETED, request, message="Request completed",
                   duration=time.time() - started, discovered=len(result.discovered),
                   enqueued=enqueued, attempts=request.attempt + 1)

    def _handle_failure(self, request: CrawlRequest, error: CrawlError) -> None:
        request.attempt += 1
        request.last_error = str(error)

        if request.attempt <= self.config.max_retries:
            delay = self.config.backoff_for(request.attempt)
            self.frontier.schedule_retry(request)
            self.summary.retries += 1
            self._emit(CrawlEventType.REQUEST_RETRY, request, message=str(error),
                       attempt=request.attempt, delay=delay,
                       error_type=type(error).__name__)
            if delay > 0:
                task = asyncio.create_task(self._requeue_later(request, delay))
                self._retry_tasks.add(task)
                task.add_done_callback(self._retry_tasks.discard)
            else:
                self.frontier.requeue(request)
            return

        self.failures.record(request, str(error))
        self.frontier.release(request)
        self.summary.requests_handled += 1
        self.summary.failed_requests += 1
        self._emit(CrawlEventType.REQUEST_FAILED, request, message=str(error),
                   attempts=request.attempt, error_type=type(error).__name__)

    async def _requeue_later(self, request: CrawlRequest, delay: float) -> None:
        await asyncio.sleep(delay)
        self.frontier.requeue(request)

    def _emit(self, event_type: CrawlEventType, request: Optional[CrawlRequest] = None,
              message: str = "", **data) -> None:
        self.events.emit(CrawlEvent(
            event_type=event_type,
            request_id=request.id if request else None,
            url=request.url if request else None,
            stage=request.stage.value if request else None,
            message=message,
            data=data,
        ))
