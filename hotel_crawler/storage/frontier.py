"""
In-memory crawl frontier.
Holds seed and discovered requests, deduplicates them by canonical URL and
tracks in-flight and pending-retry work so the driver knows when it is drained.
"""

import threading
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, Iterable, List, Optional, Set

from hotel_crawler.models.crawl import CrawlRequest, Stage
from hotel_crawler.utils.logging_config import get_logger
from hotel_crawler.utils.urls import canonicalize_url

logger = get_logger()


@dataclass
class FrontierStats:
    """Frontier statistics"""
    queue_length: int = 0
    in_flight: int = 0
    pending_retries: int = 0
    seen_urls: int = 0
    duplicates_ignored: int = 0


class Frontier:
    """Seed + discovered work queue, deduplicated by canonical URL"""

    def __init__(self):
        self._queue: Deque[CrawlRequest] = deque()
        self._seen: Set[str] = set()
        self._in_flight: Dict[str, CrawlRequest] = {}  # request id -> request
        self._pending_retries: Dict[str, CrawlRequest] = {}
        self._seeded = False
        self._duplicates_ignored = 0
        self._lock = threading.RLock()

    def make_request(self, url: str, stage: Stage,
                     user_data: Optional[Dict[str, Any]] = None) -> CrawlRequest:
        """Build a request keyed by the canonical form of ``url``"""
        return CrawlRequest(
            url=url.strip(),
            unique_key=canonicalize_url(url),
            stage=stage,
            user_data=dict(user_data or {}),
        )

    def add_seed(self, requests: Iterable[CrawlRequest]) -> int:
        """Enqueue the initial requests. Called once, before the crawl starts."""
        with self._lock:
            if self._seeded:
                raise RuntimeError("Frontier has already been seeded")
            self._seeded = True
            added = 0
            for request in requests:
                if request.unique_key in self._seen:
                    logger.warning(f"Duplicate seed URL ignored: {request.url}")
                    self._duplicates_ignored += 1
                    continue
                self._seen.add(request.unique_key)
                self._queue.append(request)
                added += 1
            return added

    def add_discovered(self, url: str, stage: Stage,
                       user_data: Optional[Dict[str, Any]] = None) -> bool:
        """Enqueue a discovered URL unless it was seen before. Returns True if enqueued."""
        try:
            request = self.make_request(url, stage, user_data)
        except ValueError as e:
            logger.warning(f"Skipping unusable link {url!r}: {e}")
            return False

        with self._lock:
            if request.unique_key in self._seen:
                self._duplicates_ignored += 1
                return False
            self._seen.add(request.unique_key)
            self._queue.append(request)
            return True

    def next(self) -> Optional[CrawlRequest]:
        """Pop the next request in FIFO order and mark it in flight"""
        with self._lock:
            if not self._queue:
                return None
            request = self._queue.popleft()
            self._in_flight[request.id] = request
            return request

    def release(self, request: CrawlRequest) -> None:
        """The in-flight request is finished (record emitted or failure logged)"""
        with self._lock:
            self._in_flight.pop(request.id, None)

    def schedule_retry(self, request: CrawlRequest) -> None:
        """Move an in-flight request to the pending-retry set while it backs off"""
        with self._lock:
            self._in_flight.pop(request.id, None)
            self._pending_retries[request.id] = request

    def requeue(self, request: CrawlRequest) -> None:
        """Put a backed-off request back at the tail of the queue"""
        with self._lock:
            if self._pending_retries.pop(request.id, None) is None:
                return
            self._queue.append(request)

    def drop_pending(self) -> List[CrawlRequest]:
        """Remove and return everything not yet dispatched (used after a stop)"""
        with self._lock:
            dropped = list(self._queue) + list(self._pending_retries.values())
            self._queue.clear()
            self._pending_retries.clear()
            return dropped

    def is_seen(self, url: str) -> bool:
        with self._lock:
            return canonicalize_url(url) in self._seen

    def is_empty(self) -> bool:
        with self._lock:
            return not self._queue

    def is_drained(self) -> bool:
        """True when nothing is queued, in flight, or waiting to be retried"""
        with self._lock:
            return not self._queue and not self._in_flight and not self._pending_retries

    def pending_requests(self) -> List[CrawlRequest]:
        """Snapshot of queued requests in dispatch order"""
        with self._lock:
            return list(self._queue)

    def stats(self) -> FrontierStats:
        with self._lock:
            return FrontierStats(
                queue_length=len(self._queue),
                in_flight=len(self._in_flight),
                pending_retries=len(self._pending_retries),
                seen_urls=len(self._seen),
                duplicates_ignored=self._duplicates_ignored,
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._queue)
