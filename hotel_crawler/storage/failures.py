import json
import os
import threading
from typing import List, Optional

from hotel_crawler.models.crawl import CrawlRequest, FailureEntry
from hotel_crawler.utils.logging_config import get_logger

logger = get_logger()


class FailureLog:
    """Durable log of requests that exhausted their retries"""

    def __init__(self, path: Optional[str] = None):
        self.path = path
        self._entries: List[FailureEntry] = []
        self._lock = threading.Lock()
        if self.path:
            parent = os.path.dirname(self.path)
            if parent:
                os.makedirs(parent, exist_ok=True)
            # each run starts a fresh log
            open(self.path, 'w', encoding='utf-8').close()

    def record(self, request: CrawlRequest, error: str) -> FailureEntry:
        """Store a permanently failed request. Never raises for I/O problems."""
        entry = FailureEntry(request=request, last_error=error, attempts=request.attempt)
        with self._lock:
            self._entries.append(entry)
            if self.path:
                try:
                    with open(self.path, 'a', encoding='utf-8') as f:
                        f.write(json.dumps(entry.to_dict(), ensure_ascii=False) + "\n")
                except OSError as e:
                    logger.error(f"Could not write failure entry for {request.url}: {e}")
        logger.log_request_failed(request.id, request.stage.value, request.url, error,
                                  entry.attempts)
        return entry

    def entries(self) -> List[FailureEntry]:
        with self._lock:
            return list(self._entries)

    def urls(self) -> List[str]:
        with self._lock:
            return [e.request.url for e in self._entries]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
