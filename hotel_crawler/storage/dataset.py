"""
Append-only dataset of extracted records.
Records are buffered in a bounded queue and persisted as JSON Lines by a
single writer task, so producers stall instead of dropping when disk is slow.
"""

import asyncio
import json
import os
import threading
from collections import Counter
from typing import Dict, List, Optional

from hotel_crawler.models.crawl import Record
from hotel_crawler.utils.logging_config import get_logger

logger = get_logger()

_CLOSE = object()


def _ensure_parent(path: str) -> None:
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)


def record_to_json(record: Record) -> str:
    return json.dumps(record.to_dict(), ensure_ascii=False)


class DatasetSink:
    """Ordered, append-only record store backed by a JSON Lines file"""

    def __init__(self, path: Optional[str] = None, buffer_size: int = 100):
        self.path = path
        self.buffer_size = buffer_size
        self._records: List[Record] = []
        self._lock = threading.Lock()
        self._queue: Optional[asyncio.Queue] = None
        self._writer: Optional[asyncio.Task] = None
        self._file = None

    async def start(self) -> None:
        """Open the output file and start the writer task"""
        if self._writer is not None:
            return
        if self.path:
            _ensure_parent(self.path)
            self._file = open(self.path, 'w', encoding='utf-8')
        self._queue = asyncio.Queue(maxsize=self.buffer_size)
        self._writer = asyncio.create_task(self._write_loop())
        logger.debug(f"Dataset sink started (path={self.path}, buffer={self.buffer_size})")

    async def append(self, record: Record) -> None:
        """Queue a record for persistence; waits while the buffer is full"""
        if self._queue is None:
            raise RuntimeError("Dataset sink is not started")
        await self._queue.put(record)

    async def _write_loop(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            item = await self._queue.get()
            try:
                if item is _CLOSE:
                    return
                if self._file is not None:
                    line = record_to_json(item) + "\n"
                    try:
                        await loop.run_in_executor(None, self._write_line, line)
                    except OSError as e:
                        # record stays available in memory and via export_jsonl
                        logger.error(f"Failed to persist {item.type.value} record {item.url}: {e}")
                with self._lock:
                    self._records.append(item)
            finally:
                self._queue.task_done()

    def _write_line(self, line: str) -> None:
        self._file.write(line)
        self._file.flush()

    async def close(self) -> None:
        """Flush everything queued and close the output file"""
        if self._writer is None:
            return
        await self._queue.put(_CLOSE)
        await self._writer
        self._writer = None
        if self._file is not None:
            self._file.close()
            self._file = None
        logger.debug(f"Dataset sink closed with {len(self)} record(s)")

    def records(self) -> List[Record]:
        """Records in arrival order"""
        with self._lock:
            return list(self._records)

    def counts_by_stage(self) -> Dict[str, int]:
        with self._lock:
            return dict(Counter(r.type.value for r in self._records))

    def export_jsonl(self, path: str) -> int:
        """Write the whole dataset to ``path``; returns the number of records"""
        _ensure_parent(path)
        records = self.records()
        with open(path, 'w', encoding='utf-8') as f:
            for record in records:
                f.write(record_to_json(record) + "\n")
        return len(records)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
