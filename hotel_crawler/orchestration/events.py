import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from hotel_crawler.utils.logging_config import CrawlLogger, get_logger

class CrawlEventType(Enum):
    CRAWL_STARTED = "crawl_started"
    CRAWL_FINISHED = "crawl_finished"
    REQUEST_STARTED = "request_started"
    REQUEST_COMPLETED = "request_completed"
    REQUEST_RETRY = "request_retry"
    REQUEST_FAILED = "request_failed"
    RECORD_EMITTED = "record_emitted"

@dataclass
class CrawlEvent:
    """Represents an observable crawl event"""
    event_type: CrawlEventType
    timestamp: datetime = field(default_factory=datetime.now)
    request_id: Optional[str] = None
    url: Optional[str] = None
    stage: Optional[str] = None
    message: str = ""
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'event_type': self.event_type.value,
            'timestamp': self.timestamp.isoformat(),
            'request_id': self.request_id,
            'url': self.url,
            'stage': self.stage,
            'message': self.message,
            'data': self.data,
        }

class EventSink:
    """Collects crawl events and fans them out to subscribers"""

    def __init__(self, keep_history: bool = True):
        self.keep_history = keep_history
        self._events: List[CrawlEvent] = []
        self._subscribers: List[Callable[[CrawlEvent], None]] = []
        self._lock = threading.RLock()

    def subscribe(self, callback: Callable[[CrawlEvent], None]):
        """Subscribe to crawl events"""
        with self._lock:
            self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable[[CrawlEvent], None]):
        """Unsubscribe from crawl events"""
        with self._lock:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

    def emit(self, event: CrawlEvent) -> None:
        """Record an event and notify subscribers"""
        with self._lock:
            if self.keep_history:
                self._events.append(event)
            subscribers = list(self._subscribers)

        for callback in subscribers:
            try:
                callback(event)
            except Exception as e:
                get_logger().error(f"Error in event subscriber: {str(e)}")

    def events(self, event_type: Optional[CrawlEventType] = None) -> List[CrawlEvent]:
        """All events, optionally filtered by type"""
        with self._lock:
            if event_type is None:
                return list(self._events)
            return [e for e in self._events if e.event_type == event_type]

    def count(self, event_type: CrawlEventType) -> int:
        return len(self.events(event_type))

class LoggingSubscriber:
    """Forwards crawl events to the crawl logger"""

    def __init__(self, logger: Optional[CrawlLogger] = None):
        self.logger = logger or get_logger()

    def __call__(self, event: CrawlEvent) -> None:
        data = event.data
        if event.event_type == CrawlEventType.CRAWL_STARTED:
            self.logger.log_crawl_start(data.get('seed_count', 0), data.get('concurrency', 0),
                                        data.get('max_retries', 0))
        elif event.event_type == CrawlEventType.CRAWL_FINISHED:
            self.logger.log_crawl_complete(data.get('execution_time', 0.0),
                                           data.get('records_emitted', 0),
                                           data.get('failed_requests', 0),
                                           data.get('abandoned_requests', 0))
        elif event.event_type == CrawlEventType.REQUEST_STARTED:
            self.logger.log_request_start(event.request_id, event.stage, event.url,
                                          data.get('attempt', 0))
        elif event.event_type == CrawlEventType.REQUEST_COMPLETED:
            self.logger.log_request_complete(event.request_id, event.stage,
                                             data.get('duration', 0.0),
                                             data.get('discovered', 0), data.get('enqueued', 0))
        elif event.event_type == CrawlEventType.REQUEST_RETRY:
            self.logger.log_request_retry(event.request_id, event.stage, data.get('attempt', 0),
                                          data.get('delay', 0.0), event.message)
        elif event.event_type == CrawlEventType.RECORD_EMITTED:
            self.logger.log_record_emitted(event.request_id, event.stage,
                                           data.get('completeness'))
        # REQUEST_FAILED is logged by the failure log itself

def create_event_sink(log_events: bool = True) -> EventSink:
    """Event sink with the logging subscriber attached"""
    sink = EventSink()
    if log_events:
        sink.subscribe(LoggingSubscriber())
    return sink
