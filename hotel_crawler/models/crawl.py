"""
Data model for the hotel directory crawl: stages, requests, records,
failure entries and the error taxonomy shared by every component.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, NamedTuple, Optional


class Stage(Enum):
    """Position of a page in the directory hierarchy"""
    START = "start"
    GLOSSARY = "glossary"
    CITY = "city"
    HOTEL = "hotel"


class CrawlError(Exception):
    """Base class for crawl errors"""
    pass


class FetchError(CrawlError):
    """Transport or browser failure while loading a URL"""

    def __init__(self, url: str, message: str):
        super().__init__(f"Failed to fetch {url}: {message}")
        self.url = url
        self.reason = message


class ExtractError(CrawlError):
    """Fetched page does not match the template expected for its stage"""

    def __init__(self, stage: Stage, url: str, message: str):
        super().__init__(f"{stage.value} page {url} does not match template: {message}")
        self.stage = stage
        self.url = url
        self.reason = message


class FatalInitError(CrawlError):
    """Seed list or configuration is unusable; the crawl cannot start"""
    pass


@dataclass
class CrawlRequest:
    """A page to fetch, tagged with the stage whose extractor handles it"""
    url: str
    unique_key: str
    stage: Stage
    user_data: Dict[str, Any] = field(default_factory=dict)
    attempt: int = 0
    last_error: Optional[str] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'url': self.url,
            'unique_key': self.unique_key,
            'stage': self.stage.value,
            'user_data': dict(self.user_data),
            'attempt': self.attempt,
            'last_error': self.last_error,
        }


def _freeze(value: Any) -> Any:
    """Read-only copy: lists become tuples, dicts become mapping proxies"""
    if isinstance(value, Mapping):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [_thaw(v) for v in value]
    return value


@dataclass(frozen=True)
class Record:
    """One stage-tagged extraction result. Immutable once created, nested values included."""
    type: Stage
    url: str
    fields: Mapping[str, Any]
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        object.__setattr__(self, 'fields', _freeze(self.fields))

    def __getitem__(self, key: str) -> Any:
        if key == 'type':
            return self.type.value
        if key == 'url':
            return self.url
        return self.fields[key]

    def to_dict(self) -> Dict[str, Any]:
        """Self-describing serializable form"""
        data: Dict[str, Any] = {'type': self.type.value, 'url': self.url}
        data.update(_thaw(self.fields))
        return data


class DiscoveredLink(NamedTuple):
    """A follow-up page found by an extractor"""
    url: str
    stage: Stage
    user_data: Optional[Dict[str, Any]] = None


@dataclass
class ExtractionResult:
    """Output of a stage extractor"""
    record: Record
    discovered: List[DiscoveredLink] = field(default_factory=list)


@dataclass
class FailureEntry:
    """A request whose retry budget is exhausted"""
    request: CrawlRequest
    last_error: str
    attempts: int
    failed_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'url': self.request.url,
            'unique_key': self.request.unique_key,
            'stage': self.request.stage.value,
            'attempts': self.attempts,
            'last_error': self.last_error,
            'failed_at': self.failed_at.isoformat(),
        }


@dataclass
class CrawlSummary:
    """Result of a crawl run"""
    requests_handled: int = 0
    records_emitted: int = 0
    retries: int = 0
    failed_requests: int = 0
    abandoned_requests: int = 0
    stopped_early: bool = False
    execution_time: float = 0.0
    records_by_stage: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'requests_handled': self.requests_handled,
            'records_emitted': self.records_emitted,
            'retries': self.retries,
            'failed_requests': self.failed_requests,
            'abandoned_requests': self.abandoned_requests,
            'stopped_early': self.stopped_early,
            'execution_time': round(self.execution_time, 3),
            'records_by_stage': dict(self.records_by_stage),
        }
