"""
Fetch capability consumed by the crawl driver.

A Fetcher hands out pages; a page loads one URL at a time and returns a
DocumentHandle that answers CSS selector queries. The default implementation
uses requests for transport and BeautifulSoup for parsing; anything exposing
the same methods (a browser page, a test fake) can be injected instead.
"""

from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional

import requests
from bs4 import BeautifulSoup, NavigableString, Tag

from hotel_crawler.models.crawl import FetchError
from hotel_crawler.utils.logging_config import get_logger

logger = get_logger()

_BLOCK_TAGS = {'p', 'div', 'li', 'ul', 'ol', 'tr', 'table', 'h1', 'h2', 'h3', 'h4', 'h5', 'h6',
               'address', 'section', 'article', 'dd', 'dt'}


def _inner_text(tag: Tag) -> str:
    """Text of ``tag`` with <br> and block boundaries rendered as line breaks"""
    parts: List[str] = []
    for node in tag.descendants:
        if isinstance(node, NavigableString):
            if type(node) is NavigableString:  # skip comments, CDATA, doctype
                parts.append(str(node))
        elif isinstance(node, Tag):
            if node.name == 'br' or node.name in _BLOCK_TAGS:
                parts.append("\n")
    return "".join(parts)


class ElementHandle:
    """One element of a parsed document"""

    def __init__(self, tag: Tag, document: "DocumentHandle"):
        self._tag = tag
        self._document = document

    def text(self) -> str:
        return self._tag.get_text()

    def inner_text(self) -> str:
        return _inner_text(self._tag)

    def attr(self, name: str) -> str:
        value = self._tag.get(name)
        if value is None:
            return ""
        if isinstance(value, list):  # multi-valued attributes like class
            return " ".join(value)
        return str(value)

    def exists(self, selector: str) -> bool:
        return self._tag.select_one(selector) is not None

    def select_one(self, selector: str) -> Optional["ElementHandle"]:
        found = self._tag.select_one(selector)
        return ElementHandle(found, self._document) if found is not None else None

    def select_all(self, selector: str) -> List["ElementHandle"]:
        return [ElementHandle(t, self._document) for t in self._tag.select(selector)]

    def select_one_text(self, selector: str) -> str:
        found = self._tag.select_one(selector)
        return found.get_text() if found is not None else ""

    def parent(self) -> Optional["ElementHandle"]:
        parent = self._tag.parent
        if parent is None or not isinstance(parent, Tag):
            return None
        return ElementHandle(parent, self._document)

    def closest(self, selector: str) -> Optional["ElementHandle"]:
        """Nearest ancestor (or self) matching ``selector``"""
        candidates = self._document.soup.select(selector)
        for node in [self._tag, *self._tag.parents]:
            if any(node is c for c in candidates):
                return ElementHandle(node, self._document)
        return None


class DocumentHandle(ElementHandle):
    """A parsed page; valid for the duration of one request"""

    def __init__(self, url: str, html: str):
        self.url = url
        self.soup = BeautifulSoup(html, "html.parser")
        super().__init__(self.soup, self)


class Page:
    """A fetch resource owned by one worker for one request"""

    def load(self, url: str) -> DocumentHandle:
        raise NotImplementedError

    def close(self) -> None:
        pass


class Fetcher:
    """Hands out pages; the driver opens one per request and always closes it"""

    @contextmanager
    def open_page(self) -> Iterator[Page]:
        page = self.new_page()
        try:
            yield page
        finally:
            page.close()

    def new_page(self) -> Page:
        raise NotImplementedError

    def close(self) -> None:
        pass


class HttpPage(Page):
    """Page backed by its own requests session"""

    def __init__(self, headers: Dict[str, str], timeout: int):
        self.session = requests.Session()
        self.session.headers.update(headers)
        self.timeout = timeout

    def load(self, url: str) -> DocumentHandle:
        try:
            resp = self.session.get(url, timeout=self.timeout)
            resp.raise_for_status()
        except requests.exceptions.Timeout:
            raise FetchError(url, f"timeout after {self.timeout}s")
        except requests.exceptions.ConnectionError as e:
            raise FetchError(url, f"connection error: {e}")
        except requests.exceptions.RequestException as e:
            raise FetchError(url, str(e))
        logger.debug(f"Fetched {url} ({resp.status_code}, {len(resp.text)} chars)")
        return DocumentHandle(resp.url or url, resp.text)

    def close(self) -> None:
        self.session.close()


class HttpFetcher(Fetcher):
    """Default fetcher: plain HTTP GET, parsed with BeautifulSoup"""

    def __init__(self, user_agent: str, timeout: int = 30):
        self.timeout = timeout
        self.headers = {
            "User-Agent": user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "de-DE,de;q=0.9,en;q=0.8",
            "Cache-Control": "no-cache",
            "Pragma": "no-cache",
        }

    def new_page(self) -> HttpPage:
        return HttpPage(self.headers, self.timeout)
