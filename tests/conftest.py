import asyncio
import threading
from collections import Counter
from typing import Dict, Iterable, List, Optional, Tuple

import pytest

from hotel_crawler.extraction.fetcher import DocumentHandle, Fetcher, Page
from hotel_crawler.models.crawl import FetchError, Stage
from hotel_crawler.orchestration.crawl_driver import CrawlDriver
from hotel_crawler.orchestration.events import EventSink
from hotel_crawler.storage.dataset import DatasetSink
from hotel_crawler.storage.failures import FailureLog
from hotel_crawler.storage.frontier import Frontier
from hotel_crawler.utils.config import CrawlConfig

BASE = "https://www.example-hotels.de"


# --- HTML builders -----------------------------------------------------------

def start_page(links: Iterable[Tuple[str, str]]) -> str:
    items = "".join(f'<li><a href="{href}">{title}</a></li>' for title, href in links)
    return f'<html><body><ul id="navigation">{items}</ul></body></html>'


def glossary_page(letter: str, cities: Iterable[Tuple[str, str]]) -> str:
    items = "".join(f'<li><a href="{href}">{title}</a></li>' for title, href in cities)
    return (
        '<html><body><div class="container"><div class="row full-rel-left content">'
        f'<div><h1>Orte mit <span>{letter}</span></h1></div>'
        f'<div class="full-rel-left list-of-places mb15 mt20"><ul>{items}</ul></div>'
        '</div></div></body></html>'
    )


def city_page(city: str, hotels: Iterable[Dict[str, str]]) -> str:
    entries = []
    for hotel in hotels:
        entries.append(
            '<li><div class="content">'
            '<div class="title-address">'
            f'<a href="{hotel["href"]}">{hotel["name"]}</a>'
            '<div itemprop="address">'
            f'<span itemprop="streetAddress">{hotel.get("street", "")}</span> '
            f'<span itemprop="postalCode">{hotel.get("postal_code", "")}</span> '
            f'<span itemprop="addressLocality">{hotel.get("locality", city)}</span>'
            '</div></div>'
            f'<ul><li itemprop="priceRange">{hotel.get("price", "")}</li></ul>'
            '</div></li>'
        )
    return (
        '<html><body><div class="container"><div class="row full-rel-left content">'
        f'<div class="full-rel-left"><h1>{city}</h1></div>'
        f'<ul class="hotels-list">{"".join(entries)}</ul>'
        '</div></div></body></html>'
    )


def hotel_page(name: str = "Hotel Zur Post", phone: Optional[str] = "03501 1234",
               with_map: bool = True, map_href: Optional[str] = None) -> str:
    contact = []
    if phone is not None:
        contact.append(f"Telefon: {phone}")
    contact += ["Fax: 03501 5678", "E-Mail: info@zurpost.de", "Web: www.zurpost.de",
                "Inhaber: Max Muster"]
    map_html = ""
    if with_map:
        href = map_href or "https://maps.google.com/maps?ll=50.9627,13.9405&z=15"
        map_html = (f'<div id="mapDiv"><a jsaction="mouseup:placeCard.largerMap" '
                    f'href="{href}">Karte</a></div>')
    return (
        '<html><body><div class="hotel-view">'
        f'<h1>{name}</h1>'
        '<div class="address"><p>Dohnaische Str. 1,\t01796   Pirna</p>\n'
        + "<br>\n".join(contact) +
        '</div>'
        '<div class="hotel-features"><p>Anzahl der Betten: 42</p>'
        '<div><div class="room-facilities">Zimmerausstattung</div>'
        '<ul><li>WLAN</li><li>TV</li><li>Dusche/WC</li></ul></div></div>'
        f'</div>{map_html}</body></html>'
    )


# --- fake fetch capability ---------------------------------------------------

class FakePage(Page):
    def __init__(self, fetcher: "FakeFetcher"):
        self.fetcher = fetcher

    def load(self, url: str) -> DocumentHandle:
        return self.fetcher.load(url)

    def close(self) -> None:
        with self.fetcher.lock:
            self.fetcher.closed_pages += 1


class FakeFetcher(Fetcher):
    """Serves in-memory HTML; ``failures`` maps a URL to how many loads should fail first"""

    def __init__(self, pages: Dict[str, str], failures: Optional[Dict[str, int]] = None):
        self.pages = dict(pages)
        self.failures = dict(failures or {})
        self.calls: Counter = Counter()
        self.opened_pages = 0
        self.closed_pages = 0
        self.lock = threading.Lock()

    def new_page(self) -> FakePage:
        with self.lock:
            self.opened_pages += 1
        return FakePage(self)

    def load(self, url: str) -> DocumentHandle:
        with self.lock:
            self.calls[url] += 1
            remaining = self.failures.get(url, 0)
            if remaining > 0:
                self.failures[url] = remaining - 1
                raise FetchError(url, "simulated network failure")
        if url not in self.pages:
            raise FetchError(url, "404 Client Error: Not Found")
        return DocumentHandle(url, self.pages[url])


# --- fixtures ----------------------------------------------------------------

@pytest.fixture
def crawl_config() -> CrawlConfig:
    return CrawlConfig(
        seed_urls=[f"{BASE}/"],
        concurrency=3,
        max_retries=2,
        retry_delay_seconds=0.0,
        idle_poll_seconds=0.001,
        dataset_buffer_size=10,
    )


@pytest.fixture
def make_driver(tmp_path, crawl_config):
    """Build a driver around a fake fetcher and seed requests"""

    def _make(pages: Dict[str, str], seeds: List[Tuple[str, Stage]],
              failures: Optional[Dict[str, int]] = None,
              config: Optional[CrawlConfig] = None):
        frontier = Frontier()
        frontier.add_seed([frontier.make_request(url, stage) for url, stage in seeds])
        fetcher = FakeFetcher(pages, failures)
        driver = CrawlDriver(
            frontier=frontier,
            fetcher=fetcher,
            dataset=DatasetSink(str(tmp_path / "records.jsonl"), buffer_size=10),
            failures=FailureLog(str(tmp_path / "failed.jsonl")),
            events=EventSink(),
            config=config or crawl_config,
        )
        return driver, fetcher

    return _make


@pytest.fixture
def run_driver():
    def _run(driver: CrawlDriver):
        return asyncio.run(driver.run())
    return _run
