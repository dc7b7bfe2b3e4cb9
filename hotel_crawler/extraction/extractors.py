"""
Stage extractors for the hotel directory.

Each extractor turns a fetched document into one record plus the follow-up
links for the next level of the hierarchy:

    start -> glossary -> city -> hotel

Optional fields that are missing from a page come out as "" (or [] for
lists). An extractor only raises ExtractError when the page does not look like
its stage at all.
"""

from typing import Callable, Dict, List

from hotel_crawler.extraction.fetcher import DocumentHandle, ElementHandle
from hotel_crawler.extraction.normalization import (
    clean_text, collapse_spaces, match_labeled_line, parse_map_coordinates
)
from hotel_crawler.models.crawl import (
    DiscoveredLink, ExtractError, ExtractionResult, Record, Stage
)
from hotel_crawler.utils.urls import resolve_url

_CONTENT = 'body > div.container > div.row.full-rel-left.content'

SELECTORS = {
    Stage.START: {
        'template': '#navigation',
        'links': '#navigation > li a',
    },
    Stage.GLOSSARY: {
        'template': 'div.list-of-places',
        'letter': f'{_CONTENT} > div > h1 > span',
        'links': 'div.list-of-places li a',
    },
    Stage.CITY: {
        'template': f'{_CONTENT} > div.full-rel-left > h1',
        'hotels': 'ul.hotels-list div.title-address',
        'address': 'div[itemprop=address]',
        'street': 'div[itemprop=address] span[itemprop=streetAddress]',
        'postal_code': 'div[itemprop=address] span[itemprop=postalCode]',
        'locality': 'div[itemprop=address] span[itemprop=addressLocality]',
        'price_container': 'div.content',
        'price_range': 'li[itemprop=priceRange]',
    },
    Stage.HOTEL: {
        'template': 'div.hotel-view h1',
        'address_block': 'div.hotel-view div.address',
        'address_line': 'div.hotel-view div.address > p',
        'features': 'div.hotel-view div.hotel-features',
        'room_facilities': 'div.hotel-view div.hotel-features div.room-facilities',
        'map_link': '#mapDiv a[jsaction="mouseup:placeCard.largerMap"]',
    },
}


def _require_template(document: DocumentHandle, stage: Stage) -> None:
    selector = SELECTORS[stage]['template']
    if not document.exists(selector):
        raise ExtractError(stage, document.url, f"missing element {selector!r}")


def _link_entries(document: DocumentHandle, selector: str) -> List[Dict[str, str]]:
    """[{title, url}] for every anchor with a usable href"""
    entries = []
    for anchor in document.select_all(selector):
        url = resolve_url(document.url, anchor.attr('href'))
        if not url:
            continue
        entries.append({'title': clean_text(anchor.text()), 'url': url})
    return entries


def extract_start_page(document: DocumentHandle) -> ExtractionResult:
    """Top-level navigation: one glossary page per index entry"""
    _require_template(document, Stage.START)
    glossaries = _link_entries(document, SELECTORS[Stage.START]['links'])

    discovered = [
        DiscoveredLink(entry['url'], Stage.GLOSSARY, {'title': entry['title']})
        for entry in glossaries
    ]
    record = Record(type=Stage.START, url=document.url, fields={'glossaries': glossaries})
    return ExtractionResult(record=record, discovered=discovered)


def extract_glossary_page(document: DocumentHandle) -> ExtractionResult:
    """Per-letter page listing cities"""
    _require_template(document, Stage.GLOSSARY)
    selectors = SELECTORS[Stage.GLOSSARY]
    letter = clean_text(document.select_one_text(selectors['letter']))
    cities = _link_entries(document, selectors['links'])

    discovered = [
        DiscoveredLink(entry['url'], Stage.CITY,
                       {'title': entry['title'], 'glossary_letter': letter})
        for entry in cities
    ]
    record = Record(
        type=Stage.GLOSSARY,
        url=document.url,
        fields={'glossary_letter': letter, 'cities': cities},
    )
    return ExtractionResult(record=record, discovered=discovered)


def _hotel_summary(element: ElementHandle, city: str, base_url: str) -> Dict[str, str]:
    selectors = SELECTORS[Stage.CITY]
    anchor = element.select_one('a')
    price_range = ""
    container = element.closest(selectors['price_container'])
    if container is not None:
        price_range = clean_text(container.select_one_text(selectors['price_range']))
    url = resolve_url(base_url, anchor.attr('href')) if anchor is not None else None
    return {
        'city': city,
        'name': clean_text(anchor.text()) if anchor is not None else "",
        'addr_full': clean_text(element.select_one_text(selectors['address'])),
        'addr_street': clean_text(element.select_one_text(selectors['street'])),
        'addr_postalcode': clean_text(element.select_one_text(selectors['postal_code'])),
        'addr_locality': clean_text(element.select_one_text(selectors['locality'])),
        'price_range': price_range,
        'url': url or "",
    }


def extract_city_page(document: DocumentHandle) -> ExtractionResult:
    """City page listing hotel summaries"""
    _require_template(document, Stage.CITY)
    selectors = SELECTORS[Stage.CITY]
    city = clean_text(document.select_one_text(selectors['template']))

    hotels = [
        _hotel_summary(element, city, document.url)
        for element in document.select_all(selectors['hotels'])
    ]
    discovered = [
        DiscoveredLink(hotel['url'], Stage.HOTEL, {'city': city, 'name': hotel['name']})
        for hotel in hotels
        if hotel['url']
    ]
    record = Record(type=Stage.CITY, url=document.url, fields={'city': city, 'hotels': hotels})
    return ExtractionResult(record=record, discovered=discovered)


def extract_hotel_page(document: DocumentHandle) -> ExtractionResult:
    """Hotel detail page. Terminal stage: nothing is enqueued."""
    _require_template(document, Stage.HOTEL)
    selectors = SELECTORS[Stage.HOTEL]

    name = clean_text(document.select_one_text(selectors['template']))
    if not name:
        raise ExtractError(Stage.HOTEL, document.url, "hotel title is empty")

    address_block = document.select_one(selectors['address_block'])
    contact_text = address_block.inner_text() if address_block is not None else ""
    features = document.select_one(selectors['features'])
    features_text = features.inner_text() if features is not None else ""

    amenities: List[str] = []
    facilities = document.select_one(selectors['room_facilities'])
    if facilities is not None and facilities.parent() is not None:
        amenities = [
            clean_text(item.text())
            for item in facilities.parent().select_all('ul li')
            if clean_text(item.text())
        ]

    lat, lon = None, None
    map_link = document.select_one(selectors['map_link'])
    if map_link is not None:
        lat, lon = parse_map_coordinates(map_link.attr('href'))

    fields = {
        'name': name,
        'address': collapse_spaces(document.select_one_text(selectors['address_line'])),
        'phone': match_labeled_line(contact_text, 'Telefon'),
        'fax': match_labeled_line(contact_text, 'Fax'),
        'email': match_labeled_line(contact_text, 'E-Mail'),
        'website': match_labeled_line(contact_text, 'Web'),
        'number_of_beds': match_labeled_line(features_text, 'Anzahl der Betten', line_start=False),
        'owner': match_labeled_line(contact_text, 'Inhaber'),
        'amenities': amenities,
        'lat': lat,
        'lon': lon,
    }
    return ExtractionResult(record=Record(type=Stage.HOTEL, url=document.url, fields=fields))


Extractor = Callable[[DocumentHandle], ExtractionResult]

STAGE_EXTRACTORS: Dict[Stage, Extractor] = {
    Stage.START: extract_start_page,
    Stage.GLOSSARY: extract_glossary_page,
    Stage.CITY: extract_city_page,
    Stage.HOTEL: extract_hotel_page,
}

_unhandled = [stage.value for stage in Stage if stage not in STAGE_EXTRACTORS]
if _unhandled:
    raise RuntimeError(f"No extractor registered for stage(s): {', '.join(_unhandled)}")


def extract_for_stage(stage: Stage, document: DocumentHandle) -> ExtractionResult:
    """Dispatch ``document`` to the extractor for ``stage``"""
    if not isinstance(stage, Stage):
        raise ValueError(f"Unknown stage {stage!r}")
    return STAGE_EXTRACTORS[stage](document)
