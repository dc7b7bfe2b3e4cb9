from concurrent.futures import ThreadPoolExecutor

import pytest

from hotel_crawler.models.crawl import Stage
from hotel_crawler.storage.frontier import Frontier

BASE = "https://www.example-hotels.de"


def seeded(*urls):
    frontier = Frontier()
    frontier.add_seed([frontier.make_request(u, Stage.START) for u in urls])
    return frontier


class TestSeeding:
    def test_seeds_dispatched_in_order(self):
        frontier = seeded(f"{BASE}/a", f"{BASE}/b")
        assert frontier.next().url == f"{BASE}/a"
        assert frontier.next().url == f"{BASE}/b"
        assert frontier.next() is None

    def test_duplicate_seeds_collapsed(self):
        frontier = Frontier()
        added = frontier.add_seed([
            frontier.make_request(f"{BASE}/", Stage.START),
            frontier.make_request(f"{BASE}", Stage.START),
        ])
        assert added == 1
        assert len(frontier) == 1
        assert frontier.stats().duplicates_ignored == 1

    def test_seeding_twice_is_an_error(self):
        frontier = seeded(f"{BASE}/")
        with pytest.raises(RuntimeError):
            frontier.add_seed([])

    def test_seeds_before_discovered(self):
        frontier = seeded(f"{BASE}/a", f"{BASE}/b")
        frontier.add_discovered(f"{BASE}/c", Stage.GLOSSARY)
        assert [r.url for r in frontier.pending_requests()] == \
            [f"{BASE}/a", f"{BASE}/b", f"{BASE}/c"]


class TestDiscovered:
    def test_duplicate_canonical_url_is_a_noop(self):
        frontier = seeded(f"{BASE}/")
        assert frontier.add_discovered(f"{BASE}/pirna", Stage.CITY) is True
        assert frontier.add_discovered(f"{BASE}/pirna/#top", Stage.CITY) is False
        assert len(frontier) == 2

    def test_dedup_ignores_stage(self):
        frontier = seeded(f"{BASE}/")
        assert frontier.add_discovered(f"{BASE}/pirna", Stage.CITY) is True
        assert frontier.add_discovered(f"{BASE}/pirna", Stage.HOTEL) is False
        queued = frontier.pending_requests()
        assert queued[-1].stage == Stage.CITY

    def test_already_processed_url_not_requeued(self):
        frontier = seeded(f"{BASE}/")
        request = frontier.next()
        frontier.release(request)
        assert frontier.add_discovered(f"{BASE}/", Stage.CITY) is False
        assert frontier.is_drained()

    def test_unusable_url_skipped(self):
        frontier = seeded(f"{BASE}/")
        assert frontier.add_discovered("ftp://example.com/x", Stage.CITY) is False
        assert len(frontier) == 1

    def test_user_data_carried(self):
        frontier = seeded(f"{BASE}/")
        frontier.next()
        frontier.add_discovered(f"{BASE}/orte/a", Stage.GLOSSARY, {'title': 'A'})
        request = frontier.next()
        assert request.stage == Stage.GLOSSARY
        assert request.user_data == {'title': 'A'}
        assert request.unique_key == f"{BASE.lower()}/orte/a"

    def test_concurrent_adds_enqueue_each_url_once(self):
        frontier = seeded(f"{BASE}/")
        urls = [f"{BASE}/city/{i % 25}" for i in range(500)]
        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda u: frontier.add_discovered(u, Stage.CITY), urls))
        assert sum(results) == 25
        assert len(frontier) == 26


class TestDrained:
    def test_in_flight_request_keeps_frontier_open(self):
        frontier = seeded(f"{BASE}/")
        request = frontier.next()
        assert frontier.is_empty()
        assert not frontier.is_drained()
        frontier.release(request)
        assert frontier.is_drained()

    def test_pending_retry_keeps_frontier_open(self):
        frontier = seeded(f"{BASE}/")
        request = frontier.next()
        frontier.schedule_retry(request)
        assert frontier.next() is None
        assert not frontier.is_drained()
        assert frontier.stats().pending_retries == 1

        frontier.requeue(request)
        assert frontier.next() is request
        frontier.release(request)
        assert frontier.is_drained()

    def test_requeue_after_drop_is_ignored(self):
        frontier = seeded(f"{BASE}/")
        request = frontier.next()
        frontier.schedule_retry(request)
        dropped = frontier.drop_pending()
        assert dropped == [request]
        frontier.requeue(request)
        assert frontier.is_empty()
        assert frontier.is_drained()

    def test_drop_pending_returns_queued_and_retrying(self):
        frontier = seeded(f"{BASE}/a", f"{BASE}/b", f"{BASE}/c")
        first = frontier.next()
        frontier.schedule_retry(first)
        dropped = frontier.drop_pending()
        assert {r.url for r in dropped} == {f"{BASE}/a", f"{BASE}/b", f"{BASE}/c"}
        assert frontier.is_drained()

    def test_is_seen(self):
        frontier = seeded(f"{BASE}/")
        assert frontier.is_seen(f"{BASE}")
        assert not frontier.is_seen(f"{BASE}/other")
