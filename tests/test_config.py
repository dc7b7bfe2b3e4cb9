import pytest

from hotel_crawler.utils.config import (
    DEFAULT_SEED_URL, ConfigManager, CrawlConfig, get_config, reset_config
)

ENV_VARS = [
    'SEED_URLS', 'CRAWL_CONCURRENCY', 'MAX_RETRY_ATTEMPTS', 'RETRY_DELAY_SECONDS',
    'RETRY_BACKOFF_MAX_SECONDS', 'PAGE_DELAY_MS', 'MAX_REQUESTS_PER_CRAWL',
    'REQUEST_TIMEOUT_SECONDS', 'CRAWLER_USER_AGENT', 'DATASET_BUFFER_SIZE',
    'DATASET_PATH', 'FAILURES_PATH', 'LOG_LEVEL', 'LOG_DIR',
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    crawl = ConfigManager().crawl
    assert crawl.seed_urls == [DEFAULT_SEED_URL]
    assert crawl.concurrency == 4
    assert crawl.max_retries == 3
    assert crawl.max_requests_per_crawl == 0


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv('SEED_URLS', 'https://a.example.com/, https://b.example.com/ ,')
    monkeypatch.setenv('CRAWL_CONCURRENCY', '8')
    monkeypatch.setenv('MAX_RETRY_ATTEMPTS', '5')
    monkeypatch.setenv('DATASET_PATH', '/tmp/out.jsonl')
    monkeypatch.setenv('LOG_LEVEL', 'debug')

    config = ConfigManager()
    assert config.crawl.seed_urls == ['https://a.example.com/', 'https://b.example.com/']
    assert config.crawl.concurrency == 8
    assert config.crawl.max_retries == 5
    assert config.storage.dataset_path == '/tmp/out.jsonl'
    assert config.logging.level == 'DEBUG'


def test_validate_config_reports_issues(monkeypatch):
    monkeypatch.setenv('SEED_URLS', '')
    monkeypatch.setenv('CRAWL_CONCURRENCY', '0')
    monkeypatch.setenv('MAX_RETRY_ATTEMPTS', '-1')

    result = ConfigManager().validate_config()
    assert result['valid'] is False
    assert "SEED_URLS is empty" in result['issues']
    assert "CRAWL_CONCURRENCY must be at least 1" in result['issues']
    assert "MAX_RETRY_ATTEMPTS must not be negative" in result['issues']


def test_validate_config_summary():
    result = ConfigManager().validate_config()
    assert result['valid'] is True
    assert result['config_summary']['crawl']['seed_count'] == 1


def test_reset_config_rereads_environment(monkeypatch):
    monkeypatch.setenv('CRAWL_CONCURRENCY', '2')
    fresh = reset_config()
    assert get_config() is fresh
    assert fresh.crawl.concurrency == 2


@pytest.mark.parametrize("attempt,expected", [(0, 0.0), (1, 1.0), (2, 2.0), (3, 4.0), (6, 30.0)])
def test_backoff_doubles_up_to_cap(attempt, expected):
    config = CrawlConfig(retry_delay_seconds=1.0, retry_backoff_max_seconds=30.0)
    assert config.backoff_for(attempt) == expected
