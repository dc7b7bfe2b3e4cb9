import os
from typing import Dict, Any, List
from dataclasses import dataclass, field

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

DEFAULT_SEED_URL = "https://www.preiswert-uebernachten.de/pirna/hotel-zur-post/34"
DEFAULT_USER_AGENT = "HotelDirectoryCrawler/1.0 (+https://example.com)"

@dataclass
class CrawlConfig:
    """Configuration for the crawl run"""
    seed_urls: List[str] = field(default_factory=lambda: [DEFAULT_SEED_URL])
    concurrency: int = 4
    max_retries: int = 3
    retry_delay_seconds: float = 1.0
    retry_backoff_max_seconds: float = 30.0
    page_delay_ms: int = 0  # debugging aid, like a browser slowMo
    max_requests_per_crawl: int = 0  # 0 means unlimited
    request_timeout_seconds: int = 30
    user_agent: str = DEFAULT_USER_AGENT
    dataset_buffer_size: int = 100
    idle_poll_seconds: float = 0.05

    def backoff_for(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (1-based)"""
        if attempt < 1:
            return 0.0
        return min(self.retry_delay_seconds * (2 ** (attempt - 1)), self.retry_backoff_max_seconds)

@dataclass
class StorageConfig:
    """Where records and failed requests are written"""
    dataset_path: str = os.path.join('storage', 'datasets', 'default', 'records.jsonl')
    failures_path: str = os.path.join('storage', 'failures', 'failed_requests.jsonl')

@dataclass
class LoggingConfig:
    """Logging configuration"""
    level: str = "INFO"
    log_dir: str = "logs"

def _parse_list(raw: str) -> List[str]:
    return [item.strip() for item in raw.split(',') if item.strip()]

class ConfigManager:
    """Centralized configuration management"""

    def __init__(self):
        self._crawl_config = None
        self._storage_config = None
        self._logging_config = None

    @property
    def crawl(self) -> CrawlConfig:
        """Get crawl configuration"""
        if self._crawl_config is None:
            self._crawl_config = CrawlConfig(
                seed_urls=_parse_list(os.getenv('SEED_URLS', DEFAULT_SEED_URL)),
                concurrency=int(os.getenv('CRAWL_CONCURRENCY', '4')),
                max_retries=int(os.getenv('MAX_RETRY_ATTEMPTS', '3')),
                retry_delay_seconds=float(os.getenv('RETRY_DELAY_SECONDS', '1.0')),
                retry_backoff_max_seconds=float(os.getenv('RETRY_BACKOFF_MAX_SECONDS', '30')),
                page_delay_ms=int(os.getenv('PAGE_DELAY_MS', '0')),
                max_requests_per_crawl=int(os.getenv('MAX_REQUESTS_PER_CRAWL', '0')),
                request_timeout_seconds=int(os.getenv('REQUEST_TIMEOUT_SECONDS', '30')),
                user_agent=os.getenv('CRAWLER_USER_AGENT', DEFAULT_USER_AGENT),
                dataset_buffer_size=int(os.getenv('DATASET_BUFFER_SIZE', '100'))
            )
        return self._crawl_config

    @property
    def storage(self) -> StorageConfig:
        """Get storage configuration"""
        if self._storage_config is None:
            defaults = StorageConfig()
            self._storage_config = StorageConfig(
                dataset_path=os.getenv('DATASET_PATH', defaults.dataset_path),
                failures_path=os.getenv('FAILURES_PATH', defaults.failures_path)
            )
        return self._storage_config

    @property
    def logging(self) -> LoggingConfig:
        """Get logging configuration"""
        if self._logging_config is None:
            self._logging_config = LoggingConfig(
                level=os.getenv('LOG_LEVEL', 'INFO').upper(),
                log_dir=os.getenv('LOG_DIR', 'logs')
            )
        return self._logging_config

    def validate_config(self) -> Dict[str, Any]:
        """Validate configuration and return any issues"""
        issues = []
        crawl = self.crawl

        if not crawl.seed_urls:
            issues.append("SEED_URLS is empty")
        if crawl.concurrency < 1:
            issues.append("CRAWL_CONCURRENCY must be at least 1")
        if crawl.max_retries < 0:
            issues.append("MAX_RETRY_ATTEMPTS must not be negative")
        if crawl.retry_delay_seconds < 0 or crawl.retry_backoff_max_seconds < 0:
            issues.append("Retry delays must not be negative")
        if crawl.page_delay_ms < 0:
            issues.append("PAGE_DELAY_MS must not be negative")
        if crawl.max_requests_per_crawl < 0:
            issues.append("MAX_REQUESTS_PER_CRAWL must not be negative")
        if crawl.dataset_buffer_size < 1:
            issues.append("DATASET_BUFFER_SIZE must be at least 1")

        return {
            'valid': len(issues) == 0,
            'issues': issues,
            'config_summary': {
                'crawl': {
                    'seed_count': len(crawl.seed_urls),
                    'concurrency': crawl.concurrency,
                    'max_retries': crawl.max_retries,
                    'max_requests_per_crawl': crawl.max_requests_per_crawl
                },
                'storage': {
                    'dataset_path': self.storage.dataset_path,
                    'failures_path': self.storage.failures_path
                },
                'logging': {
                    'level': self.logging.level
                }
            }
        }

# Global configuration instance
config = ConfigManager()

def get_config() -> ConfigManager:
    """Get the global configuration instance"""
    return config

def reset_config() -> ConfigManager:
    """Rebuild the global configuration from the environment (useful for testing)"""
    global config
    config = ConfigManager()
    return config
