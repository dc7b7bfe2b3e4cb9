import asyncio
import signal
import sys
from typing import List, Optional

from hotel_crawler.extraction.fetcher import Fetcher, HttpFetcher
from hotel_crawler.models.crawl import CrawlSummary, FatalInitError, Stage
from hotel_crawler.orchestration.crawl_driver import CrawlDriver
from hotel_crawler.orchestration.events import EventSink, create_event_sink
from hotel_crawler.storage.dataset import DatasetSink
from hotel_crawler.storage.failures import FailureLog
from hotel_crawler.storage.frontier import Frontier
from hotel_crawler.utils.config import ConfigManager, get_config
from hotel_crawler.utils.logging_config import configure_logging, get_logger
from hotel_crawler.utils.validation import SeedValidator

def build_frontier(seed_urls: List[str]) -> Frontier:
    """Validate the seed list and load it into a fresh frontier"""
    seeds = SeedValidator.validate_seed_urls(seed_urls)
    frontier = Frontier()
    requests = [frontier.make_request(url, Stage.START, {'label': 'start-page'}) for url in seeds]
    if frontier.add_seed(requests) == 0:
        raise FatalInitError("Seed list produced no requests")
    return frontier

def create_driver(config: ConfigManager, fetcher: Optional[Fetcher] = None,
                  events: Optional[EventSink] = None) -> CrawlDriver:
    """Configure the crawl driver and its collaborators"""
    try:
        validation = config.validate_config()
    except ValueError as e:
        # non-numeric value in a numeric env var
        raise FatalInitError(f"Invalid configuration: {str(e)}") from e
    if not validation['valid']:
        raise FatalInitError("Invalid configuration: " + "; ".join(validation['issues']))

    crawl_config = config.crawl
    frontier = build_frontier(crawl_config.seed_urls)
    fetcher = fetcher or HttpFetcher(crawl_config.user_agent, crawl_config.request_timeout_seconds)

    return CrawlDriver(
        frontier=frontier,
        fetcher=fetcher,
        dataset=DatasetSink(config.storage.dataset_path, crawl_config.dataset_buffer_size),
        failures=FailureLog(config.storage.failures_path),
        events=events or create_event_sink(),
        config=crawl_config,
    )

async def run_crawl(driver: CrawlDriver) -> CrawlSummary:
    """Run the driver, turning SIGINT/SIGTERM into a graceful stop"""
    loop = asyncio.get_running_loop()
    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, driver.request_stop, f"received {sig.name}")
            installed.append(sig)
        except (NotImplementedError, RuntimeError):
            pass  # not supported on this platform / thread
    try:
        return await driver.run()
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)
        driver.fetcher.close()

def main() -> int:
    """Console entry point. Exit code 0 when the crawl completes, 1 on fatal init errors."""
    config = get_config()
    configure_logging(config.logging.level, config.logging.log_dir)
    logger = get_logger()
    logger.info("Hotel directory crawler startup")

    try:
        driver = create_driver(config)
    except FatalInitError as e:
        logger.error(f"Cannot start crawl: {str(e)}")
        return 1

    summary = asyncio.run(run_crawl(driver))
    logger.info(f"Crawl summary: {summary.to_dict()}")
    logger.info(f"Records written to {config.storage.dataset_path}")
    if summary.failed_requests:
        logger.info(f"Failed requests written to {config.storage.failures_path}")
    return 0

if __name__ == '__main__':
    sys.exit(main())
