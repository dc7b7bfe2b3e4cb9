import logging
import logging.handlers
import os
import threading
from typing import Optional

class CrawlLogger:
    """Custom logger for crawl operations"""

    def __init__(self, name: str = "hotel_crawler", log_dir: Optional[str] = None,
                 level: str = "INFO"):
        self.logger = logging.getLogger(name)
        self.log_dir = log_dir or os.path.join(os.path.dirname(__file__), '..', '..', 'logs')
        self.level = getattr(logging, level.upper(), logging.INFO)
        self._setup_logger()

    def _setup_logger(self):
        """Setup logger with appropriate handlers and formatters"""
        if self.logger.handlers:
            return  # Already configured

        self.logger.setLevel(logging.DEBUG)
        self.logger.propagate = False

        # Create logs directory if it doesn't exist
        os.makedirs(self.log_dir, exist_ok=True)

        # Console handler
        console_handler = logging.StreamHandler()
        console_handler.setLevel(self.level)
        console_formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )
        console_handler.setFormatter(console_formatter)
        self.logger.addHandler(console_handler)

        # File handler for general logs
        file_handler = logging.handlers.RotatingFileHandler(
            os.path.join(self.log_dir, 'crawler.log'),
            maxBytes=10*1024*1024,  # 10MB
            backupCount=5,
            encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)
        file_formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
        )
        file_handler.setFormatter(file_formatter)
        self.logger.addHandler(file_handler)

        # Separate handler for per-request operations
        request_handler = logging.handlers.RotatingFileHandler(
            os.path.join(self.log_dir, 'requests.log'),
            maxBytes=50*1024*1024,  # 50MB
            backupCount=10,
            encoding='utf-8'
        )
        request_handler.setLevel(logging.INFO)
        request_formatter = logging.Formatter(
            '%(asctime)s - REQ_%(request_id)s - STAGE_%(stage)s - %(levelname)s - %(message)s'
        )
        request_handler.setFormatter(request_formatter)

        # Only messages carrying request context go to this handler
        request_handler.addFilter(lambda record: hasattr(record, 'request_id'))
        self.logger.addHandler(request_handler)

        # Error handler for critical issues
        error_handler = logging.handlers.RotatingFileHandler(
            os.path.join(self.log_dir, 'errors.log'),
            maxBytes=10*1024*1024,  # 10MB
            backupCount=5,
            encoding='utf-8'
        )
        error_handler.setLevel(logging.ERROR)
        error_formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
        )
        error_handler.setFormatter(error_formatter)
        self.logger.addHandler(error_handler)

    def log_crawl_start(self, seed_count: int, concurrency: int, max_retries: int):
        """Log the start of a crawl run"""
        self.logger.info(
            f"Starting crawl with {seed_count} seed(s), concurrency={concurrency}, "
            f"max_retries={max_retries}"
        )

    def log_crawl_complete(self, duration: float, records: int, failures: int,
                           abandoned: int = 0):
        """Log the completion of a crawl run"""
        message = (f"Crawl finished in {duration:.2f} seconds: "
                   f"{records} record(s), {failures} failed request(s)")
        if abandoned:
            message += f", {abandoned} request(s) abandoned after stop"
        self.logger.info(message)

    def log_request_start(self, request_id: str, stage: str, url: str, attempt: int = 0):
        """Log the start of a request"""
        extra = {'request_id': request_id, 'stage': stage}
        message = f"Processing {url}"
        if attempt > 0:
            message += f" (retry #{attempt})"
        self.logger.info(message, extra=extra)

    def log_request_complete(self, request_id: str, stage: str, duration: float,
                             discovered: int = 0, enqueued: int = 0):
        """Log the completion of a request"""
        extra = {'request_id': request_id, 'stage': stage}
        message = f"Request completed in {duration:.2f} seconds"
        if discovered:
            message += f", links: {discovered} discovered / {enqueued} enqueued"
        self.logger.info(message, extra=extra)

    def log_request_retry(self, request_id: str, stage: str, attempt: int,
                          delay: float, reason: str):
        """Log a request retry"""
        extra = {'request_id': request_id, 'stage': stage}
        self.logger.warning(
            f"Retrying request in {delay:.2f}s (attempt #{attempt + 1}): {reason}", extra=extra
        )

    def log_request_failed(self, request_id: str, stage: str, url: str, error: str,
                           attempts: int):
        """Log a request that exhausted its retries"""
        extra = {'request_id': request_id, 'stage': stage}
        self.logger.error(
            f"Request {url} failed too many times ({attempts} attempts): {error}", extra=extra
        )

    def log_record_emitted(self, request_id: str, stage: str, completeness: Optional[float] = None):
        """Log a record appended to the dataset"""
        extra = {'request_id': request_id, 'stage': stage}
        message = f"Record emitted for stage {stage}"
        if completeness is not None:
            message += f" (completeness: {completeness:.3f})"
        self.logger.debug(message, extra=extra)

    def _extra(self, request_id: Optional[str], stage: Optional[str]) -> dict:
        extra = {}
        if request_id is not None:
            extra['request_id'] = request_id
        # Ensure stage is always present when request_id is present to satisfy formatter
        if stage is None and request_id is not None:
            extra['stage'] = 'SYSTEM'
        elif stage is not None:
            extra['stage'] = stage
        return extra

    def debug(self, message: str, request_id: Optional[str] = None, stage: Optional[str] = None):
        """Log debug message"""
        self.logger.debug(message, extra=self._extra(request_id, stage))

    def info(self, message: str, request_id: Optional[str] = None, stage: Optional[str] = None):
        """Log info message"""
        self.logger.info(message, extra=self._extra(request_id, stage))

    def warning(self, message: str, request_id: Optional[str] = None, stage: Optional[str] = None):
        """Log warning message"""
        self.logger.warning(message, extra=self._extra(request_id, stage))

    def error(self, message: str, request_id: Optional[str] = None, stage: Optional[str] = None,
              exc_info=None):
        """Log error message"""
        self.logger.error(message, extra=self._extra(request_id, stage), exc_info=exc_info)

# Global logger instance
_crawl_logger = None
_logger_lock = threading.Lock()

def configure_logging(level: str = "INFO", log_dir: Optional[str] = None) -> CrawlLogger:
    """Replace the global crawl logger with one using the given level and directory"""
    global _crawl_logger
    with _logger_lock:
        logger = logging.getLogger("hotel_crawler")
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        _crawl_logger = CrawlLogger(log_dir=log_dir, level=level)
        return _crawl_logger

def get_logger() -> CrawlLogger:
    """Get the global crawl logger instance"""
    global _crawl_logger
    with _logger_lock:
        if _crawl_logger is None:
            _crawl_logger = CrawlLogger()
        return _crawl_logger
