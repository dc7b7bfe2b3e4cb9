from typing import List, Optional, Sequence, Tuple
from urllib.parse import urlparse

import validators

from hotel_crawler.models.crawl import FatalInitError


class SeedValidator:
    """Validator for the crawl seed list"""

    @staticmethod
    def validate_url(url: str) -> Tuple[bool, Optional[str]]:
        """Validate URL format"""
        if not url or not isinstance(url, str):
            return False, "URL must be a non-empty string"

        url = url.strip()

        parsed = urlparse(url)
        if parsed.scheme not in ['http', 'https']:
            return False, "URL must use HTTP or HTTPS protocol"

        if not parsed.netloc:
            return False, "URL must have a valid domain"

        if not validators.url(url):
            return False, "URL is malformed"

        return True, None

    @classmethod
    def validate_seed_urls(cls, urls: Sequence[str]) -> List[str]:
        """Return the cleaned seed list or raise FatalInitError"""
        if not urls:
            raise FatalInitError("Seed list is empty")

        errors = []
        cleaned = []
        for url in urls:
            is_valid, error = cls.validate_url(url)
            if not is_valid:
                errors.append(f"{url!r}: {error}")
                continue
            cleaned.append(url.strip())

        if errors:
            raise FatalInitError("Malformed seed list: " + "; ".join(errors))

        return cleaned
