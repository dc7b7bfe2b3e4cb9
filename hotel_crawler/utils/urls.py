from typing import Optional
from urllib.parse import urljoin, urlparse, urlunparse, parse_qsl, urlencode

ALLOWED_SCHEMES = {"http", "https"}
DEFAULT_PORTS = {"http": 80, "https": 443}


def resolve_url(base_url: str, href: Optional[str]) -> Optional[str]:
    """Resolve a link found on ``base_url`` to an absolute http(s) URL, or None."""
    if not href:
        return None
    href = href.strip()
    if not href or href.startswith('#'):
        return None
    if href.startswith('//'):
        href = 'https:' + href
    try:
        target = urljoin(base_url, href) if base_url else href
        scheme = urlparse(target).scheme.lower()
    except ValueError:
        # e.g. an unbalanced IPv6 bracket
        return None
    if scheme not in ALLOWED_SCHEMES:
        return None
    return target


def canonicalize_url(url: str) -> str:
    """
    Normalize a URL into the key used for deduplication.

    - scheme and host are lowercased, protocol-relative links get https
    - default ports and the fragment are dropped
    - query params are sorted, blank values kept
    - trailing slashes are stripped from the path; path case is preserved

        HTTPS://Example.COM:443/Pirna/?b=2&a=1#top -> https://example.com/Pirna?a=1&b=2

    Raises ValueError for non-http(s) URLs or URLs without a host.
    """
    url = (url or '').strip()
    if url.startswith('//'):
        url = 'https:' + url
    p = urlparse(url)
    scheme = p.scheme.lower()
    if scheme not in ALLOWED_SCHEMES:
        raise ValueError(f"Unsupported URL scheme: {url!r}")
    host = (p.hostname or '').lower()
    if not host:
        raise ValueError(f"URL has no host: {url!r}")

    netloc = host
    try:
        port = p.port
    except ValueError as e:
        raise ValueError(f"Invalid port in URL: {url!r}") from e
    if port is not None and port != DEFAULT_PORTS[scheme]:
        netloc = f"{host}:{port}"

    path = p.path.rstrip('/')

    q = parse_qsl(p.query, keep_blank_values=True)
    q.sort()
    query = urlencode(q)

    return urlunparse((scheme, netloc, path, "", query, ""))
