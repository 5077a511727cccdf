"""
URL canonicalization: maps a raw URL to the key used both as the page row key
and as the crawl dedup key.
"""

from urllib.parse import urlsplit


class MalformedURL(ValueError):
    """Raised when a URL cannot be parsed into a host and path."""
    pass


def reverse_domain(url: str) -> str:
    """Reverse the host labels of a URL: ``en.wikipedia.org`` -> ``org.wikipedia.en``."""
    try:
        host = urlsplit(url).hostname
    except ValueError as e:
        raise MalformedURL(f"Unparseable URL {url!r}: {e}") from e

    if not host:
        raise MalformedURL(f"URL has no host: {url!r}")

    return '.'.join(reversed(host.split('.')))


def canonicalize(url: str, store_sub_pages: bool = True) -> str:
    """
    Compute the canonical key for a URL.

    The path is appended unchanged when ``store_sub_pages`` is set; query
    strings and fragments never take part in the key.
    """
    key = reverse_domain(url)
    if store_sub_pages:
        key += urlsplit(url).path
    return key
