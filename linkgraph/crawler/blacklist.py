"""
Persistent URL blacklist backed by a line-delimited log file.
"""

import asyncio
import logging
from pathlib import Path
from typing import Set, Union


class Blacklist:
    """
    Append-only set of URLs that must never be fetched again.

    The set is loaded once from the log file and every addition is appended
    and flushed before ``add`` returns. Appends are serialized with a lock so
    concurrent crawl attempts never interleave partial lines.
    """

    def __init__(self, path: Union[str, Path], urls: Set[str] = None):
        self.path = Path(path)
        self._urls: Set[str] = set(urls or ())
        self._lock = asyncio.Lock()
        self.logger = logging.getLogger(__name__)

    @classmethod
    def load(cls, path: Union[str, Path]) -> 'Blacklist':
        """Load the blacklist log, or start empty when it does not exist."""
        path = Path(path)
        urls = set()
        try:
            with open(path, 'r', encoding='utf-8') as f:
                for line in f:
                    url = line.strip()
                    if url:
                        urls.add(url)
        except FileNotFoundError:
            pass

        blacklist = cls(path, urls)
        blacklist.logger.info(f"Loaded {len(urls)} blacklisted URLs from {path}")
        return blacklist

    def __contains__(self, url: str) -> bool:
        return url in self._urls

    def __len__(self) -> int:
        return len(self._urls)

    def is_blacklisted(self, url: str) -> bool:
        return url in self._urls

    async def add(self, url: str) -> bool:
        """
        Blacklist a URL and persist it.

        Returns False when the URL was already blacklisted.
        """
        async with self._lock:
            if url in self._urls:
                return False

            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, 'a', encoding='utf-8') as f:
                f.write(url + '\n')
                f.flush()

            self._urls.add(url)

        self.logger.debug(f"Appended {url} to {self.path}")
        return True
