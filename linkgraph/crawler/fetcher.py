"""
Web page fetcher: a bounded-time GET classified into crawl outcomes.
"""

import asyncio
import aiohttp
import logging
import time
from enum import Enum
from typing import Optional, Dict, Tuple
from urllib.parse import urljoin, urlparse
from urllib.robotparser import RobotFileParser
from dataclasses import dataclass
from aiohttp import ClientSession, ClientTimeout, ClientError


HTML_CONTENT_TYPES = ('text/html', 'application/xhtml+xml')


class FetchOutcome(Enum):
    """Classification of a fetch attempt."""
    OK = 'ok'
    NON_HTML = 'non_html'
    HTTP_ERROR = 'http_error'
    TIMEOUT = 'timeout'
    TRANSPORT_ERROR = 'transport_error'
    DISALLOWED = 'disallowed'


@dataclass
class FetchResult:
    """Result of a fetch operation."""
    url: str
    outcome: FetchOutcome
    status_code: int = 0
    content_type: str = ''
    content: Optional[str] = None
    error: Optional[str] = None
    fetch_time: float = 0.0
    final_url: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome is FetchOutcome.OK

    @property
    def base_url(self) -> str:
        """URL the body was served from, after redirects."""
        return self.final_url or self.url


class RobotsChecker:
    """Caches robots.txt rules per origin."""

    def __init__(self, user_agent: str, request_timeout: float = 5.0):
        self.user_agent = user_agent
        self.request_timeout = request_timeout
        self.robots_cache: Dict[str, RobotFileParser] = {}
        self.robots_check_time: Dict[str, float] = {}
        self.cache_ttl = 3600  # 1 hour cache TTL
        self.logger = logging.getLogger(__name__)

    def _get_origin(self, url: str) -> str:
        parsed = urlparse(url)
        return f"{parsed.scheme}://{parsed.netloc}"

    async def can_fetch(self, url: str, session: ClientSession) -> bool:
        """Check if URL can be fetched according to robots.txt."""
        origin = self._get_origin(url)
        current_time = time.time()

        if (origin in self.robots_cache and
                current_time - self.robots_check_time[origin] < self.cache_ttl):
            return self.robots_cache[origin].can_fetch(self.user_agent, url)

        robots_url = urljoin(origin, '/robots.txt')
        rp = RobotFileParser()
        rp.set_url(robots_url)
        try:
            async with session.get(robots_url, timeout=ClientTimeout(total=self.request_timeout)) as response:
                if response.status == 200:
                    rp.parse((await response.text()).splitlines())
                else:
                    # No robots.txt allows everything
                    rp.parse([])
        except (ClientError, asyncio.TimeoutError, UnicodeDecodeError) as e:
            self.logger.warning(f"Could not fetch robots.txt for {origin}: {e}")
            rp.parse([])

        self.robots_cache[origin] = rp
        self.robots_check_time[origin] = current_time
        return rp.can_fetch(self.user_agent, url)


class WebFetcher:
    """
    Fetches web pages, racing each request against a fixed timeout.

    Non-2xx statuses and non-HTML bodies are reported as outcomes, never
    raised, so the caller can apply its own policy to each.
    """

    def __init__(self, user_agent: str, request_timeout: float = 5.0,
                 max_concurrent_requests: int = 4, respect_robots_txt: bool = False,
                 session: Optional[ClientSession] = None):
        self.user_agent = user_agent
        self.request_timeout = request_timeout
        self.max_concurrent_requests = max_concurrent_requests
        self.respect_robots_txt = respect_robots_txt

        self.logger = logging.getLogger(__name__)
        self.robots_checker = RobotsChecker(user_agent, request_timeout) if respect_robots_txt else None

        self.session: Optional[ClientSession] = session
        self._owns_session = session is None

        self.stats = {
            'total_requests': 0,
            'successful_requests': 0,
            'failed_requests': 0,
            'timeouts': 0,
            'robots_blocked': 0,
            'total_bytes_downloaded': 0
        }

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def start(self):
        """Initialize the fetcher session."""
        if self.session is None:
            headers = {'User-Agent': self.user_agent}

            self.session = aiohttp.ClientSession(
                headers=headers,
                connector=aiohttp.TCPConnector(
                    limit=self.max_concurrent_requests * 2,
                    ttl_dns_cache=300,
                )
            )
            self._owns_session = True
            self.logger.info("WebFetcher session started")

    async def close(self):
        """Close the fetcher session."""
        if self.session and self._owns_session:
            await self.session.close()
            self.logger.info("WebFetcher session closed")
        self.session = None

    async def fetch(self, url: str) -> FetchResult:
        """
        Fetch a single URL within the configured timeout.

        When the timeout fires the request is abandoned and a TIMEOUT result
        is returned immediately.
        """
        start_time = time.time()

        if self.robots_checker and not await self.robots_checker.can_fetch(url, self.session):
            self.stats['robots_blocked'] += 1
            return FetchResult(url=url, outcome=FetchOutcome.DISALLOWED,
                               error="Blocked by robots.txt")

        self.stats['total_requests'] += 1
        try:
            status, content_type, content, final_url = await asyncio.wait_for(
                self._get(url), timeout=self.request_timeout
            )
        except asyncio.TimeoutError:
            self.stats['timeouts'] += 1
            self.stats['failed_requests'] += 1
            self.logger.warning(f"Timeout fetching {url} after {self.request_timeout}s")
            return FetchResult(url=url, outcome=FetchOutcome.TIMEOUT, error="Request timeout",
                               fetch_time=time.time() - start_time)
        except (ClientError, ValueError) as e:
            self.stats['failed_requests'] += 1
            self.logger.warning(f"Client error fetching {url}: {e}")
            return FetchResult(url=url, outcome=FetchOutcome.TRANSPORT_ERROR,
                               error=f"Client error: {e}", fetch_time=time.time() - start_time)

        fetch_time = time.time() - start_time

        if not 200 <= status < 300:
            self.stats['failed_requests'] += 1
            outcome = FetchOutcome.HTTP_ERROR
        elif not self._is_html(content_type):
            outcome = FetchOutcome.NON_HTML
        else:
            self.stats['successful_requests'] += 1
            self.stats['total_bytes_downloaded'] += len(content)
            outcome = FetchOutcome.OK

        self.logger.debug(f"Fetched {url}: {status} {content_type} -> {outcome.value}")
        return FetchResult(
            url=url,
            outcome=outcome,
            status_code=status,
            content_type=content_type,
            content=content if outcome is FetchOutcome.OK else None,
            fetch_time=fetch_time,
            final_url=final_url
        )

    async def _get(self, url: str) -> Tuple[int, str, str, str]:
        async with self.session.get(url) as response:
            final_url = str(response.url)
            content_type = response.headers.get('content-type', '').lower()
            if not 200 <= response.status < 300 or not self._is_html(content_type):
                return response.status, content_type, '', final_url

            body = await response.read()
            return response.status, content_type, self._decode(body, response.charset), final_url

    def _is_html(self, content_type: str) -> bool:
        return any(html_type in content_type for html_type in HTML_CONTENT_TYPES)

    def _decode(self, body: bytes, charset: Optional[str]) -> str:
        encoding = charset or 'utf-8'
        try:
            return body.decode(encoding)
        except (UnicodeDecodeError, LookupError):
            return body.decode('utf-8', errors='ignore')

    def get_stats(self) -> Dict[str, int]:
        """Get fetcher statistics."""
        return self.stats.copy()
