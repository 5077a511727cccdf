"""Shared fixtures and in-memory fakes for crawler tests."""

import asyncio
import json
from typing import Any, Callable, Dict, List, Optional

import pytest

from linkgraph.crawler.blacklist import Blacklist
from linkgraph.crawler.fetcher import FetchOutcome, FetchResult
from linkgraph.crawler.url_frontier import QueueEntry
from linkgraph.utils.config import ConfigManager


class FakeResponse:
    """Minimal stand-in for an aiohttp response used as a context manager."""

    def __init__(self, status: int = 200, body: Any = b'', headers: Optional[Dict[str, str]] = None,
                 charset: Optional[str] = None, delay: float = 0.0, url: Optional[str] = None):
        self.status = status
        if isinstance(body, (dict, list)):
            body = json.dumps(body)
        self.body = body.encode('utf-8') if isinstance(body, str) else body
        self.headers = headers or {}
        self.charset = charset
        self.delay = delay
        self.url = url

    async def __aenter__(self):
        if self.delay:
            await asyncio.sleep(self.delay)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False

    async def read(self) -> bytes:
        return self.body

    async def text(self) -> str:
        return self.body.decode(self.charset or 'utf-8')


class FakeSession:
    """
    Records requests and answers them through a handler.

    The handler receives ``(method, url, kwargs)`` and returns a FakeResponse
    or raises.
    """

    def __init__(self, handler: Callable[[str, str, Dict[str, Any]], FakeResponse]):
        self.handler = handler
        self.calls: List[tuple] = []
        self.closed = False

    def request(self, method: str, url: str, **kwargs):
        self.calls.append((method, url, kwargs))
        response = self.handler(method, url, kwargs)
        if response.url is None:
            response.url = url
        return response

    def get(self, url: str, **kwargs):
        return self.request('GET', url, **kwargs)

    async def close(self):
        self.closed = True


class FakeFrontier:
    """In-memory frontier handing out preset batches."""

    def __init__(self, batches: Optional[List[List[QueueEntry]]] = None):
        self.batches = list(batches or [])
        self.removed: List[str] = []
        self.pop_error: Optional[Exception] = None

    async def pop_batch(self, size: int) -> List[QueueEntry]:
        if self.pop_error is not None:
            error, self.pop_error = self.pop_error, None
            raise error
        if not self.batches:
            return []
        return self.batches.pop(0)[:size]

    async def remove_entry(self, entry_id: str) -> bool:
        self.removed.append(entry_id)
        return True


class FakePageStore:
    """In-memory page store recording writes and enqueues."""

    def __init__(self, known: Optional[set] = None):
        self.known = set(known or ())
        self.written: List[tuple] = []
        self.enqueued: List[str] = []
        self.exists_checks: List[str] = []
        self.provisioned = False
        self.write_error: Optional[Exception] = None

    async def provision(self):
        self.provisioned = True

    async def page_exists(self, key: str) -> bool:
        self.exists_checks.append(key)
        return key in self.known

    async def write_page(self, record, links) -> int:
        if self.write_error is not None:
            raise self.write_error
        links = list(links)
        self.written.append((record, links))
        self.known.add(record.key)
        return len(links)

    async def enqueue(self, urls) -> int:
        urls = list(urls)
        self.enqueued.extend(urls)
        return len(urls)


class FakeFetcher:
    """Returns preset fetch results per URL; unknown URLs time out."""

    def __init__(self, results: Optional[Dict[str, FetchResult]] = None):
        self.results = dict(results or {})
        self.fetched: List[str] = []
        self.closed = False

    async def fetch(self, url: str) -> FetchResult:
        self.fetched.append(url)
        return self.results.get(url, FetchResult(url=url, outcome=FetchOutcome.TIMEOUT))

    async def close(self):
        self.closed = True

    def get_stats(self):
        return {}


def html_result(url: str, html: str) -> FetchResult:
    return FetchResult(url=url, outcome=FetchOutcome.OK, status_code=200,
                       content_type='text/html; charset=utf-8', content=html)


def make_config(crawler: Optional[Dict[str, Any]] = None, store: Optional[Dict[str, Any]] = None):
    """Build a validated Config with test-friendly defaults."""
    data = {
        'crawler': {
            'seed_url': 'https://en.wikipedia.org/wiki/Main_Page',
            'scope_root': 'https://en.wikipedia.org',
            'parallelism': 4,
            'max_rounds': 10,
        },
        'store': {'endpoint': 'http://store.test'},
    }
    data['crawler'].update(crawler or {})
    data['store'].update(store or {})
    return ConfigManager().from_dict(data)


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def blacklist(tmp_path):
    return Blacklist.load(tmp_path / 'blacklist.txt')


@pytest.fixture
def frontier():
    return FakeFrontier()


@pytest.fixture
def page_store():
    return FakePageStore()


@pytest.fixture
def fetcher():
    return FakeFetcher()


