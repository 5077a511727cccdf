"""
Crawler scheduler that drains the frontier in bounded concurrent rounds.
"""

import asyncio
import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional
from urllib.parse import urljoin

from .blacklist import Blacklist
from .canonical import MalformedURL, canonicalize
from .fetcher import FetchOutcome, WebFetcher
from .link_filter import LinkFilter
from .parser import ContentParser
from .url_frontier import QueueEntry, URLFrontier
from ..storage.page_store import PageRecord, PageStore
from ..storage.store_client import StoreClient
from ..utils.config import Config
from ..utils.logger import get_crawler_logger
from ..utils.monitoring import CrawlerMonitor


class CrawlOutcome(Enum):
    """Terminal state of one crawl attempt."""
    CRAWLED = 'crawled'
    BLACKLISTED = 'blacklisted'
    MALFORMED = 'malformed'
    ALREADY_KNOWN = 'already_known'
    DISALLOWED = 'disallowed'
    NON_HTML = 'non_html'
    HTTP_ERROR = 'http_error'
    TIMED_OUT = 'timed_out'
    TRANSPORT_ERROR = 'transport_error'
    FAILED = 'failed'


@dataclass
class CrawlStats:
    """Statistics for crawl operations."""
    start_time: float
    rounds: int = 0
    reseeds: int = 0
    failed_rounds: int = 0
    pages_written: int = 0
    backlinks_written: int = 0
    urls_enqueued: int = 0
    outcomes: Counter = field(default_factory=Counter)

    @property
    def attempts(self) -> int:
        return sum(self.outcomes.values())

    @property
    def elapsed_time(self) -> float:
        return time.time() - self.start_time

    @property
    def pages_per_minute(self) -> float:
        elapsed_minutes = self.elapsed_time / 60
        return self.pages_written / elapsed_minutes if elapsed_minutes > 0 else 0


class CrawlerScheduler:
    """
    Drives the crawl: each round pops up to ``parallelism`` queue entries,
    crawls them concurrently and waits for all of them before the next round.
    An empty frontier triggers a forced crawl of the seed URL instead.

    Every popped entry is removed from the queue exactly once after its
    single attempt, whatever the outcome. Nothing is retried.
    """

    def __init__(self, config: Config,
                 store_client: Optional[StoreClient] = None,
                 frontier: Optional[URLFrontier] = None,
                 page_store: Optional[PageStore] = None,
                 fetcher: Optional[WebFetcher] = None,
                 blacklist: Optional[Blacklist] = None,
                 monitor: Optional[CrawlerMonitor] = None):
        self.config = config
        self.logger = get_crawler_logger(__name__)

        self.store_client = store_client
        self.frontier = frontier
        self.page_store = page_store
        self.fetcher = fetcher
        self.blacklist = blacklist
        self.monitor = monitor

        crawler = config.crawler
        self.parallelism = crawler.parallelism
        self.seed_url = crawler.seed_url
        self.parser = ContentParser()
        self.link_filter = LinkFilter(crawler.scope_root, crawler.store_sub_pages)

        self.stats = CrawlStats(start_time=time.time())
        self.is_running = False

    async def initialize(self):
        """
        Build missing components and provision the store schema.

        A provisioning failure propagates: the crawler cannot run without
        its tables.
        """
        crawler = self.config.crawler
        store = self.config.store

        if self.store_client is None and (self.frontier is None or self.page_store is None):
            self.store_client = StoreClient(store.endpoint, store.request_timeout)
            await self.store_client.start()

        if self.page_store is None:
            self.page_store = PageStore(
                self.store_client,
                store.main_table,
                store.queue_table,
                write_batch_size=store.write_batch_size,
                store_full_document=crawler.store_full_document
            )

        if self.frontier is None:
            self.frontier = URLFrontier(self.store_client, store.queue_table)

        if self.fetcher is None:
            self.fetcher = WebFetcher(
                user_agent=crawler.user_agent,
                request_timeout=crawler.request_timeout,
                max_concurrent_requests=crawler.parallelism,
                respect_robots_txt=crawler.respect_robots_txt
            )
            await self.fetcher.start()

        if self.blacklist is None:
            self.blacklist = Blacklist.load(crawler.blacklist_file)

        await self.page_store.provision()
        self.logger.info("Crawler scheduler initialized successfully")

    async def start_crawling(self, max_rounds: Optional[int] = None):
        """Run up to ``max_rounds`` rounds, or until stopped."""
        if self.is_running:
            self.logger.warning("Crawler is already running")
            return

        rounds = self.config.crawler.max_rounds if max_rounds is None else max_rounds
        if rounds < 1:
            raise ValueError(f"max_rounds must be at least 1, got {rounds}")

        self.is_running = True
        self.stats = CrawlStats(start_time=time.time())
        self.logger.info(f"Starting crawl: {rounds} rounds, parallelism {self.parallelism}")

        try:
            for round_no in range(1, rounds + 1):
                if not self.is_running:
                    self.logger.info(f"Crawl stopped before round {round_no}")
                    break
                await self.run_round(round_no)
            else:
                self.logger.info(f"Reached max rounds: {rounds}")
        finally:
            self.is_running = False
            self._log_final_stats()

    async def run_round(self, round_no: int) -> int:
        """
        Run one round. Returns the number of queue entries crawled.

        Any failure while draining the frontier is logged and the round is
        abandoned; it never ends the crawl.
        """
        self.stats.rounds += 1
        try:
            batch = await self.frontier.pop_batch(self.parallelism)

            if not batch:
                self.stats.reseeds += 1
                self._monitor('record_round', 'reseed')
                self.logger.info(f"Round {round_no}: frontier empty, reseeding from {self.seed_url}")
                await self._attempt(self.seed_url, forced=True)
                return 0

            self._monitor('record_round', 'batch')
            self.logger.info(f"Round {round_no}: crawling {len(batch)} entries")
            await asyncio.gather(*(self.process_entry(entry) for entry in batch))
            return len(batch)

        except Exception as e:
            self.stats.failed_rounds += 1
            self.logger.error(f"Round {round_no} failed: {e}", exc_info=True)
            return 0

    async def process_entry(self, entry: QueueEntry) -> CrawlOutcome:
        """Crawl one queue entry, then remove it from the queue."""
        try:
            return await self._attempt(entry.url)
        finally:
            await self.frontier.remove_entry(entry.id)

    async def _attempt(self, url: str, forced: bool = False) -> CrawlOutcome:
        try:
            outcome = await self.crawl_url(url, forced=forced)
        except Exception as e:
            self.logger.log_url_event(logging.ERROR, url, 'attempt_failed',
                                      f"Crawl attempt failed for {url}: {e}", exc_info=True)
            outcome = CrawlOutcome.FAILED

        self.stats.outcomes[outcome.value] += 1
        self._monitor('record_outcome', outcome.value)
        return outcome

    async def crawl_url(self, url: str, forced: bool = False) -> CrawlOutcome:
        """
        Crawl a single URL and return its terminal outcome.

        ``forced`` skips the already-known check. Store failures raise.
        """
        if url in self.blacklist:
            self.logger.log_url_event(logging.DEBUG, url, 'blacklist_skip', f"Skipping blacklisted {url}")
            return CrawlOutcome.BLACKLISTED

        try:
            key = canonicalize(url, self.config.crawler.store_sub_pages)
        except MalformedURL as e:
            self.logger.log_url_event(logging.WARNING, url, 'malformed', f"Skipping malformed URL: {e}")
            return CrawlOutcome.MALFORMED

        if not forced and await self.page_store.page_exists(key):
            self.logger.log_url_event(logging.INFO, url, 'dedup_skip', f"Already known: {key}")
            return CrawlOutcome.ALREADY_KNOWN

        self.logger.log_url_event(logging.INFO, url, 'crawl_start',
                                  f"Crawling {url}{' (forced)' if forced else ''}")
        result = await self.fetcher.fetch(url)
        self.logger.log_url_event(
            logging.INFO, url, 'fetch',
            f"Fetched {url}: {result.outcome.value} status={result.status_code} in {result.fetch_time:.2f}s"
        )

        if result.outcome is FetchOutcome.TIMEOUT:
            await self._blacklist(url, 'timeout')
            return CrawlOutcome.TIMED_OUT

        if result.outcome is FetchOutcome.TRANSPORT_ERROR:
            await self._blacklist(url, result.error or 'transport error')
            return CrawlOutcome.TRANSPORT_ERROR

        if result.outcome is FetchOutcome.DISALLOWED:
            return CrawlOutcome.DISALLOWED

        if result.outcome is FetchOutcome.NON_HTML:
            return CrawlOutcome.NON_HTML

        if result.outcome is FetchOutcome.HTTP_ERROR:
            if self._blacklists_status(result.status_code):
                await self._blacklist(url, f"HTTP {result.status_code}")
            return CrawlOutcome.HTTP_ERROR

        document = self.parser.parse(result.content)
        links = self.link_filter.filter(self._link_base(result.base_url, document.base_href),
                                        document.anchors)

        record = PageRecord(
            key=key,
            language=document.language,
            title=document.title,
            document=result.content if self.config.crawler.store_full_document else None
        )
        backlinks = await self.page_store.write_page(record, links)
        enqueued = await self.page_store.enqueue(
            link.href for link in links if link.href not in self.blacklist
        )

        self.stats.pages_written += 1
        self.stats.backlinks_written += backlinks
        self.stats.urls_enqueued += enqueued
        self._monitor('record_page_written', backlinks)
        self._monitor('record_enqueued', enqueued)

        self.logger.log_url_event(
            logging.INFO, url, 'written',
            f"Stored {key} '{document.title}': {backlinks} backlinks written, {enqueued} URLs enqueued"
        )
        return CrawlOutcome.CRAWLED

    def _link_base(self, served_url: str, base_href: str) -> str:
        """Relative links resolve against ``<base href>``, else the post-redirect URL."""
        if not base_href:
            return served_url
        try:
            return urljoin(served_url, base_href)
        except ValueError:
            self.logger.debug(f"Ignoring unusable <base href> {base_href!r} on {served_url}")
            return served_url

    def _blacklists_status(self, status_code: int) -> bool:
        if self.config.crawler.http_error_policy == 'all':
            return True
        return status_code != 404

    async def _blacklist(self, url: str, reason: str):
        if await self.blacklist.add(url):
            self._monitor('record_blacklisted')
            self.logger.log_url_event(logging.WARNING, url, 'blacklisted', f"Blacklisted {url}: {reason}")

    def _monitor(self, method: str, *args):
        if self.monitor is not None:
            getattr(self.monitor, method)(*args)

    def _log_final_stats(self):
        """Log final crawl statistics."""
        self.logger.info("=== CRAWL COMPLETED ===")
        self.logger.info(f"Rounds: {self.stats.rounds} ({self.stats.reseeds} reseeds, "
                         f"{self.stats.failed_rounds} failed)")
        self.logger.info(f"Attempts: {self.stats.attempts} {dict(self.stats.outcomes)}")
        self.logger.info(f"Pages written: {self.stats.pages_written}")
        self.logger.info(f"Backlinks written: {self.stats.backlinks_written}")
        self.logger.info(f"URLs enqueued: {self.stats.urls_enqueued}")
        self.logger.info(f"Blacklist size: {len(self.blacklist) if self.blacklist is not None else 0}")
        self.logger.info(f"Total time: {self.stats.elapsed_time:.2f} seconds")
        self.logger.info(f"Average rate: {self.stats.pages_per_minute:.1f} pages/min")
        if self.fetcher is not None and hasattr(self.fetcher, 'get_stats'):
            self.logger.info(f"Fetcher stats: {self.fetcher.get_stats()}")

    async def stop_crawling(self):
        """Stop after the current round."""
        self.logger.info("Stopping crawler...")
        self.is_running = False

    async def close(self):
        """Close all connections and cleanup resources."""
        if self.fetcher:
            await self.fetcher.close()

        if self.store_client:
            await self.store_client.close()

        self.logger.info("Crawler scheduler closed")

    def get_stats(self) -> Dict:
        """Get current crawl statistics."""
        return {
            'rounds': self.stats.rounds,
            'reseeds': self.stats.reseeds,
            'failed_rounds': self.stats.failed_rounds,
            'attempts': self.stats.attempts,
            'outcomes': dict(self.stats.outcomes),
            'pages_written': self.stats.pages_written,
            'backlinks_written': self.stats.backlinks_written,
            'urls_enqueued': self.stats.urls_enqueued,
            'elapsed_time': self.stats.elapsed_time,
            'is_running': self.is_running
        }
