#!/usr/bin/env python3
"""
Main entry point for the link graph crawler.
"""

import asyncio
import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

from linkgraph import __version__
from linkgraph.utils.config import load_config, Config
from linkgraph.utils.logger import setup_logging
from linkgraph.utils.monitoring import initialize_monitoring
from linkgraph.crawler.canonical import canonicalize
from linkgraph.crawler.scheduler import CrawlerScheduler
from linkgraph.storage.page_store import PageStore
from linkgraph.storage.store_client import StoreClient


class CrawlerApp:
    """Main application class for the crawler."""

    def __init__(self):
        self.scheduler: Optional[CrawlerScheduler] = None
        self.logger = logging.getLogger(__name__)

    def setup_signal_handlers(self):
        """Stop the crawl after the current round on SIGINT/SIGTERM."""
        loop = asyncio.get_running_loop()

        def signal_handler(signum):
            self.logger.info(f"Received signal {signum}, finishing current round...")
            if self.scheduler:
                loop.create_task(self.scheduler.stop_crawling())

        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(signum, signal_handler, signum)

    async def run(self, config_path: str, max_rounds: Optional[int] = None,
                  dry_run: bool = False) -> int:
        """Run the crawler."""
        config = load_config(config_path)
        setup_logging(config.logging)

        self.logger.info("=== LINK GRAPH CRAWLER STARTING ===")
        self.logger.info(f"Configuration loaded from: {config_path}")
        self.logger.info(f"Seed URL: {config.crawler.seed_url}")
        self.logger.info(f"Scope root: {config.crawler.scope_root or 'unrestricted'}")
        self.logger.info(f"Parallelism: {config.crawler.parallelism}")
        self.logger.info(f"Store endpoint: {config.store.endpoint}")
        self.logger.info(f"HTTP error policy: {config.crawler.http_error_policy}")

        if dry_run:
            self.logger.info("DRY RUN MODE: No actual crawling will be performed")
            return await self._dry_run(config)

        monitor = initialize_monitoring(config.monitoring.metrics_enabled,
                                        config.monitoring.prometheus_port)

        try:
            self.scheduler = CrawlerScheduler(config, monitor=monitor)
            await self.scheduler.initialize()
            self.setup_signal_handlers()
            await self.scheduler.start_crawling(max_rounds)

        except Exception as e:
            self.logger.error(f"Fatal error: {e}", exc_info=True)
            return 1

        finally:
            if self.scheduler:
                await self.scheduler.close()
            self.logger.info("=== LINK GRAPH CRAWLER FINISHED ===")

        return 0

    async def _dry_run(self, config: Config) -> int:
        """Provision the schema and probe the store without crawling."""
        client = StoreClient(config.store.endpoint, config.store.request_timeout)
        await client.start()
        try:
            page_store = PageStore(
                client,
                config.store.main_table,
                config.store.queue_table,
                store_full_document=config.crawler.store_full_document
            )
            await page_store.provision()
            self.logger.info("✓ Store schema provisioned")

            seed_key = canonicalize(config.crawler.seed_url, config.crawler.store_sub_pages)
            known = await page_store.page_exists(seed_key)
            self.logger.info(f"✓ Store reachable, seed page {'known' if known else 'not yet crawled'}")
        except Exception as e:
            self.logger.error(f"✗ Store check failed: {e}")
            return 1
        finally:
            await client.close()

        self.logger.info("Dry run completed")
        return 0


def positive_int(value: str) -> int:
    """argparse type for counts that must be at least 1."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: {value!r}")
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Link Graph Crawler",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py                           # Run with default config.yaml
  python main.py --config my_config.yaml  # Run with custom config
  python main.py --max-rounds 50          # Stop after 50 rounds
  python main.py --dry-run                # Provision and probe the store only
        """
    )

    parser.add_argument(
        '--config',
        default='config.yaml',
        help='Path to configuration file (default: config.yaml)'
    )

    parser.add_argument(
        '--max-rounds',
        type=positive_int,
        help='Override the configured maximum number of crawl rounds'
    )

    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Provision the store schema and exit without crawling'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'Link Graph Crawler {__version__}'
    )

    return parser


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    args = build_arg_parser().parse_args(argv)

    if not Path(args.config).exists():
        print(f"Error: Configuration file '{args.config}' not found.")
        print("Please create a config.yaml file or specify a different path with --config")
        return 1

    app = CrawlerApp()
    try:
        return asyncio.run(app.run(
            config_path=args.config,
            max_rounds=args.max_rounds,
            dry_run=args.dry_run
        ))
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 1
    except ValueError as e:
        print(f"Configuration error: {e}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
