"""
Monitoring and metrics collection for the link graph crawler.
"""

import time
import logging
from typing import Dict, Optional, Any

from prometheus_client import Counter, CollectorRegistry, start_http_server


class MetricsCollector:
    """Owns the Prometheus registry and the crawler's counters."""

    def __init__(self, enable_prometheus: bool = False, prometheus_port: int = 8000):
        self.logger = logging.getLogger(__name__)
        self.enable_prometheus = enable_prometheus
        self.prometheus_port = prometheus_port

        self.registry = CollectorRegistry()
        self.counters = {
            'attempts_total': Counter(
                'crawler_attempts_total',
                'Crawl attempts by terminal outcome',
                ['outcome'],
                registry=self.registry
            ),
            'pages_written_total': Counter(
                'crawler_pages_written_total',
                'Page records written to the store',
                registry=self.registry
            ),
            'backlinks_written_total': Counter(
                'crawler_backlinks_written_total',
                'Backlink cells written to the store',
                registry=self.registry
            ),
            'urls_enqueued_total': Counter(
                'crawler_urls_enqueued_total',
                'URLs added to the frontier',
                registry=self.registry
            ),
            'blacklisted_total': Counter(
                'crawler_blacklisted_total',
                'URLs added to the blacklist',
                registry=self.registry
            ),
            'rounds_total': Counter(
                'crawler_rounds_total',
                'Crawl rounds run',
                ['kind'],
                registry=self.registry
            ),
        }

    def start_prometheus_server(self):
        """Start Prometheus metrics HTTP server."""
        if not self.enable_prometheus:
            return

        try:
            start_http_server(self.prometheus_port, registry=self.registry)
            self.logger.info(f"Prometheus metrics server started on port {self.prometheus_port}")
        except OSError as e:
            self.logger.error(f"Failed to start Prometheus server: {e}")

    def increment(self, name: str, amount: float = 1, labels: Optional[Dict[str, str]] = None):
        """Increment a counter, optionally with labels."""
        counter = self.counters[name]
        if labels:
            counter.labels(**labels).inc(amount)
        else:
            counter.inc(amount)

    def value(self, name: str, labels: Optional[Dict[str, str]] = None) -> float:
        """Read the current value of a counter."""
        sample = self.registry.get_sample_value(f"crawler_{name}", labels or {})
        return sample or 0.0


class CrawlerMonitor:
    """High-level monitoring interface for the crawler."""

    def __init__(self, metrics_collector: MetricsCollector):
        self.metrics = metrics_collector
        self.start_time = time.time()

    def record_outcome(self, outcome: str):
        self.metrics.increment('attempts_total', labels={'outcome': outcome})

    def record_page_written(self, backlink_cells: int):
        self.metrics.increment('pages_written_total')
        self.metrics.increment('backlinks_written_total', backlink_cells)

    def record_enqueued(self, count: int):
        self.metrics.increment('urls_enqueued_total', count)

    def record_blacklisted(self):
        self.metrics.increment('blacklisted_total')

    def record_round(self, kind: str):
        self.metrics.increment('rounds_total', labels={'kind': kind})

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of all metrics."""
        runtime = time.time() - self.start_time
        pages = self.metrics.value('pages_written_total')

        return {
            'runtime_seconds': runtime,
            'pages_written': pages,
            'backlinks_written': self.metrics.value('backlinks_written_total'),
            'urls_enqueued': self.metrics.value('urls_enqueued_total'),
            'blacklisted': self.metrics.value('blacklisted_total'),
            'pages_per_minute': pages / (runtime / 60) if runtime > 0 else 0,
        }


def initialize_monitoring(enable_prometheus: bool = False, prometheus_port: int = 8000) -> CrawlerMonitor:
    """Create a monitor and start its metrics server when enabled."""
    metrics_collector = MetricsCollector(enable_prometheus, prometheus_port)
    metrics_collector.start_prometheus_server()
    return CrawlerMonitor(metrics_collector)
