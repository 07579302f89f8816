"""
Prometheus metrics for crawl runs and search requests.
"""

import logging
from typing import Optional

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
    start_http_server,
)


class CrawlMetrics:
    """Collects indexer and search metrics in a private registry."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.logger = logging.getLogger(__name__)
        self.registry = registry or CollectorRegistry()

        self.requests_total = Counter(
            'pagesearch_requests_total',
            'Total number of HTTP requests issued by the crawler',
            registry=self.registry
        )
        self.outcomes_total = Counter(
            'pagesearch_crawl_outcomes_total',
            'Crawl outcomes per URL',
            ['outcome'],
            registry=self.registry
        )
        self.pages_indexed_total = Counter(
            'pagesearch_pages_indexed_total',
            'Total number of pages written to the index',
            registry=self.registry
        )
        self.extraction_errors_total = Counter(
            'pagesearch_extraction_errors_total',
            'Extraction failures by media type',
            ['media_type'],
            registry=self.registry
        )
        self.fetch_seconds = Histogram(
            'pagesearch_fetch_seconds',
            'Time spent fetching a URL including redirects',
            registry=self.registry
        )
        self.search_requests_total = Counter(
            'pagesearch_search_requests_total',
            'Search requests by HTTP status',
            ['status'],
            registry=self.registry
        )

    def record_request(self, count: int = 1):
        self.requests_total.inc(count)

    def record_outcome(self, outcome: str):
        self.outcomes_total.labels(outcome=outcome).inc()

    def record_page_indexed(self):
        self.pages_indexed_total.inc()

    def record_extraction_error(self, media_type: str):
        self.extraction_errors_total.labels(media_type=media_type or 'unknown').inc()

    def observe_fetch(self, seconds: float):
        self.fetch_seconds.observe(seconds)

    def record_search(self, status: int):
        self.search_requests_total.labels(status=str(status)).inc()

    def value(self, name: str, **labels) -> float:
        """Current value of a sample, 0.0 if it was never recorded."""
        return self.registry.get_sample_value(name, labels or None) or 0.0

    def export(self) -> bytes:
        """Render metrics in the Prometheus text exposition format."""
        return generate_latest(self.registry)

    def start_server(self, port: int):
        """Start a Prometheus HTTP exporter for this registry."""
        try:
            start_http_server(port, registry=self.registry)
            self.logger.info(f"Prometheus metrics server started on port {port}")
        except OSError as e:
            self.logger.error(f"Failed to start Prometheus server: {e}")
