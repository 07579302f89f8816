"""
Crawler scheduler that runs one index batch: recrawl gating, bounded
concurrent fetching, extraction and index writes.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, Iterable, Optional

from .url_frontier import URLFrontier, CrawlCandidate, PolitenessLimiter
from .fetcher import WebFetcher, FetchResult
from .extractor import (
    ContentExtractor,
    ExtractionError,
    SubprocessConverter,
    UnsupportedMediaTypeError,
)
from ..storage.database import DatabaseError, IndexStore
from ..utils.config import Config
from ..utils.logger import get_crawler_logger
from ..utils.monitoring import CrawlMetrics


class OutcomeStatus(Enum):
    """Result of processing one URL."""
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class CrawlOutcome:
    """Outcome of one URL in a crawl run."""
    url: str
    status: OutcomeStatus
    reason: Optional[str] = None
    final_url: Optional[str] = None
    status_code: Optional[int] = None


@dataclass
class CrawlStats:
    """Statistics for a crawl run."""
    start_time: float
    urls_crawled: int = 0
    pages_indexed: int = 0
    skipped: int = 0
    errors: int = 0
    total_bytes_downloaded: int = 0

    @property
    def elapsed_time(self) -> float:
        return time.time() - self.start_time

    @property
    def pages_per_minute(self) -> float:
        elapsed_minutes = self.elapsed_time / 60
        return self.urls_crawled / elapsed_minutes if elapsed_minutes > 0 else 0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CrawlerScheduler:
    """
    Coordinates the crawl of a fixed URL set.

    Every URL runs through the same pipeline inside a worker:
    recrawl gate -> robots check -> fetch -> extract -> persist.
    Failures are contained per URL and reported as outcomes.
    """

    def __init__(self, config: Config, store: IndexStore,
                 fetcher: Optional[WebFetcher] = None,
                 extractor: Optional[ContentExtractor] = None,
                 metrics: Optional[CrawlMetrics] = None,
                 clock=_utcnow):
        self.config = config
        self.store = store
        self.fetcher = fetcher
        self.extractor = extractor
        self.metrics = metrics or CrawlMetrics()
        self.clock = clock
        self.logger = get_crawler_logger(__name__, component='scheduler')

        self.parallelism = config.crawler.parallelism
        self.recrawl_interval = timedelta(seconds=config.crawler.recrawl_interval)

        self.stats = CrawlStats(start_time=time.time())
        self.outcomes: Dict[str, CrawlOutcome] = {}
        self._owns_fetcher = False
        self._initialized = False

    async def initialize(self):
        """Create the components that were not injected."""
        if self.fetcher is None:
            crawler = self.config.crawler
            self.fetcher = WebFetcher(
                user_agent=crawler.user_agent,
                request_timeout=crawler.request_timeout,
                max_redirects=crawler.max_redirects,
                max_content_size=crawler.max_content_size,
                respect_robots_txt=crawler.respect_robots_txt,
                limiter=PolitenessLimiter(crawler.politeness_delay, slots=crawler.parallelism),
                max_connections=max(crawler.parallelism * 2, 2)
            )
            self._owns_fetcher = True
        await self.fetcher.start()

        if self.extractor is None:
            converters = self.config.converters
            self.extractor = ContentExtractor(
                html_converter=SubprocessConverter(converters.html_command, converters.timeout),
                pdf_converter=SubprocessConverter(converters.pdf_command, converters.timeout)
            )

        self._initialized = True
        self.logger.info("Crawler scheduler initialized")

    async def run(self, urls: Iterable[str]) -> Dict[str, CrawlOutcome]:
        """
        Crawl ``urls`` and return an outcome per normalized URL.

        The batch always runs to completion; no single URL's failure aborts it.
        """
        if not self._initialized:
            await self.initialize()

        self.stats = CrawlStats(start_time=time.time())
        self.outcomes = {}

        frontier = URLFrontier()
        frontier.add_urls(urls)
        for url in frontier.rejected:
            self._record(CrawlOutcome(url=url, status=OutcomeStatus.FAILED, reason="invalid URL"))

        num_workers = max(1, min(self.parallelism, len(frontier)))
        workers = [
            asyncio.create_task(self._worker(f"worker-{i}", frontier))
            for i in range(num_workers)
        ]
        self.logger.info(f"Started crawling {len(frontier)} URLs with {num_workers} workers")

        await asyncio.gather(*workers)
        self._log_final_stats()
        return self.outcomes

    async def _worker(self, worker_id: str, frontier: URLFrontier):
        """Worker coroutine that drains the frontier."""
        self.logger.debug(f"Worker {worker_id} started")

        while True:
            candidate = frontier.get_next()
            if candidate is None:
                break
            try:
                outcome = await self._process_candidate(candidate)
            except Exception as e:
                self.logger.log_url_event(logging.ERROR, candidate.url, "Unexpected error",
                                          error=str(e), exc_info=True)
                outcome = CrawlOutcome(url=candidate.url, status=OutcomeStatus.FAILED,
                                       reason=f"unexpected error: {e}")
            finally:
                frontier.mark_done()
            self._record(outcome)

        self.logger.debug(f"Worker {worker_id} finished")

    async def _process_candidate(self, candidate: CrawlCandidate) -> CrawlOutcome:
        """Run one URL through the pipeline."""
        url = candidate.url

        try:
            last_seen = await self.store.last_visit(url)
        except DatabaseError as e:
            self.logger.log_url_event(logging.ERROR, url, "Url log lookup failed", error=str(e))
            return CrawlOutcome(url=url, status=OutcomeStatus.FAILED, reason=f"storage error: {e}")

        if last_seen is not None and self.clock() - last_seen < self.recrawl_interval:
            self.logger.log_url_event(logging.DEBUG, url, "Recently crawled, skipping",
                                      last_seen=last_seen.isoformat())
            return CrawlOutcome(url=url, status=OutcomeStatus.SKIPPED, reason="recently crawled")

        if not await self.fetcher.is_allowed(url):
            self.logger.log_url_event(logging.WARNING, url, "Blocked by robots.txt")
            return CrawlOutcome(url=url, status=OutcomeStatus.FAILED, reason="blocked by robots.txt")

        self.logger.log_url_event(logging.INFO, url, "Visiting")
        await self._log_visit(url)

        result = await self.fetcher.fetch(url)
        self.stats.urls_crawled += 1
        self.metrics.record_request(result.requests_made)
        self.metrics.observe_fetch(result.fetch_time)

        # Redirect targets are logged so later runs do not request them again
        for hop in result.redirects:
            await self._log_visit(hop)

        if result.error:
            self.logger.log_url_event(logging.WARNING, url, "Fetch failed", error=result.error)
            return self._failed(result, result.error)

        if result.status_code != 200:
            self.logger.log_url_event(logging.WARNING, url, "Unexpected HTTP status",
                                      status_code=result.status_code, final_url=result.final_url)
            return self._failed(result, f"http status {result.status_code}")

        self.stats.total_bytes_downloaded += len(result.content)
        return await self._index_response(url, result)

    async def _index_response(self, url: str, result: FetchResult) -> CrawlOutcome:
        """Extract a 200 response and write it to the index."""
        final_url = result.final_url or url

        try:
            extracted = await self.extractor.extract(
                final_url, result.content_type, result.content, result.encoding
            )
        except UnsupportedMediaTypeError as e:
            self.logger.log_url_event(logging.WARNING, final_url, "Unknown media type",
                                      content_type=result.content_type)
            return CrawlOutcome(url=url, status=OutcomeStatus.SKIPPED, reason=str(e),
                                final_url=final_url, status_code=result.status_code)
        except ExtractionError as e:
            self.metrics.record_extraction_error(result.content_type)
            self.logger.log_url_event(logging.ERROR, final_url, "Extraction failed", error=str(e))
            return self._failed(result, f"extraction error: {e}")

        crawled_at = self.clock()
        try:
            await self.store.log_visit(final_url, crawled_at)
        except DatabaseError as e:
            # The page can still be indexed; the log entry from the request stands
            self.logger.log_url_event(logging.ERROR, final_url, "Url log write failed", error=str(e))

        try:
            await self.store.upsert_page(final_url, extracted.title, extracted.body, crawled_at)
        except DatabaseError as e:
            self.logger.log_url_event(logging.ERROR, final_url, "Index write failed", error=str(e))
            return self._failed(result, f"storage error: {e}")

        self.metrics.record_page_indexed()
        self.stats.pages_indexed += 1
        self.logger.log_url_event(logging.INFO, final_url, "Indexed", title=extracted.title)
        return CrawlOutcome(url=url, status=OutcomeStatus.SUCCESS,
                            final_url=final_url, status_code=result.status_code)

    async def _log_visit(self, url: str):
        """Record a request in the url log; failures are logged and tolerated."""
        try:
            await self.store.log_visit(url, self.clock())
        except DatabaseError as e:
            self.logger.log_url_event(logging.ERROR, url, "Url log write failed", error=str(e))

    def _failed(self, result: FetchResult, reason: str) -> CrawlOutcome:
        return CrawlOutcome(url=result.url, status=OutcomeStatus.FAILED, reason=reason,
                            final_url=result.final_url, status_code=result.status_code or None)

    def _record(self, outcome: CrawlOutcome):
        self.outcomes[outcome.url] = outcome
        self.metrics.record_outcome(outcome.status.value)
        if outcome.status is OutcomeStatus.SKIPPED:
            self.stats.skipped += 1
        elif outcome.status is OutcomeStatus.FAILED:
            self.stats.errors += 1

    def _log_final_stats(self):
        """Log final crawl statistics."""
        self.logger.info("=== CRAWL COMPLETED ===")
        self.logger.log_crawler_stat('urls_crawled', self.stats.urls_crawled)
        self.logger.log_crawler_stat('pages_indexed', self.stats.pages_indexed)
        self.logger.log_crawler_stat('skipped', self.stats.skipped)
        self.logger.log_crawler_stat('errors', self.stats.errors)
        self.logger.info(f"Total time: {self.stats.elapsed_time:.2f} seconds")
        self.logger.info(f"Average rate: {self.stats.pages_per_minute:.1f} pages/min")
        self.logger.info(f"Data downloaded: {self.stats.total_bytes_downloaded / 1024 / 1024:.1f} MB")
        if self.fetcher:
            self.logger.info(f"Fetcher stats: {self.fetcher.get_stats()}")

    async def close(self):
        """Close the components this scheduler created."""
        if self.fetcher and self._owns_fetcher:
            await self.fetcher.close()
        self.logger.info("Crawler scheduler closed")

    def get_stats(self) -> Dict:
        """Get current crawl statistics."""
        return {
            'urls_crawled': self.stats.urls_crawled,
            'pages_indexed': self.stats.pages_indexed,
            'skipped': self.stats.skipped,
            'errors': self.stats.errors,
            'elapsed_time': self.stats.elapsed_time,
            'total_bytes_downloaded': self.stats.total_bytes_downloaded,
        }
