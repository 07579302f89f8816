"""
URL frontier for a single crawl run.
Implements URL normalization, input parsing, shuffling and the shared politeness limiter.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional
from urllib.parse import urlparse, urlunparse


@dataclass
class CrawlCandidate:
    """A URL waiting to be fetched. Only seeds are crawled, so depth is always 0."""
    url: str
    depth: int = 0


def normalize_url(url: str) -> str:
    """Lower-case scheme and host, drop the fragment and default an empty path to '/'."""
    parsed = urlparse(url.strip())
    return urlunparse((
        parsed.scheme.lower(),
        parsed.netloc.lower(),
        parsed.path or '/',
        parsed.params,
        parsed.query,
        ''  # Remove fragment
    ))


def is_crawlable(url: str) -> bool:
    """Check that a URL is absolute http(s)."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ('http', 'https') and bool(parsed.netloc)


def parse_url_list(lines: Iterable[str]) -> List[str]:
    """Parse a newline-delimited URL list, skipping blank lines and '#' comments."""
    urls = []
    for line in lines:
        line = line.strip()
        if not line or line.startswith('#'):
            continue
        urls.append(line)
    return urls


def load_url_list(path: str) -> List[str]:
    """Read a URL list file."""
    with open(Path(path), 'r', encoding='utf-8') as f:
        return parse_url_list(f)


class URLFrontier:
    """
    Holds the candidates of one crawl run in a shuffled work queue.
    Workers drain it concurrently; nothing is added once the run starts.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self.logger = logging.getLogger(__name__)
        self.rng = rng or random.Random()
        self.queue: asyncio.Queue = asyncio.Queue()
        self.rejected: List[str] = []

    def add_urls(self, urls: Iterable[str]) -> List[str]:
        """
        Normalize, deduplicate and shuffle ``urls`` into the queue.

        Shuffling keeps input that is sorted by domain from producing bursts
        of consecutive requests to one host.

        Returns:
            The normalized URLs in dispatch order
        """
        seen = set()
        accepted = []
        for url in urls:
            try:
                normalized = normalize_url(url)
            except ValueError:
                normalized = None
            if normalized is None or not is_crawlable(normalized):
                self.logger.warning(f"Skipping invalid URL: {url}")
                self.rejected.append(url)
                continue
            if normalized in seen:
                continue
            seen.add(normalized)
            accepted.append(normalized)

        self.rng.shuffle(accepted)
        for url in accepted:
            self.queue.put_nowait(CrawlCandidate(url=url))

        self.logger.info(f"Added {len(accepted)} URLs to frontier")
        return accepted

    def get_next(self) -> Optional[CrawlCandidate]:
        """Next candidate, or None once the frontier is drained."""
        try:
            return self.queue.get_nowait()
        except asyncio.QueueEmpty:
            return None

    def mark_done(self):
        self.queue.task_done()

    def is_empty(self) -> bool:
        return self.queue.empty()

    def __len__(self) -> int:
        return self.queue.qsize()


class PolitenessLimiter:
    """
    Bounds in-flight requests to ``slots`` and holds each slot for ``delay``
    seconds after its request finishes.

    One limiter is shared by every worker and every host, so with
    ``slots == parallelism`` each worker's requests are spaced by ``delay``
    while the workers themselves still overlap.
    """

    def __init__(self, delay: float, slots: int = 1):
        self.delay = delay
        self.slots = slots
        self._semaphore = asyncio.Semaphore(slots) if delay > 0 else None

    async def __aenter__(self):
        if self._semaphore is not None:
            await self._semaphore.acquire()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._semaphore is None:
            return
        # The caller moves on; the slot stays taken until the delay has passed
        asyncio.get_running_loop().call_later(self.delay, self._semaphore.release)
