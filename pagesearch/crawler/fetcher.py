"""
Web page fetcher with robots.txt support, manual redirect following and rate limiting.
"""

import asyncio
import aiohttp
import logging
import time
from typing import Optional, Dict, List
from urllib.parse import urljoin, urlparse
from urllib.robotparser import RobotFileParser
from dataclasses import dataclass, field
from aiohttp import ClientSession, ClientTimeout, ClientError

from .url_frontier import PolitenessLimiter, normalize_url

REDIRECT_STATUSES = frozenset({301, 302, 303, 307, 308})


@dataclass
class FetchResult:
    """Result of a fetch operation."""
    url: str
    status_code: int
    final_url: Optional[str] = None
    content: Optional[bytes] = None
    headers: Optional[Dict[str, str]] = None
    error: Optional[str] = None
    fetch_time: float = 0.0
    content_type: Optional[str] = None
    encoding: Optional[str] = None
    redirects: List[str] = field(default_factory=list)
    requests_made: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None and self.status_code == 200


class RobotsChecker:
    """Manages robots.txt checking for domains."""

    def __init__(self, user_agent: str):
        self.user_agent = user_agent
        self.robots_cache: Dict[str, RobotFileParser] = {}
        self.robots_check_time: Dict[str, float] = {}
        self.cache_ttl = 3600  # 1 hour cache TTL
        self.logger = logging.getLogger(__name__)

    def _get_domain(self, url: str) -> str:
        """Extract scheme and host from URL."""
        parsed = urlparse(url)
        return f"{parsed.scheme}://{parsed.netloc}"

    async def can_fetch(self, url: str, session: ClientSession) -> bool:
        """Check if URL can be fetched according to robots.txt."""
        domain = self._get_domain(url)
        current_time = time.time()

        if (domain in self.robots_cache and
                current_time - self.robots_check_time[domain] < self.cache_ttl):
            return self.robots_cache[domain].can_fetch(self.user_agent, url)

        robots_url = urljoin(domain, '/robots.txt')
        rp = RobotFileParser()
        rp.set_url(robots_url)
        try:
            async with session.get(robots_url, timeout=ClientTimeout(total=10)) as response:
                if response.status == 200:
                    robots_content = await response.text(errors='replace')
                    rp.parse(robots_content.splitlines())
                elif response.status in (401, 403):
                    rp.disallow_all = True
                else:
                    # No robots.txt, allow everything
                    rp.parse([])
        except (ClientError, asyncio.TimeoutError) as e:
            self.logger.warning(f"Could not fetch robots.txt for {domain}: {e}")
            rp.parse([])

        self.robots_cache[domain] = rp
        self.robots_check_time[domain] = current_time
        return rp.can_fetch(self.user_agent, url)


class WebFetcher:
    """
    Fetches single URLs, following redirects by hand so every hop is visible
    to the caller.
    """

    def __init__(self, user_agent: str, request_timeout: float = 30,
                 max_redirects: int = 10, max_content_size: int = 10 * 1024 * 1024,
                 respect_robots_txt: bool = True,
                 limiter: Optional[PolitenessLimiter] = None,
                 max_connections: int = 10):
        self.user_agent = user_agent
        self.request_timeout = request_timeout
        self.max_redirects = max_redirects
        self.max_content_size = max_content_size
        self.respect_robots_txt = respect_robots_txt
        self.limiter = limiter or PolitenessLimiter(0)
        self.max_connections = max_connections

        self.logger = logging.getLogger(__name__)
        self.robots_checker = RobotsChecker(user_agent) if respect_robots_txt else None
        self.session: Optional[ClientSession] = None

        self.stats = {
            'total_requests': 0,
            'successful_requests': 0,
            'failed_requests': 0,
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
            timeout = ClientTimeout(total=self.request_timeout)
            headers = {'User-Agent': self.user_agent}

            self.session = aiohttp.ClientSession(
                timeout=timeout,
                headers=headers,
                connector=aiohttp.TCPConnector(
                    limit=self.max_connections,
                    ttl_dns_cache=300,
                    use_dns_cache=True
                )
            )
            self.logger.info("WebFetcher session started")

    async def close(self):
        """Close the fetcher session."""
        if self.session:
            await self.session.close()
            self.session = None
            self.logger.info("WebFetcher session closed")

    async def is_allowed(self, url: str) -> bool:
        """Check robots.txt for ``url``; always True when robots checking is off."""
        if not self.robots_checker:
            return True
        allowed = await self.robots_checker.can_fetch(url, self.session)
        if not allowed:
            self.stats['robots_blocked'] += 1
            self.logger.info(f"Robots.txt blocks access to: {url}")
        return allowed

    async def fetch(self, url: str) -> FetchResult:
        """
        Fetch a single URL, following up to ``max_redirects`` redirects.

        Args:
            url: The URL to fetch

        Returns:
            FetchResult with the final response, or error information. The
            ``redirects`` list names every redirect target requested, also
            when the fetch fails partway.
        """
        start_time = time.time()
        result = FetchResult(url=url, status_code=0)
        current = url

        try:
            while True:
                self.stats['total_requests'] += 1
                result.requests_made += 1

                async with self.limiter, self.session.get(current, allow_redirects=False) as response:
                    location = response.headers.get('Location')
                    if response.status in REDIRECT_STATUSES and location:
                        if len(result.redirects) >= self.max_redirects:
                            # Give up and keep the last response, which is never extracted
                            self.logger.warning(f"Too many redirects from {url}")
                            self._fill_result(result, response, current)
                            break
                        current = normalize_url(urljoin(current, location))
                        result.redirects.append(current)
                        self.logger.debug(f"Redirect {response.status}: -> {current}")
                        continue

                    self._fill_result(result, response, current)
                    if response.status == 200:
                        result.content = await self._read_content_safely(response)
                        if result.content is None:
                            result.error = "Content too large"
                        else:
                            self.stats['total_bytes_downloaded'] += len(result.content)
                    break

        except asyncio.TimeoutError:
            result.error = "Request timeout"
            self.logger.warning(f"Timeout fetching {current}")

        except ClientError as e:
            result.error = f"Client error: {e}"
            self.logger.warning(f"Client error fetching {current}: {e}")

        except ValueError as e:
            # Malformed redirect target
            result.error = f"Invalid URL: {e}"
            self.logger.warning(f"Invalid URL while fetching {url}: {e}")

        if result.ok:
            self.stats['successful_requests'] += 1
        else:
            self.stats['failed_requests'] += 1

        result.fetch_time = time.time() - start_time
        self.logger.debug(f"Fetched {url}: {result.status_code} "
                          f"({len(result.content) if result.content else 0} bytes)")
        return result

    def _fill_result(self, result: FetchResult, response, current: str):
        result.status_code = response.status
        result.final_url = current
        result.headers = dict(response.headers)
        result.content_type = response.content_type
        result.encoding = response.charset

    async def _read_content_safely(self, response) -> Optional[bytes]:
        """
        Read the response body, enforcing the size limit.

        Returns:
            Body bytes, or None if the body exceeds ``max_content_size``
        """
        content_length = response.headers.get('Content-Length')
        if content_length and content_length.isdigit() and int(content_length) > self.max_content_size:
            self.logger.warning(f"Content too large ({content_length} bytes): {response.url}")
            return None

        chunks = []
        size = 0
        async for chunk in response.content.iter_chunked(8192):
            size += len(chunk)
            if size > self.max_content_size:
                self.logger.warning(f"Content exceeded size limit during reading: {response.url}")
                return None
            chunks.append(chunk)
        return b''.join(chunks)

    def get_stats(self) -> Dict[str, int]:
        """Get fetcher statistics."""
        return self.stats.copy()
