"""
Tests for URL normalization, list parsing, the frontier queue and the politeness limiter.
"""

import asyncio
import random
import time

import pytest

from pagesearch.crawler.url_frontier import (
    PolitenessLimiter,
    URLFrontier,
    is_crawlable,
    load_url_list,
    normalize_url,
    parse_url_list,
)


class TestNormalizeUrl:

    @pytest.mark.parametrize("url, expected", [
        ("https://a.example", "https://a.example/"),
        ("https://a.example/page#top", "https://a.example/page"),
        ("HTTPS://A.Example/Path", "https://a.example/Path"),
        ("https://a.example/?q=1#frag", "https://a.example/?q=1"),
        ("  https://a.example/x  ", "https://a.example/x"),
    ])
    def test_normalize(self, url, expected):
        assert normalize_url(url) == expected

    @pytest.mark.parametrize("url, expected", [
        ("https://a.example/", True),
        ("http://a.example/", True),
        ("ftp://a.example/", False),
        ("/relative/path", False),
        ("not a url", False),
    ])
    def test_is_crawlable(self, url, expected):
        assert is_crawlable(url) is expected


class TestUrlList:

    def test_parse_skips_comments_and_blanks(self):
        lines = [
            "# my reading list\n",
            "https://a.example/\n",
            "\n",
            "   \n",
            "  https://b.example/doc.pdf  \n",
            "#https://c.example/\n",
        ]
        assert parse_url_list(lines) == ["https://a.example/", "https://b.example/doc.pdf"]

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "urls.txt"
        path.write_text("https://a.example/\n# comment\n\nhttps://b.example/\n", encoding="utf-8")
        assert load_url_list(str(path)) == ["https://a.example/", "https://b.example/"]


class TestURLFrontier:

    @pytest.mark.asyncio
    async def test_dedupes_and_rejects(self):
        frontier = URLFrontier(rng=random.Random(1))
        accepted = frontier.add_urls([
            "https://a.example/x",
            "https://a.example/x#again",
            "mailto:someone@example.com",
        ])
        assert accepted == ["https://a.example/x"]
        assert frontier.rejected == ["mailto:someone@example.com"]
        assert len(frontier) == 1

    @pytest.mark.asyncio
    async def test_unparseable_line_is_rejected(self):
        frontier = URLFrontier(rng=random.Random(1))
        accepted = frontier.add_urls(["http://[::1/broken", "https://a.example/ok"])
        assert accepted == ["https://a.example/ok"]
        assert frontier.rejected == ["http://[::1/broken"]

    @pytest.mark.asyncio
    async def test_order_is_shuffled(self):
        urls = [f"https://a.example/{i}" for i in range(30)]
        frontier = URLFrontier(rng=random.Random(42))
        accepted = frontier.add_urls(urls)

        assert sorted(accepted) == sorted(urls)
        assert accepted != urls

        drained = []
        while (candidate := frontier.get_next()) is not None:
            drained.append(candidate.url)
            assert candidate.depth == 0
            frontier.mark_done()
        assert drained == accepted
        assert frontier.is_empty()


class TestPolitenessLimiter:

    @pytest.mark.asyncio
    async def test_single_slot_spaces_requests(self):
        limiter = PolitenessLimiter(0.05, slots=1)
        start = time.monotonic()
        for _ in range(4):
            async with limiter:
                pass
        assert time.monotonic() - start >= 0.15

    @pytest.mark.asyncio
    async def test_slots_overlap(self):
        limiter = PolitenessLimiter(0.2, slots=3)
        in_flight = 0
        peak = 0

        async def request():
            nonlocal in_flight, peak
            async with limiter:
                in_flight += 1
                peak = max(peak, in_flight)
                await asyncio.sleep(0.01)
                in_flight -= 1

        start = time.monotonic()
        await asyncio.gather(*[request() for _ in range(6)])
        elapsed = time.monotonic() - start

        # Three slots: the second wave waits one delay, not five
        assert peak == 3
        assert 0.2 <= elapsed < 0.6

    @pytest.mark.asyncio
    async def test_caller_is_not_held_for_the_delay(self):
        limiter = PolitenessLimiter(1.0, slots=1)
        start = time.monotonic()
        async with limiter:
            pass
        assert time.monotonic() - start < 0.5

    @pytest.mark.asyncio
    async def test_zero_delay_does_not_wait(self):
        limiter = PolitenessLimiter(0)
        start = time.monotonic()
        for _ in range(100):
            async with limiter:
                pass
        assert time.monotonic() - start < 0.5
