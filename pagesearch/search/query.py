"""
Query engine: turns free text into a safe FTS5 query and shapes results.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional
from urllib.parse import urlparse

from ..storage.database import IndexStore, PageHit


class QueryError(ValueError):
    """Raised for queries that cannot be run."""
    pass


class EmptyQueryError(QueryError):
    """Raised when a query has no terms."""
    pass


@dataclass
class SearchResult:
    """A search result for display. Never carries body text."""
    title: str
    url: str
    crawled_at: Optional[datetime]
    host: str


def sanitize_query(query: str) -> str:
    """
    Quote every whitespace-separated term so user input is always read as
    an AND of literal phrases, never as FTS5 syntax. Embedded double quotes
    are doubled, the FTS5 string escape.
    """
    words = query.replace('"', '""').split()
    if not words:
        raise EmptyQueryError("no query provided")
    return ' '.join(f'"{word}"' for word in words)


def host_of(url: str) -> str:
    """Host (with port) of a URL, empty if it cannot be parsed."""
    try:
        netloc = urlparse(url).netloc
    except ValueError:
        return ''
    return netloc.rpartition('@')[2]


def result_from_hit(hit: PageHit) -> SearchResult:
    return SearchResult(
        title=hit.title,
        url=hit.url,
        crawled_at=hit.crawled_at,
        host=host_of(hit.url),
    )


class QueryEngine:
    """Runs user searches against the index store."""

    def __init__(self, store: IndexStore):
        self.store = store
        self.logger = logging.getLogger(__name__)

    async def search(self, user_query: str) -> List[SearchResult]:
        """
        Search the index.

        Raises:
            EmptyQueryError: the query has no terms
            DatabaseError: the store query failed
        """
        sanitized = sanitize_query(user_query)
        self.logger.debug(f"Search query={user_query!r} sanitized={sanitized!r}")
        hits = await self.store.search(sanitized)
        return [result_from_hit(hit) for hit in hits]
