"""
Index storage for crawled content.

A single SQLite file holds the full-text page index (FTS5, porter stemming)
and the url log used for recrawl gating.
"""

import asyncio
import logging
import sqlite3
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional, Dict, List, Any

import aiosqlite


class DatabaseError(Exception):
    """Custom exception for database operations."""
    pass


@dataclass
class IndexedPage:
    """A searchable page record."""
    url: str
    title: str
    body: str
    crawled_at: datetime


@dataclass
class PageHit:
    """A search hit. Body text is never loaded for hits."""
    url: str
    title: str
    crawled_at: Optional[datetime]


_SCHEMA = [
    """
    CREATE VIRTUAL TABLE IF NOT EXISTS pages
    USING fts5(url, title, body, crawled_at UNINDEXED, tokenize = porter)
    """,
    # Every requested URL, including ones without content such as redirects
    """
    CREATE TABLE IF NOT EXISTS url_log (
        url TEXT PRIMARY KEY,
        last_seen TEXT NOT NULL
    )
    """,
]


def _format_time(value: datetime) -> str:
    return value.isoformat()


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


class IndexStore:
    """
    Transactional full-text store shared by the crawler and the search path.

    Writes go through one connection serialized by a lock and run as
    ``BEGIN IMMEDIATE`` transactions. Reads use a second connection so
    they only ever see committed state.
    """

    def __init__(self, path: str, busy_timeout_ms: int = 5000):
        self.path = path
        self.busy_timeout_ms = busy_timeout_ms
        self.logger = logging.getLogger(__name__)

        self._writer: Optional[aiosqlite.Connection] = None
        self._reader: Optional[aiosqlite.Connection] = None
        self._write_lock = asyncio.Lock()

    async def __aenter__(self):
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def initialize(self):
        """Open the store file, creating it and its tables if needed."""
        try:
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)

            self._writer = await aiosqlite.connect(self.path, isolation_level=None)
            await self._writer.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            await self._writer.execute("PRAGMA journal_mode = WAL")
            for statement in _SCHEMA:
                await self._writer.execute(statement)

            self._reader = await aiosqlite.connect(self.path, isolation_level=None)
            await self._reader.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")

        except (sqlite3.Error, OSError) as e:
            await self.close()
            raise DatabaseError(f"Failed to initialize index store at {self.path}: {e}")

        self.logger.info(f"Index store initialized at {self.path}")

    def _require_open(self):
        if self._writer is None or self._reader is None:
            raise DatabaseError("Database not initialized")

    @asynccontextmanager
    async def _transaction(self):
        """Run the enclosed statements as one immediate transaction."""
        self._require_open()
        async with self._write_lock:
            try:
                await self._writer.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as e:
                raise DatabaseError(f"Could not begin transaction: {e}")
            try:
                yield self._writer
                await self._writer.execute("COMMIT")
            except BaseException as e:
                await self._rollback()
                if isinstance(e, sqlite3.Error):
                    raise DatabaseError(f"Transaction failed: {e}") from e
                raise

    async def _rollback(self):
        try:
            await self._writer.execute("ROLLBACK")
        except sqlite3.Error as e:
            self.logger.error(f"Rollback failed: {e}")

    async def log_visit(self, url: str, timestamp: datetime):
        """Record that ``url`` was requested at ``timestamp``, overwriting any prior value."""
        async with self._transaction() as conn:
            await conn.execute(
                """
                INSERT INTO url_log (url, last_seen) VALUES (?, ?)
                ON CONFLICT(url) DO UPDATE SET last_seen = excluded.last_seen
                """,
                (url, _format_time(timestamp))
            )
        self.logger.debug(f"Logged visit: {url}")

    async def last_visit(self, url: str) -> Optional[datetime]:
        """When ``url`` was last logged, or None if it never was."""
        self._require_open()
        try:
            async with self._reader.execute(
                "SELECT last_seen FROM url_log WHERE url = ?", (url,)
            ) as cursor:
                row = await cursor.fetchone()
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to read url log for {url}: {e}")

        if row is None:
            return None
        return _parse_time(row[0])

    async def upsert_page(self, url: str, title: str, body: str, timestamp: datetime):
        """
        Insert a page, or replace title, body and timestamp of an existing one.

        The existence check and the write happen in the same transaction so
        concurrent writers can never produce two rows for one URL.
        """
        crawled_at = _format_time(timestamp)
        async with self._transaction() as conn:
            async with conn.execute(
                "SELECT EXISTS(SELECT 1 FROM pages WHERE url = ?)", (url,)
            ) as cursor:
                (exists,) = await cursor.fetchone()

            if exists:
                await conn.execute(
                    "UPDATE pages SET title = ?, body = ?, crawled_at = ? WHERE url = ?",
                    (title, body, crawled_at, url)
                )
            else:
                await conn.execute(
                    "INSERT INTO pages (url, title, body, crawled_at) VALUES (?, ?, ?, ?)",
                    (url, title, body, crawled_at)
                )
        self.logger.debug(f"{'Updated' if exists else 'Inserted'} page: {url}")

    async def search(self, query: str) -> List[PageHit]:
        """
        Run an FTS5 query and return hits in relevance order.

        Args:
            query: Query in FTS5 syntax; callers are responsible for sanitizing it

        Returns:
            Hits ordered by rank, ties broken by insertion order
        """
        self._require_open()
        try:
            async with self._reader.execute(
                """
                SELECT url, title, crawled_at FROM pages
                WHERE pages MATCH ? ORDER BY rank, rowid
                """,
                (query,)
            ) as cursor:
                rows = await cursor.fetchall()
        except sqlite3.Error as e:
            raise DatabaseError(f"Search failed for {query!r}: {e}")

        return [PageHit(url=url, title=title, crawled_at=_parse_time(crawled_at))
                for url, title, crawled_at in rows]

    async def get_page(self, url: str) -> Optional[IndexedPage]:
        """Retrieve a full page record by URL."""
        self._require_open()
        try:
            async with self._reader.execute(
                "SELECT url, title, body, crawled_at FROM pages WHERE url = ?", (url,)
            ) as cursor:
                row = await cursor.fetchone()
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to read page {url}: {e}")

        if row is None:
            return None
        return IndexedPage(url=row[0], title=row[1], body=row[2], crawled_at=_parse_time(row[3]))

    async def count_pages(self, url: Optional[str] = None) -> int:
        """Number of page rows, optionally only those for ``url``."""
        self._require_open()
        if url is None:
            sql, params = "SELECT COUNT(*) FROM pages", ()
        else:
            sql, params = "SELECT COUNT(*) FROM pages WHERE url = ?", (url,)
        try:
            async with self._reader.execute(sql, params) as cursor:
                (count,) = await cursor.fetchone()
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to count pages: {e}")
        return count

    async def get_stats(self) -> Dict[str, Any]:
        """Get storage statistics."""
        self._require_open()
        try:
            async with self._reader.execute("SELECT COUNT(*) FROM url_log") as cursor:
                (logged,) = await cursor.fetchone()
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to read stats: {e}")
        return {'pages': await self.count_pages(), 'logged_urls': logged}

    async def close(self):
        """Close database connections."""
        for conn in (self._reader, self._writer):
            if conn is not None:
                try:
                    await conn.close()
                except sqlite3.Error as e:
                    self.logger.error(f"Error closing database connection: {e}")
        if self._writer is not None:
            self.logger.info("Database connections closed")
        self._reader = None
        self._writer = None
