"""
Personal Search

Crawls a bounded URL list into a SQLite full-text index and serves searches over it.
"""

__version__ = "1.0.0"
__description__ = "A small crawler and full-text search engine over a personal URL list"
