"""
Search over the page index.
"""

from .query import QueryEngine, QueryError, EmptyQueryError, SearchResult, sanitize_query

__all__ = ['QueryEngine', 'QueryError', 'EmptyQueryError', 'SearchResult', 'sanitize_query']
