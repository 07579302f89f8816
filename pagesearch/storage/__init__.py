"""
Storage layer for the search index.
"""

from .database import IndexStore, IndexedPage, PageHit, DatabaseError

__all__ = ['IndexStore', 'IndexedPage', 'PageHit', 'DatabaseError']
