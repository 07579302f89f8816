"""
HTTP interface for searching the index.
"""

from .app import create_app

__all__ = ['create_app']
