"""
Crawler components.
"""

from .url_frontier import URLFrontier, CrawlCandidate, PolitenessLimiter, normalize_url
from .fetcher import WebFetcher, FetchResult
from .extractor import ContentExtractor, ExtractedContent, ExtractionError, SubprocessConverter
from .scheduler import CrawlerScheduler, CrawlOutcome, OutcomeStatus

__all__ = [
    'URLFrontier', 'CrawlCandidate', 'PolitenessLimiter', 'normalize_url',
    'WebFetcher', 'FetchResult',
    'ContentExtractor', 'ExtractedContent', 'ExtractionError', 'SubprocessConverter',
    'CrawlerScheduler', 'CrawlOutcome', 'OutcomeStatus'
]
