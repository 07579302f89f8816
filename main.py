#!/usr/bin/env python3
"""
Main entry point for the personal search indexer.
"""

import asyncio
import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from aiohttp import web

from pagesearch import __version__
from pagesearch.crawler.scheduler import CrawlerScheduler, OutcomeStatus
from pagesearch.crawler.url_frontier import load_url_list
from pagesearch.server.app import create_app
from pagesearch.storage.database import DatabaseError, IndexStore
from pagesearch.utils.config import Config, ConfigError, load_config
from pagesearch.utils.logger import setup_logging
from pagesearch.utils.monitoring import CrawlMetrics


class SearchApp:
    """Main application class for the indexer and search server."""

    def __init__(self, config: Config):
        self.config = config
        self.logger = logging.getLogger(__name__)

    async def index(self, url_file: str) -> int:
        """Crawl every URL in ``url_file`` into the index."""
        try:
            urls = load_url_list(url_file)
        except OSError as e:
            self.logger.error(f"Could not read URL list {url_file}: {e}")
            return 1
        except UnicodeDecodeError as e:
            self.logger.error(f"URL list {url_file} is not valid UTF-8: {e}")
            return 1

        self.logger.info("=== INDEX RUN STARTING ===")
        self.logger.info(f"URLs in list: {len(urls)}")
        self.logger.info(f"Parallelism: {self.config.crawler.parallelism}")
        self.logger.info(f"Politeness delay: {self.config.crawler.politeness_delay}s")
        self.logger.info(f"Recrawl interval: {self.config.crawler.recrawl_interval}s")

        store = IndexStore(self.config.database.path)
        try:
            await store.initialize()
        except DatabaseError as e:
            self.logger.error(f"Fatal error: {e}")
            return 1

        metrics = CrawlMetrics()
        if self.config.monitoring.metrics_enabled:
            metrics.start_server(self.config.monitoring.prometheus_port)

        scheduler: Optional[CrawlerScheduler] = None
        try:
            scheduler = CrawlerScheduler(self.config, store, metrics=metrics)
            outcomes = await scheduler.run(urls)
        finally:
            if scheduler:
                await scheduler.close()
            await store.close()

        failed = sum(1 for o in outcomes.values() if o.status is OutcomeStatus.FAILED)
        self.logger.info(f"=== INDEX RUN FINISHED: {len(outcomes)} URLs, {failed} failed ===")
        return 0

    def serve(self) -> int:
        """Serve the search UI until interrupted."""
        store = IndexStore(self.config.database.path)
        app = create_app(store)
        self.logger.info(f"Starting server on {self.config.server.host}:{self.config.server.port}")
        try:
            web.run_app(
                app,
                host=self.config.server.host,
                port=self.config.server.port,
                print=None,
            )
        except DatabaseError as e:
            self.logger.error(f"Fatal error: {e}")
            return 1
        return 0


def main(argv=None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Personal search: index a URL list and search it",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py index urls.txt                  # Crawl the URLs listed in urls.txt
  python main.py --config my_config.yaml serve   # Serve search with a custom config
        """
    )

    parser.add_argument(
        '--config',
        default='config.yaml',
        help='Path to configuration file (default: config.yaml)'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'pagesearch {__version__}'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)

    index_parser = subparsers.add_parser('index', help='Crawl a URL list into the index')
    index_parser.add_argument('url_file', help='Newline-delimited URL list')

    subparsers.add_parser('serve', help='Run the search web server')

    args = parser.parse_args(argv)

    if not Path(args.config).exists():
        print(f"Error: Configuration file '{args.config}' not found.")
        print("Please create a config.yaml file or specify a different path with --config")
        return 1

    try:
        config = load_config(args.config)
    except (ConfigError, TypeError) as e:
        print(f"Error: Invalid configuration: {e}")
        return 1

    setup_logging(config.logging)
    app = SearchApp(config)

    try:
        if args.command == 'index':
            return asyncio.run(app.index(args.url_file))
        return app.serve()
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 1


if __name__ == '__main__':
    sys.exit(main())
