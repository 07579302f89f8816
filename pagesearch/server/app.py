"""
Search HTTP server.
"""

import logging
from typing import Optional

from aiohttp import web

from ..search.query import EmptyQueryError, QueryEngine
from ..storage.database import DatabaseError, IndexStore
from ..utils.monitoring import CrawlMetrics
from .templates import render_index, render_results

STORE_KEY = web.AppKey("store", IndexStore)
ENGINE_KEY = web.AppKey("engine", QueryEngine)
METRICS_KEY = web.AppKey("metrics", CrawlMetrics)

logger = logging.getLogger(__name__)


async def root_handler(request: web.Request) -> web.Response:
    return web.Response(text=render_index(), content_type='text/html')


async def search_handler(request: web.Request) -> web.Response:
    metrics = request.app[METRICS_KEY]
    query = request.query.get('q', '')

    try:
        results = await request.app[ENGINE_KEY].search(query)
    except EmptyQueryError as e:
        logger.debug(f"search_handler: {e}")
        metrics.record_search(400)
        raise web.HTTPBadRequest(text=str(e))
    except DatabaseError as e:
        logger.error(f"Search failed for query={query!r}: {e}")
        metrics.record_search(500)
        raise web.HTTPInternalServerError(text="search failed")

    metrics.record_search(200)
    return web.Response(text=render_results(query, results), content_type='text/html')


async def metrics_handler(request: web.Request) -> web.Response:
    body = request.app[METRICS_KEY].export()
    return web.Response(body=body, headers={'Content-Type': 'text/plain; version=0.0.4'})


def create_app(store: IndexStore, metrics: Optional[CrawlMetrics] = None,
               manage_store: bool = True) -> web.Application:
    """
    Build the search application.

    Args:
        store: Index store shared with the query engine
        metrics: Metrics collector; a fresh one is created if omitted
        manage_store: Open the store on startup and close it on cleanup
    """
    app = web.Application()
    app[STORE_KEY] = store
    app[ENGINE_KEY] = QueryEngine(store)
    app[METRICS_KEY] = metrics or CrawlMetrics()

    if manage_store:
        async def open_store(app: web.Application):
            await app[STORE_KEY].initialize()

        async def close_store(app: web.Application):
            await app[STORE_KEY].close()

        app.on_startup.append(open_store)
        app.on_cleanup.append(close_store)

    app.router.add_get('/', root_handler)
    app.router.add_get('/search', search_handler)
    app.router.add_get('/metrics', metrics_handler)
    return app
