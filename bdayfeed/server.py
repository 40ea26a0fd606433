"""
HTTP endpoint serving the cached birthday calendar
"""

import logging

from aiohttp import web

from bdayfeed.cache import FeedCache, NotReadyError

logger = logging.getLogger(__name__)

FEED_CACHE = web.AppKey('feed_cache', FeedCache)


async def handle_feed(request: web.Request) -> web.Response:
    cache = request.app[FEED_CACHE]
    try:
        document = cache.require()
    except NotReadyError:
        logger.info(f"Calendar requested from {request.remote} before it is available")
        return web.Response(status=404, text='Calendar not found')
    return web.Response(text=document, content_type='text/calendar', charset='utf-8')


def create_app(cache: FeedCache, feed_path: str = '/calendar.ics') -> web.Application:
    app = web.Application()
    app[FEED_CACHE] = cache
    app.router.add_get(feed_path, handle_feed)
    return app


async def start_server(app: web.Application, host: str, port: int) -> web.AppRunner:
    """Start serving ``app``; the caller owns the returned runner and must clean it up"""
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    logger.info(f"Server running at http://{host}:{port}")
    return runner
