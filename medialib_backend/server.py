"""
Standalone aiohttp server for the media library index.

Builds services at startup, loads the persisted index, starts index polling
and optionally an initial background scan.
"""
from __future__ import annotations

import argparse
from typing import Optional

from aiohttp import web

from .config import SERVER_HOST, SERVER_PORT, SITE_PATH
from .deps import build_services
from .routes import register_routes
from .routes.core import set_services, shutdown_services
from .shared import get_logger

logger = get_logger(__name__)

_APP_KEY_SCAN_ON_START: web.AppKey[bool] = web.AppKey("_medialib_scan_on_start", bool)
_APP_KEY_SITE: web.AppKey[str] = web.AppKey("_medialib_site", str)


async def _on_startup(app: web.Application) -> None:
    result = await build_services(app[_APP_KEY_SITE])
    if not result.ok or result.data is None:
        raise RuntimeError(f"Failed to initialize services: {result.error}")
    services = result.data
    set_services(services)
    index = services["index"]
    loaded = await index.load()
    if not loaded.ok:
        logger.warning("Starting with an empty index: %s", loaded.error)
    index.start_polling()
    if app[_APP_KEY_SCAN_ON_START]:
        index.start_background_scan()


async def _on_cleanup(app: web.Application) -> None:
    await shutdown_services()


def create_app(site_path: str = SITE_PATH, *, scan_on_start: bool = False) -> web.Application:
    app = web.Application()
    app[_APP_KEY_SITE] = site_path
    app[_APP_KEY_SCAN_ON_START] = scan_on_start
    register_routes(app)
    app.on_startup.append(_on_startup)
    app.on_cleanup.append(_on_cleanup)
    return app


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="medialib", description="Serve the media library index over HTTP.")
    parser.add_argument("--site", default=SITE_PATH, help="Site path /org/repo (default: MEDIALIB_SITE)")
    parser.add_argument("--host", default=SERVER_HOST)
    parser.add_argument("--port", type=int, default=SERVER_PORT)
    parser.add_argument("--scan", action="store_true", help="Start a scan as soon as the server is up")
    args = parser.parse_args(argv)
    web.run_app(create_app(args.site, scan_on_start=args.scan), host=args.host, port=args.port)
