#!/usr/bin/env python3
# AirVinyl
# Copyright (C) 2026 The AirVinyl contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
AirVinyl control server (airvinyl)

Discovers AirPlay receivers on the local network and relays the line-in
capture to the one the user picks.  A tiny JSON API selects the receiver
and volume; an optional static web UI is served alongside it.

    GET /api    → {"device": id|null, "volume": int|null, "devices": [...]}
    PUT /api    ← {"device": id|null, "volume": 0..100|null}

Port: 3030 (PORT env)
"""

import argparse
import asyncio
import logging
import os
import sys

from aiohttp import web

# Ensure services/ is on the path for sibling imports
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
from airvinyl import __version__
from airvinyl.config import cfg
from airvinyl.errors import SessionError, UnknownDevice
from airvinyl.service import AirVinylService
from airvinyl.watchdog import watchdog_loop

logger = logging.getLogger("airvinyl.server")

MAX_BODY_BYTES = 16 * 1024

LOG_LEVELS = [logging.ERROR, logging.WARNING, logging.INFO, logging.DEBUG]

SERVICE_KEY = web.AppKey("service", AirVinylService)
WATCHDOG_KEY = web.AppKey("watchdog", asyncio.Task)


def log_level(debug: int) -> int:
    """Map the -d verbosity flag to a logging level."""
    return LOG_LEVELS[max(0, min(debug, len(LOG_LEVELS) - 1))]


# ---------------------------------------------------------------------------
# HTTP handlers
# ---------------------------------------------------------------------------

async def handle_get(request: web.Request) -> web.Response:
    """GET /api — current session and discovered devices."""
    return web.json_response(request.app[SERVICE_KEY].state())


async def handle_put(request: web.Request) -> web.Response:
    """PUT /api — select the receiver and volume."""
    service = request.app[SERVICE_KEY]
    try:
        data = await request.json()
    except ValueError:
        return web.json_response({"error": "invalid json"}, status=400)
    if not isinstance(data, dict):
        return web.json_response({"error": "expected a JSON object"}, status=400)

    try:
        await service.apply(data.get("device"), data.get("volume"))
    except ValueError as e:
        return web.json_response({"error": str(e)}, status=400)
    except UnknownDevice as e:
        return web.json_response({"error": str(e)}, status=404)
    except SessionError as e:
        return web.json_response({"error": str(e)}, status=502)

    return web.json_response({"status": "ok", **service.state()})


# ---------------------------------------------------------------------------
# App lifecycle
# ---------------------------------------------------------------------------

async def on_startup(app: web.Application):
    await app[SERVICE_KEY].start()
    app[WATCHDOG_KEY] = asyncio.create_task(watchdog_loop())


async def on_cleanup(app: web.Application):
    watchdog = app.get(WATCHDOG_KEY)
    if watchdog:
        watchdog.cancel()
    await app[SERVICE_KEY].stop()


@web.middleware
async def cors_middleware(request, handler):
    if request.method == "OPTIONS":
        resp = web.Response()
    else:
        resp = await handler(request)
    resp.headers["Access-Control-Allow-Origin"] = "*"
    resp.headers["Access-Control-Allow-Methods"] = "GET, PUT, OPTIONS"
    resp.headers["Access-Control-Allow-Headers"] = "Content-Type"
    return resp


def create_app(service: AirVinylService | None = None,
               ui_path: str | None = None) -> web.Application:
    app = web.Application(middlewares=[cors_middleware], client_max_size=MAX_BODY_BYTES)
    app[SERVICE_KEY] = service or AirVinylService()
    app.router.add_get("/api", handle_get)
    app.router.add_put("/api", handle_put)
    if ui_path:
        if os.path.isdir(ui_path):
            async def handle_index(request: web.Request) -> web.FileResponse:
                return web.FileResponse(os.path.join(ui_path, "index.html"))

            app.router.add_get("/", handle_index)
            app.router.add_static("/", ui_path)
            logger.info("Serving UI from %s", ui_path)
        else:
            logger.warning("UI path %s does not exist — not serving a UI", ui_path)
    app.on_startup.append(on_startup)
    app.on_cleanup.append(on_cleanup)
    return app


def main(argv=None):
    parser = argparse.ArgumentParser(description="Relay line-in audio to AirPlay receivers")
    parser.add_argument("-d", "--debug", type=int, default=2, metavar="LEVEL",
                        help="log verbosity: 0 errors, 1 warnings, 2 info, 3 debug")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=log_level(args.debug),
        format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    port = int(os.getenv("PORT") or cfg("server", "port", default=3030))
    ui_path = os.getenv("AIR_VINYL_UI") or cfg("server", "ui_path")

    app = create_app(ui_path=ui_path)
    web.run_app(app, host="0.0.0.0", port=port, print=lambda msg: logger.info(msg))


if __name__ == "__main__":
    main()
