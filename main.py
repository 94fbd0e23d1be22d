#!/usr/bin/env python3
"""
Main FastAPI application - Entry point
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from elasticsearch import Elasticsearch
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from config import API_HOST, API_PORT, API_TITLE, API_DESCRIPTION, API_VERSION, LOG_FILE, LOG_LEVEL, LOG_FORMAT
from config import ES_HOST, CHECK_INTERVAL, SCRAPE_BATCH_SIZE, FETCH_TIMEOUT, MONITOR_AUTOSTART
from api_endpoints import (
    AppServices,
    root,
    get_status,
    start_monitoring,
    stop_monitoring,
    start_monitor_task,
    get_display_board,
    post_display_board,
    get_scrape_status,
    post_scrape,
    display_board_socket,
)
from court_directory import CourtDirectory
from elasticsearch_client import DisplayCacheStore, connect_to_elasticsearch, ensure_indices
from fanout import FanoutService
from models import monitor_state

logger = logging.getLogger(__name__)


def setup_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL),
        format=LOG_FORMAT,
        handlers=[
            logging.FileHandler(LOG_FILE),
            logging.StreamHandler()
        ]
    )


async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


async def startup_event(app: FastAPI, autostart: bool):
    """Run on application startup"""
    logger.info("=" * 70)
    logger.info(f"🚀 {API_TITLE} Started")
    logger.info("=" * 70)
    logger.info(f"Elasticsearch: {ES_HOST}")
    logger.info(f"Check Interval: {CHECK_INTERVAL} seconds")
    logger.info(f"Batch Size: {SCRAPE_BATCH_SIZE} courts")
    logger.info(f"Fetch Timeout: {FETCH_TIMEOUT} seconds")
    logger.info("=" * 70)

    # Indices need their explicit mappings before any write, monitor running or not
    es = app.state.services.store.es
    if await asyncio.to_thread(connect_to_elasticsearch, es, True):
        await asyncio.to_thread(ensure_indices, es)
    else:
        logger.warning("⚠️ Elasticsearch unavailable at startup, indices will be created by the poll loop")

    if autostart:
        logger.info("🔄 Auto-starting scheduled scraping...")
        start_monitor_task(app.state.services)


async def shutdown_event(app: FastAPI):
    """Run on application shutdown"""
    monitor_state["is_running"] = False
    services = app.state.services
    if services.monitor_task:
        services.monitor_task.cancel()
    await services.fanout.close()
    logger.info("=" * 70)
    logger.info(f"🛑 {API_TITLE} Stopped")
    logger.info(f"Total scrape runs: {monitor_state['total_runs']}")
    logger.info("=" * 70)


def build_services() -> AppServices:
    es = Elasticsearch(ES_HOST)
    return AppServices(
        store=DisplayCacheStore(es),
        directory=CourtDirectory(es),
        fanout=FanoutService(),
    )


def create_app(services: Optional[AppServices] = None, autostart: bool = MONITOR_AUTOSTART) -> FastAPI:
    """Build the application around the given collaborators"""
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await startup_event(app, autostart)
        yield
        await shutdown_event(app)

    app = FastAPI(
        title=API_TITLE,
        description=API_DESCRIPTION,
        version=API_VERSION,
        lifespan=lifespan
    )
    app.state.services = services or build_services()
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    # === Register Routes ===
    app.add_api_route("/", root, methods=["GET"])
    app.add_api_route("/status", get_status, methods=["GET"])
    app.add_api_route("/start", start_monitoring, methods=["POST"])
    app.add_api_route("/stop", stop_monitoring, methods=["POST"])
    app.add_api_route("/display-board", get_display_board, methods=["GET"])
    app.add_api_route("/display-board", post_display_board, methods=["POST"])
    app.add_api_route("/display-board/scrape", get_scrape_status, methods=["GET"])
    app.add_api_route("/display-board/scrape", post_scrape, methods=["POST"])
    app.add_api_websocket_route("/ws/display-board", display_board_socket)

    return app


setup_logging()
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=API_HOST, port=API_PORT)
