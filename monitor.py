#!/usr/bin/env python3
"""
Background monitoring task
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from config import CHECK_INTERVAL
from court_directory import CourtDirectory
from elasticsearch_client import DisplayCacheStore, connect_to_elasticsearch, ensure_indices
from fanout import FanoutService
from fetcher import fetch_display_board
from models import Court, ScrapingResult, monitor_state
from scraper import scrape_courts

logger = logging.getLogger(__name__)


async def publish_court(store: DisplayCacheStore, fanout: FanoutService,
                        court_id: str, court_name: str) -> int:
    """Push the court's current cached board to its subscribers"""
    if not fanout.registry.subscribers(court_id):
        return 0
    entries = await asyncio.to_thread(store.current_entries, court_id)
    return fanout.publish(court_id, court_name, entries)


async def publish_results(results: List[ScrapingResult], store: DisplayCacheStore,
                          fanout: FanoutService) -> None:
    for result in results:
        if result.success:
            await publish_court(store, fanout, result.court_id, result.court_name)


async def run_scrape_cycle(store: DisplayCacheStore, directory: CourtDirectory,
                           fanout: FanoutService,
                           courts: Optional[List[Court]] = None,
                           fetch: Callable = fetch_display_board) -> List[ScrapingResult]:
    """Scrape the given courts (default: every configured court) and push the results"""
    if courts is None:
        courts = await asyncio.to_thread(directory.list_display_board_courts)

    results = await scrape_courts(courts, store, fetch=fetch)
    await publish_results(results, store, fanout)
    return results


async def monitor_and_process(store: DisplayCacheStore, directory: CourtDirectory,
                              fanout: FanoutService, fetch: Callable = fetch_display_board):
    """Background task that periodically scrapes every configured display board"""
    logger.info("🔄 Starting continuous monitoring...")
    indices_ready = False

    while monitor_state["is_running"]:
        try:
            monitor_state["last_check"] = datetime.now(timezone.utc).isoformat()

            # Check Elasticsearch with retry
            if not await asyncio.to_thread(connect_to_elasticsearch, store.es, True):
                logger.error("❌ Failed to connect to Elasticsearch after retries, will retry in next cycle...")
                await asyncio.sleep(CHECK_INTERVAL)
                continue

            if not indices_ready:
                await asyncio.to_thread(ensure_indices, store.es)
                indices_ready = True

            results = await run_scrape_cycle(store, directory, fanout, fetch=fetch)

            monitor_state["total_runs"] += 1
            monitor_state["last_run_courts"] = len(results)
            monitor_state["last_run_successful"] = sum(1 for r in results if r.success)

            if not results:
                logger.debug("📭 No courts with display board URLs configured")

            # Wait before next check
            await asyncio.sleep(CHECK_INTERVAL)

        except asyncio.CancelledError:
            raise
        except Exception as e:
            error_msg = f"Error in monitoring loop: {e}"
            logger.error(error_msg)
            monitor_state["errors"].append({
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "error": str(e)
            })
            # Keep only last 10 errors
            monitor_state["errors"] = monitor_state["errors"][-10:]
            await asyncio.sleep(CHECK_INTERVAL)

    logger.info("🛑 Monitoring stopped")
