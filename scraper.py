#!/usr/bin/env python3
"""
Scrape Orchestrator
Drives fetch -> parse -> cache for one court or many, in bounded batches
"""

import asyncio
import logging
from typing import Callable, List

from config import FETCH_DEADLINE, SCRAPE_BATCH_SIZE
from elasticsearch_client import DisplayCacheStore
from fetcher import fetch_display_board
from models import Court, FetchResult, ScrapingResult
from parsers import detect_parser, parse_display_board

logger = logging.getLogger(__name__)

NO_ENTRIES_MESSAGE = "No entries found - page structure may be different"

Fetch = Callable[[str], FetchResult]


async def scrape_court(court: Court, store: DisplayCacheStore,
                       fetch: Fetch = fetch_display_board,
                       deadline: float = FETCH_DEADLINE) -> ScrapingResult:
    """
    Scrape one court's display board into the cache

    Fetch and parse problems come back as a failed ScrapingResult with nothing
    written. A fetch still running after the deadline counts as failed; the
    worker thread is abandoned so the batch can move on. Errors raised by the
    cache store propagate.
    """
    config = detect_parser(court.display_board_url)
    try:
        fetched = await asyncio.wait_for(asyncio.to_thread(fetch, court.display_board_url), deadline)
    except asyncio.TimeoutError:
        fetched = FetchResult(ok=False, message=f"Request timed out after {deadline} seconds")

    if not fetched.ok:
        logger.warning(f"⚠️ {court.court_name}: {fetched.message}")
        return ScrapingResult(
            court_id=court.id,
            court_name=court.court_name,
            success=False,
            error=fetched.message,
        )

    entries = parse_display_board(fetched.html, config)
    if not entries:
        logger.warning(f"⚠️ {court.court_name}: no entries parsed with '{config.type}' layout")
        return ScrapingResult(
            court_id=court.id,
            court_name=court.court_name,
            success=False,
            error=NO_ENTRIES_MESSAGE,
        )

    await asyncio.to_thread(store.upsert_many, court.id, entries)

    logger.info(f"✅ {court.court_name}: cached {len(entries)} entries")
    return ScrapingResult(
        court_id=court.id,
        court_name=court.court_name,
        success=True,
        entries_count=len(entries),
    )


async def scrape_courts(courts: List[Court], store: DisplayCacheStore,
                        batch_size: int = SCRAPE_BATCH_SIZE,
                        fetch: Fetch = fetch_display_board,
                        deadline: float = FETCH_DEADLINE) -> List[ScrapingResult]:
    """
    Scrape many courts, batch_size at a time

    Batches run one after another; courts inside a batch are scraped
    concurrently. Returns exactly one result per input court, in input order.
    """
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")

    results = []
    for start in range(0, len(courts), batch_size):
        batch = courts[start:start + batch_size]
        outcomes = await asyncio.gather(
            *(scrape_court(court, store, fetch, deadline) for court in batch),
            return_exceptions=True,
        )

        for court, outcome in zip(batch, outcomes):
            if isinstance(outcome, ScrapingResult):
                results.append(outcome)
            elif isinstance(outcome, Exception):
                logger.error(f"❌ {court.court_name}: failed to cache entries: {outcome}")
                results.append(ScrapingResult(
                    court_id=court.id,
                    court_name=court.court_name,
                    success=False,
                    error=str(outcome) or outcome.__class__.__name__,
                ))
            else:
                raise outcome

    successful = sum(1 for r in results if r.success)
    logger.info(f"Scraped {successful}/{len(results)} courts successfully")
    return results
