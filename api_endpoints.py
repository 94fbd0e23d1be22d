#!/usr/bin/env python3
"""
FastAPI route handlers
"""

import asyncio
import json
import logging
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional

from fastapi import Depends, Header, HTTPException, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from config import CHECK_INTERVAL, API_VERSION
from court_directory import CourtDirectory
from elasticsearch_client import DisplayCacheStore, classify_freshness
from fanout import FanoutService
from fetcher import fetch_display_board
from models import (
    CacheEntryIn,
    CacheUpdateRequest,
    DisplayBoardEntry,
    ScrapeRequest,
    monitor_state,
    summarize_results,
)
from monitor import monitor_and_process, publish_court, publish_results
from scraper import scrape_courts

logger = logging.getLogger(__name__)


@dataclass
class AppServices:
    """Collaborators shared by the handlers, created once per app"""
    store: DisplayCacheStore
    directory: CourtDirectory
    fanout: FanoutService
    fetch: Callable = fetch_display_board
    monitor_task: Optional[asyncio.Task] = None


def get_services(request: Request) -> AppServices:
    return request.app.state.services


def require_user(x_user_id: Optional[str] = Header(None)) -> str:
    """Caller identity as set by the permission gate in front of the service"""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return x_user_id


def _court_summary(court) -> Optional[Dict]:
    if court is None:
        return None
    return {"id": court.id, "courtName": court.court_name, "displayBoardUrl": court.display_board_url}


def _with_court(records: List[Dict], courts: Dict) -> List[Dict]:
    for record in records:
        record["court"] = _court_summary(courts.get(record["courtId"]))
    return records


async def root():
    """Root endpoint with API information"""
    return {
        "message": "Display Board API",
        "version": API_VERSION,
        "endpoints": {
            "/status": "Get current monitoring status",
            "/start": "Start scheduled scraping",
            "/stop": "Stop scheduled scraping",
            "/display-board": "Read or update cached display board entries",
            "/display-board/scrape": "List scrapeable courts or trigger a scrape",
            "/ws/display-board": "Live display board updates"
        }
    }


async def get_status(services: AppServices = Depends(get_services)):
    """Get current monitoring status"""
    return {
        "is_running": monitor_state["is_running"],
        "last_check": monitor_state["last_check"],
        "total_runs": monitor_state["total_runs"],
        "last_run_courts": monitor_state["last_run_courts"],
        "last_run_successful": monitor_state["last_run_successful"],
        "check_interval_seconds": CHECK_INTERVAL,
        "connections": services.fanout.connection_count,
        "recent_errors": monitor_state["errors"][-5:]
    }


def start_monitor_task(services: AppServices) -> None:
    monitor_state["is_running"] = True
    services.monitor_task = asyncio.create_task(
        monitor_and_process(services.store, services.directory, services.fanout, services.fetch)
    )


async def start_monitoring(services: AppServices = Depends(get_services)):
    """Start scheduled scraping"""
    if monitor_state["is_running"]:
        return JSONResponse(
            status_code=400,
            content={"error": "Monitoring is already running"}
        )

    start_monitor_task(services)
    logger.info("✅ Monitoring started")

    return {
        "message": "Monitoring started successfully",
        "check_interval_seconds": CHECK_INTERVAL
    }


async def stop_monitoring(services: AppServices = Depends(get_services)):
    """Stop scheduled scraping"""
    if not monitor_state["is_running"]:
        return JSONResponse(
            status_code=400,
            content={"error": "Monitoring is not running"}
        )

    monitor_state["is_running"] = False
    # The loop may be asleep in CHECK_INTERVAL; cancel it so a later /start runs alone
    if services.monitor_task:
        services.monitor_task.cancel()
        services.monitor_task = None
    logger.info("Monitoring stopped by user request")

    return {
        "message": "Monitoring stopped successfully",
        "total_runs": monitor_state["total_runs"]
    }


def get_display_board(
    court_id: Optional[str] = Query(None, alias="courtId"),
    court_number: Optional[str] = Query(None, alias="courtNumber"),
    user_id: str = Depends(require_user),
    services: AppServices = Depends(get_services),
):
    """Cached entries for one court, or for the courts of the caller's hearings today"""
    try:
        if court_id:
            records = services.store.get(court_id, court_number)
            courts = services.directory.get_courts([court_id])
            return {"displayData": _with_court(records, courts)}

        hearings = services.directory.get_todays_hearings(user_id)
        court_ids = sorted({h.court_id for h in hearings})
        courts = services.directory.get_courts(court_ids)
        all_data = _with_court(services.store.get_many(court_ids), courts)

        hearing_keys = {(h.court_id, h.court_number) for h in hearings}
        relevant = [d for d in all_data if (d["courtId"], d["courtNumber"]) in hearing_keys]

        return {
            "displayData": relevant,
            "userHearings": [h.to_dict() for h in hearings],
            "allCourtData": all_data,
        }
    except Exception as e:
        logger.error(f"❌ Failed to fetch display board data: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch display board data")


def _store_entries(store: DisplayCacheStore, court_id: str, entries: List[CacheEntryIn]) -> List[Dict]:
    board = [
        DisplayBoardEntry(
            court_number=item.courtNumber,
            item_number=item.itemNumber or None,
            case_number=item.caseNumber or None,
            case_title=item.caseTitle or None,
            judge_name=item.judgeName or None,
            vc_link=item.vcLink or None,
            status=item.status or None,
        )
        for item in entries
    ]
    return store.upsert_many(court_id, board, raw_data=[item.rawData for item in entries])


async def post_display_board(
    body: CacheUpdateRequest,
    user_id: str = Depends(require_user),
    services: AppServices = Depends(get_services),
):
    """Write externally supplied entries straight into the cache"""
    if not body.courtId or body.entries is None:
        raise HTTPException(status_code=400, detail="courtId and entries array are required")

    try:
        court = await asyncio.to_thread(services.directory.get_court, body.courtId)
        if court is None:
            raise HTTPException(status_code=404, detail="Court not found")

        records = await asyncio.to_thread(_store_entries, services.store, court.id, body.entries)
        await publish_court(services.store, services.fanout, court.id, court.court_name)

        logger.info(f"Updated {len(records)} cached entries for {court.court_name} (by {user_id})")
        return {"updated": len(records), "entries": records}

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Failed to update display board cache: {e}")
        raise HTTPException(status_code=500, detail="Failed to update display board cache")


def get_scrape_status(
    court_id: Optional[str] = Query(None, alias="courtId"),
    user_id: str = Depends(require_user),
    services: AppServices = Depends(get_services),
):
    """Configured courts with cache freshness, or one court's cached entries"""
    try:
        if court_id:
            court = services.directory.get_court(court_id)
            last_updated = services.store.latest(court_id)
            return {
                "court": court.to_dict() if court else None,
                "entries": services.store.get(court_id),
                "lastUpdated": last_updated.isoformat() if last_updated else None,
                "freshness": classify_freshness(last_updated),
            }

        courts = services.directory.list_display_board_courts()
        courts_with_status = []
        for court in courts:
            last_updated = services.store.latest(court.id)
            status = court.to_dict()
            status.update({
                "cachedEntries": services.store.count(court.id),
                "lastUpdated": last_updated.isoformat() if last_updated else None,
                "freshness": classify_freshness(last_updated),
            })
            courts_with_status.append(status)

        return {"courts": courts_with_status, "totalCourts": len(courts)}

    except Exception as e:
        logger.error(f"❌ Failed to get scrape status: {e}")
        raise HTTPException(status_code=500, detail="Failed to get scrape status")


async def post_scrape(
    body: ScrapeRequest,
    user_id: str = Depends(require_user),
    services: AppServices = Depends(get_services),
):
    """Scrape one court or every configured court now"""
    if bool(body.courtId) == bool(body.scrapeAll):
        raise HTTPException(status_code=400, detail="Either courtId or scrapeAll is required")

    try:
        if body.scrapeAll:
            courts = await asyncio.to_thread(services.directory.list_display_board_courts)
        else:
            court = await asyncio.to_thread(services.directory.get_court, body.courtId)
            if court is None:
                raise HTTPException(status_code=404, detail="Court not found")

            display_url = body.url or court.display_board_url
            if not display_url:
                raise HTTPException(status_code=400, detail="No display board URL configured for this court")
            courts = [replace(court, display_board_url=display_url)]

        if not courts:
            return {
                "success": True,
                "message": "No courts with display board URLs found",
                "results": []
            }

        logger.info(f"🚀 Manual scrape of {len(courts)} courts triggered by {user_id}")
        results = await scrape_courts(courts, services.store, fetch=services.fetch)
        await publish_results(results, services.store, services.fanout)

        summary = summarize_results(results)
        return {
            "success": True,
            "message": f"Scraped {summary['successful']}/{summary['total']} courts successfully",
            "summary": summary,
            "results": [r.to_dict() for r in results],
        }

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Failed to scrape display boards: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to scrape display boards: {e}")


def _handle_message(fanout: FanoutService, websocket: WebSocket, raw: str) -> None:
    if websocket not in fanout.registry:
        # Dropped by the fan-out and already being closed
        return

    try:
        message = json.loads(raw)
    except ValueError:
        fanout.send(websocket, {"type": "error", "message": "Invalid JSON"})
        return

    if not isinstance(message, dict):
        fanout.send(websocket, {"type": "error", "message": "Message must be an object"})
        return

    message_type = message.get("type")
    if message_type == "subscribe":
        court_ids = message.get("courtIds")
        if not isinstance(court_ids, list):
            fanout.send(websocket, {"type": "error", "message": "courtIds must be a list"})
            return
        courts = fanout.subscribe(websocket, court_ids)
        fanout.send(websocket, {"type": "subscribed", "courtIds": sorted(courts)})
    elif message_type == "unsubscribe":
        fanout.unsubscribe(websocket)
        fanout.send(websocket, {"type": "subscribed", "courtIds": []})
    else:
        fanout.send(websocket, {"type": "error", "message": f"Unknown message type: {message_type}"})


async def display_board_socket(websocket: WebSocket):
    """Push channel: subscribe to court ids, receive display-update events"""
    fanout = websocket.app.state.services.fanout
    await websocket.accept()
    fanout.connect(websocket)

    try:
        while True:
            raw = await websocket.receive_text()
            _handle_message(fanout, websocket, raw)
    except WebSocketDisconnect:
        logger.debug("WebSocket client disconnected")
    finally:
        await fanout.disconnect(websocket)
