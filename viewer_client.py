#!/usr/bin/env python3
"""
Display Board Viewer

Follows the live board for the courts of the user's hearings today.
Loads the cached state over REST, then subscribes to the push channel.
If the channel keeps failing, falls back to polling.

Usage:
    python3 viewer_client.py --user-id u1
    python3 viewer_client.py --user-id u1 --api-url http://localhost:8007
"""

import argparse
import asyncio
import json
import logging
from typing import Any, Callable, Dict, List, Optional

import aiohttp

from config import (
    VIEWER_API_URL,
    VIEWER_MAX_RECONNECTS,
    VIEWER_RECONNECT_DELAY,
    VIEWER_POLL_INTERVAL,
)
from models import DisplayBoardEntry

logger = logging.getLogger(__name__)

STATUS_STYLES = [
    (("PROGRESS", "HEARING"), "active"),
    (("BREAK", "PAUSE"), "paused"),
    (("RESERVED", "JUDGMENT"), "reserved"),
    (("CLOSED", "END"), "closed"),
]


def status_style(status: Optional[str]) -> str:
    """Visual category for a board status"""
    if not status:
        return "neutral"
    upper = status.upper()
    for keywords, style in STATUS_STYLES:
        if any(k in upper for k in keywords):
            return style
    return "neutral"


def to_ws_url(api_url: str) -> str:
    base = api_url.rstrip("/")
    if base.startswith("https://"):
        base = "wss://" + base[len("https://"):]
    elif base.startswith("http://"):
        base = "ws://" + base[len("http://"):]
    return f"{base}/ws/display-board"


class DisplayBoardView:
    """
    The viewer's in-memory copy of the boards it follows

    Boards are keyed by court id and always replaced whole, since each push
    carries the court's full snapshot.
    """

    def __init__(self):
        self.hearings: List[Dict[str, Any]] = []
        self.boards: Dict[str, List[Dict[str, Any]]] = {}
        self.court_names: Dict[str, str] = {}
        self.last_update: Dict[str, str] = {}

    @property
    def court_ids(self) -> List[str]:
        return sorted({h["courtId"] for h in self.hearings if h.get("courtId")})

    def load(self, payload: Dict[str, Any]) -> None:
        """Reset from a GET /display-board response"""
        self.hearings = payload.get("userHearings") or []
        self.boards = {}
        for hearing in self.hearings:
            court = hearing.get("court") or {}
            if court.get("courtName"):
                self.court_names[hearing["courtId"]] = court["courtName"]

        for record in payload.get("allCourtData") or []:
            self.boards.setdefault(record["courtId"], []).append(
                DisplayBoardEntry.from_dict(record).to_dict()
            )
            self.last_update[record["courtId"]] = max(
                self.last_update.get(record["courtId"], ""), record.get("lastUpdated") or ""
            )

    def apply_update(self, event: Dict[str, Any]) -> bool:
        """Replace a court's board with a pushed snapshot; ignores courts not followed"""
        court_id = event.get("courtId")
        if court_id not in self.court_ids:
            return False
        self.boards[court_id] = [DisplayBoardEntry.from_dict(e).to_dict() for e in event.get("entries") or []]
        if event.get("courtName"):
            self.court_names[court_id] = event["courtName"]
        self.last_update[court_id] = event.get("timestamp") or ""
        return True

    def is_user_hearing(self, court_id: str, court_number: str) -> bool:
        return any(
            h.get("courtId") == court_id and h.get("courtNumber") == court_number
            for h in self.hearings
        )

    def rows(self) -> List[Dict[str, Any]]:
        rows = []
        for court_id in sorted(self.boards):
            for entry in self.boards[court_id]:
                rows.append({
                    **entry,
                    "courtId": court_id,
                    "courtName": self.court_names.get(court_id, court_id),
                    "mine": self.is_user_hearing(court_id, entry["courtNumber"]),
                    "style": status_style(entry.get("status")),
                })
        return rows

    def render(self) -> str:
        if not self.hearings:
            return "No hearings scheduled for today"

        lines = []
        for row in self.rows():
            marker = "★" if row["mine"] else " "
            item = f"Item {row['itemNumber']}" if row["itemNumber"] else "-"
            lines.append(
                f"{marker} {row['courtName']:<30} Court #{row['courtNumber']:<5} "
                f"{item:<10} {row['status'] or '':<12} {row['caseNumber'] or ''}"
            )

        if not lines:
            for hearing in self.hearings:
                lines.append(
                    f"  Court #{hearing.get('courtNumber')} {hearing.get('caseNumber') or ''} - Awaiting Data"
                )
        return "\n".join(lines)


class DisplayBoardViewer:
    """Keeps a DisplayBoardView current over the push channel, with polling as fallback"""

    def __init__(self, api_url: str, user_id: str,
                 on_update: Optional[Callable[[DisplayBoardView], None]] = None,
                 max_reconnects: int = VIEWER_MAX_RECONNECTS,
                 reconnect_delay: float = VIEWER_RECONNECT_DELAY,
                 poll_interval: float = VIEWER_POLL_INTERVAL):
        self.api_url = api_url.rstrip("/")
        self.user_id = user_id
        self.on_update = on_update or (lambda view: None)
        self.max_reconnects = max_reconnects
        self.reconnect_delay = reconnect_delay
        self.poll_interval = poll_interval
        self.view = DisplayBoardView()
        self.subscribed = False

    async def refresh(self, session: aiohttp.ClientSession) -> None:
        """Reload the view from the cache over REST"""
        async with session.get(f"{self.api_url}/display-board") as response:
            response.raise_for_status()
            self.view.load(await response.json())
        self.on_update(self.view)

    def handle_message(self, message: Dict[str, Any]) -> None:
        message_type = message.get("type")
        if message_type == "subscribed":
            self.subscribed = True
        elif message_type == "display-update":
            if self.view.apply_update(message):
                self.on_update(self.view)
        elif message_type == "error":
            logger.warning(f"⚠️ Server rejected message: {message.get('message')}")

    async def listen(self, session: aiohttp.ClientSession) -> None:
        """Subscribe and apply pushes until the channel closes"""
        async with session.ws_connect(to_ws_url(self.api_url)) as ws:
            await ws.send_json({"type": "subscribe", "courtIds": self.view.court_ids})
            async for message in ws:
                if message.type == aiohttp.WSMsgType.TEXT:
                    self.handle_message(json.loads(message.data))
                elif message.type in (aiohttp.WSMsgType.CLOSED, aiohttp.WSMsgType.ERROR):
                    break

    async def poll_forever(self, session: aiohttp.ClientSession) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            try:
                await self.refresh(session)
            except aiohttp.ClientError as e:
                logger.warning(f"⚠️ Poll failed: {e}")

    async def run(self) -> None:
        async with aiohttp.ClientSession(headers={"X-User-Id": self.user_id}) as session:
            await self.refresh(session)
            if not self.view.court_ids:
                logger.info("📭 No hearings scheduled for today")
                return

            attempts = 0
            delay = self.reconnect_delay
            while attempts <= self.max_reconnects:
                self.subscribed = False
                try:
                    await self.listen(session)
                except aiohttp.ClientError as e:
                    logger.warning(f"⚠️ Push channel error: {e}")

                if self.subscribed:
                    # The channel worked before dropping, start the backoff over
                    attempts = 0
                    delay = self.reconnect_delay

                attempts += 1
                if attempts > self.max_reconnects:
                    break

                logger.info(f"🔄 Reconnecting in {delay} seconds (attempt {attempts}/{self.max_reconnects})...")
                await asyncio.sleep(delay)
                delay *= 2  # Exponential backoff

                # Pushes missed while disconnected are not replayed
                try:
                    await self.refresh(session)
                except aiohttp.ClientError as e:
                    logger.warning(f"⚠️ Resync failed: {e}")

            logger.warning("❌ Push channel unavailable, falling back to polling")
            await self.poll_forever(session)


def main():
    parser = argparse.ArgumentParser(description="Follow live court display boards for today's hearings")
    parser.add_argument("--user-id", required=True, help="User whose hearings select the courts")
    parser.add_argument("--api-url", default=VIEWER_API_URL, help="Display Board API base URL")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')

    def print_board(view: DisplayBoardView):
        print("=" * 70)
        print(view.render())

    viewer = DisplayBoardViewer(args.api_url, args.user_id, on_update=print_board)
    try:
        asyncio.run(viewer.run())
    except KeyboardInterrupt:
        print("\n🛑 Viewer stopped")


if __name__ == "__main__":
    main()
