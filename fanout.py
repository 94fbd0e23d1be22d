#!/usr/bin/env python3
"""
Fan-out Service
Pushes display board snapshots to connections subscribed to a court
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Set

from config import SUBSCRIBER_QUEUE_SIZE

logger = logging.getLogger(__name__)

DISPLAY_UPDATE = "display-update"

# WebSocket close code for "server error", sent to connections we give up on
CLOSE_CODE_DROPPED = 1011


class SubscriptionRegistry:
    """
    Maps each live connection to the set of court ids it follows

    One registry is created per running service. A connection is registered
    on connect with an empty set, its set is replaced by each subscribe, and
    the entry is discarded on disconnect.
    """

    def __init__(self):
        self._subscriptions: Dict[Any, Set[str]] = {}

    def add(self, connection) -> None:
        self._subscriptions.setdefault(connection, set())

    def subscribe(self, connection, court_ids: Iterable[str]) -> Set[str]:
        court_set = {str(c) for c in court_ids}
        self._subscriptions[connection] = court_set
        return court_set

    def unsubscribe(self, connection) -> None:
        if connection in self._subscriptions:
            self._subscriptions[connection] = set()

    def remove(self, connection) -> None:
        self._subscriptions.pop(connection, None)

    def courts_for(self, connection) -> Set[str]:
        return set(self._subscriptions.get(connection, ()))

    def subscribers(self, court_id: str) -> List[Any]:
        return [conn for conn, courts in self._subscriptions.items() if court_id in courts]

    def __contains__(self, connection) -> bool:
        return connection in self._subscriptions

    def __len__(self) -> int:
        return len(self._subscriptions)


class _Outbox:
    """Ordered pending pushes for one connection, drained by its own task"""

    def __init__(self, queue_size: int):
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self.task: Optional[asyncio.Task] = None


class FanoutService:
    """
    Delivers display-update events to subscribed connections

    A connection is anything with awaitable send_json(data) and close(code).
    Publishing only enqueues, so a slow client never delays the others; events
    for one connection are sent in the order they were published. Delivery is
    best-effort: a connection whose send fails or whose outbox overflows is
    dropped and closed, so the client knows to reconnect and resync.
    """

    def __init__(self, registry: Optional[SubscriptionRegistry] = None,
                 queue_size: int = SUBSCRIBER_QUEUE_SIZE):
        self.registry = registry if registry is not None else SubscriptionRegistry()
        self.queue_size = queue_size
        self._outboxes: Dict[Any, _Outbox] = {}
        self._closing: Set[asyncio.Task] = set()

    @property
    def connection_count(self) -> int:
        return len(self._outboxes)

    def connect(self, connection) -> None:
        """Register a connection and start its sender task"""
        if connection in self._outboxes:
            return
        outbox = _Outbox(self.queue_size)
        outbox.task = asyncio.create_task(self._send_loop(connection, outbox))
        self._outboxes[connection] = outbox
        self.registry.add(connection)
        logger.debug(f"Connection opened ({len(self._outboxes)} active)")

    def subscribe(self, connection, court_ids: Iterable[str]) -> Set[str]:
        if connection not in self._outboxes:
            raise KeyError("Connection is not registered")
        courts = self.registry.subscribe(connection, court_ids)
        logger.debug(f"Connection subscribed to {sorted(courts)}")
        return courts

    def unsubscribe(self, connection) -> None:
        self.registry.unsubscribe(connection)

    def send(self, connection, message: Dict[str, Any]) -> bool:
        """Queue a message for one connection behind any pending pushes"""
        outbox = self._outboxes.get(connection)
        if outbox is None:
            return False
        try:
            outbox.queue.put_nowait(message)
        except asyncio.QueueFull:
            return False
        return True

    async def disconnect(self, connection) -> None:
        """Forget a connection and stop its sender task"""
        outbox = self._drop(connection)
        if outbox and outbox.task and outbox.task is not asyncio.current_task():
            outbox.task.cancel()
            try:
                await outbox.task
            except asyncio.CancelledError:
                pass

    def _drop(self, connection) -> Optional[_Outbox]:
        self.registry.remove(connection)
        outbox = self._outboxes.pop(connection, None)
        if outbox:
            logger.debug(f"Connection dropped ({len(self._outboxes)} active)")
        return outbox

    async def _send_loop(self, connection, outbox: _Outbox) -> None:
        while True:
            event = await outbox.queue.get()
            try:
                await connection.send_json(event)
            except Exception as e:
                logger.debug(f"Push failed, dropping connection: {e}")
                self._drop(connection)
                self._discard_pending(outbox)
                self._schedule_close(connection)
                return
            finally:
                outbox.queue.task_done()

    def _schedule_close(self, connection) -> None:
        task = asyncio.create_task(self._close(connection))
        self._closing.add(task)
        task.add_done_callback(self._closing.discard)

    @staticmethod
    async def _close(connection) -> None:
        try:
            await connection.close(code=CLOSE_CODE_DROPPED)
        except Exception as e:
            logger.debug(f"Closing dropped connection failed: {e}")

    @staticmethod
    def _discard_pending(outbox: _Outbox) -> None:
        while not outbox.queue.empty():
            outbox.queue.get_nowait()
            outbox.queue.task_done()

    def publish(self, court_id: str, court_name: str, entries: List[Dict[str, Any]],
                timestamp: Optional[str] = None) -> int:
        """
        Queue a full snapshot of one court for every subscriber of that court

        Must be called from the event loop thread.

        Returns:
            Number of connections the event was queued for
        """
        event = {
            "type": DISPLAY_UPDATE,
            "courtId": court_id,
            "courtName": court_name,
            "entries": entries,
            "timestamp": timestamp or datetime.now(timezone.utc).isoformat(),
        }

        delivered = 0
        for connection in self.registry.subscribers(court_id):
            outbox = self._outboxes.get(connection)
            if outbox is None:
                continue
            try:
                outbox.queue.put_nowait(event)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning("⚠️ Subscriber outbox full, dropping connection")
                self._drop(connection)
                if outbox.task:
                    outbox.task.cancel()
                self._schedule_close(connection)

        logger.debug(f"Queued update for court {court_id} to {delivered} connections")
        return delivered

    async def flush(self) -> None:
        """Wait until every queued event has been handed to its connection"""
        for outbox in list(self._outboxes.values()):
            await outbox.queue.join()

    async def close(self) -> None:
        for connection in list(self._outboxes):
            await self.disconnect(connection)
        if self._closing:
            await asyncio.gather(*self._closing, return_exceptions=True)
