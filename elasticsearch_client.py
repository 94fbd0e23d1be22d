#!/usr/bin/env python3
"""
Elasticsearch client operations and the display board cache store
"""

from elasticsearch import Elasticsearch
from typing import Any, Dict, List, Optional
import hashlib
import time
import logging
from datetime import datetime, timezone

from config import ES_HOST, DISPLAY_BOARD_INDEX, MAX_RETRIES, RETRY_DELAY, FRESH_MINUTES, STALE_MINUTES
from models import DisplayBoardEntry
from schema import INDEX_MAPPINGS

logger = logging.getLogger(__name__)

_UNSET = object()

MAX_RECORDS = 1000


def connect_to_elasticsearch(es: Elasticsearch, retry: bool = True) -> bool:
    """Check the Elasticsearch connection with retry logic"""
    retries = 0
    delay = RETRY_DELAY

    while True:
        try:
            if not es.ping():
                raise Exception(f"Failed to ping Elasticsearch at {ES_HOST}")

            logger.info("✅ Connected to Elasticsearch successfully")
            return True

        except Exception as e:
            retries += 1
            if not retry or retries >= MAX_RETRIES:
                logger.error(f"❌ Error connecting to Elasticsearch after {retries} attempts: {e}")
                return False

            logger.warning(f"⚠️ Failed to connect to Elasticsearch (attempt {retries}/{MAX_RETRIES}): {e}")
            logger.info(f"🔄 Retrying in {delay} seconds...")
            time.sleep(delay)
            delay *= 2  # Exponential backoff


def ensure_indices(es: Elasticsearch) -> None:
    """Create any missing index with its mapping"""
    for index_name, mappings in INDEX_MAPPINGS.items():
        if not es.indices.exists(index=index_name):
            es.indices.create(index=index_name, mappings=mappings)
            logger.info(f"Created index '{index_name}'")


def get_cache_key(court_id: str, court_number: str) -> str:
    """Document id for a (court, court number) pair"""
    return hashlib.md5(f"{court_id}|{court_number}".encode('utf-8')).hexdigest()


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def classify_freshness(last_updated: Optional[datetime], now: Optional[datetime] = None) -> str:
    """Label cache age: Fresh (<5 min), Stale (<30 min), Outdated, or Never Synced"""
    if last_updated is None:
        return "Never Synced"
    now = now or datetime.now(timezone.utc)
    minutes_ago = (now - last_updated).total_seconds() / 60
    if minutes_ago < FRESH_MINUTES:
        return "Fresh"
    if minutes_ago < STALE_MINUTES:
        return "Stale"
    return "Outdated"


class DisplayCacheStore:
    """
    Point-in-time cache of display board rows keyed by (court id, court number)

    Writes go through upsert only; each key maps to a single document, so
    concurrent writers on different keys never conflict and repeated writes
    on the same key are last-write-wins. Nothing here expires records;
    readers judge staleness from lastUpdated.
    """

    def __init__(self, es: Elasticsearch, index: str = DISPLAY_BOARD_INDEX):
        self.es = es
        self.index = index

    @staticmethod
    def to_record(hit: Dict[str, Any]) -> Dict[str, Any]:
        source = hit['_source']
        return {
            "id": hit['_id'],
            "courtId": source.get('court_id'),
            "courtNumber": source.get('court_number'),
            "itemNumber": source.get('item_number'),
            "caseNumber": source.get('case_number'),
            "caseTitle": source.get('case_title'),
            "judgeName": source.get('judge_name'),
            "vcLink": source.get('vc_link'),
            "status": source.get('status'),
            "rawData": source.get('raw_data'),
            "lastUpdated": source.get('last_updated'),
        }

    def upsert(self, court_id: str, entry: DisplayBoardEntry, raw_data: Any = _UNSET,
               refresh: bool = True) -> Dict[str, Any]:
        """
        Insert or replace the cached row for (court_id, entry.court_number)

        Args:
            court_id: Court the board belongs to
            entry: Parsed or externally supplied entry
            raw_data: Opaque source payload; defaults to the entry itself
            refresh: Wait until the write is visible to searches

        Returns:
            The stored record
        """
        doc_id = get_cache_key(court_id, entry.court_number)
        document = {
            "court_id": court_id,
            "court_number": entry.court_number,
            "item_number": entry.item_number,
            "case_number": entry.case_number,
            "case_title": entry.case_title,
            "judge_name": entry.judge_name,
            "vc_link": entry.vc_link,
            "status": entry.status,
            "raw_data": entry.to_dict() if raw_data is _UNSET else raw_data,
            "last_updated": datetime.now(timezone.utc).isoformat(),
        }
        self.es.index(index=self.index, id=doc_id, document=document,
                      refresh="wait_for" if refresh else False)
        logger.debug(f"Upserted cache row {court_id}/{entry.court_number}")
        return self.to_record({"_id": doc_id, "_source": document})

    def upsert_many(self, court_id: str, entries: List[DisplayBoardEntry],
                    raw_data: Optional[List[Any]] = None) -> List[Dict[str, Any]]:
        """Upsert a court's whole board, refreshing the index once after the last write"""
        raw_items = raw_data if raw_data is not None else [_UNSET] * len(entries)
        records = [
            self.upsert(court_id, entry, raw_data=raw, refresh=False)
            for entry, raw in zip(entries, raw_items)
        ]
        if records:
            self.es.indices.refresh(index=self.index)
        return records

    def _search(self, filters: List[Dict], sort: List[Dict], size: int = MAX_RECORDS) -> List[Dict[str, Any]]:
        response = self.es.search(
            index=self.index,
            query={"bool": {"filter": filters}},
            sort=sort,
            size=size,
        )
        return [self.to_record(hit) for hit in response['hits']['hits']]

    def get(self, court_id: str, court_number: Optional[str] = None) -> List[Dict[str, Any]]:
        """Cached rows for a court, optionally narrowed to one court number"""
        filters = [{"term": {"court_id": court_id}}]
        if court_number:
            filters.append({"term": {"court_number": court_number}})
        return self._search(filters, sort=[{"court_number": {"order": "asc"}}])

    def get_many(self, court_ids: List[str]) -> List[Dict[str, Any]]:
        """Cached rows for several courts, ordered by court then court number"""
        if not court_ids:
            return []
        return self._search(
            [{"terms": {"court_id": list(court_ids)}}],
            sort=[{"court_id": {"order": "asc"}}, {"court_number": {"order": "asc"}}],
        )

    def latest(self, court_id: str) -> Optional[datetime]:
        """Most recent lastUpdated across a court's rows, or None if never synced"""
        records = self._search(
            [{"term": {"court_id": court_id}}],
            sort=[{"last_updated": {"order": "desc"}}],
            size=1,
        )
        if not records:
            return None
        return parse_timestamp(records[0]["lastUpdated"])

    def count(self, court_id: str) -> int:
        response = self.es.count(index=self.index, query={"term": {"court_id": court_id}})
        return response['count']

    def current_entries(self, court_id: str) -> List[Dict[str, Any]]:
        """The court's full cached board as wire-format entries"""
        return [
            {
                "courtNumber": r["courtNumber"],
                "itemNumber": r["itemNumber"],
                "caseNumber": r["caseNumber"],
                "caseTitle": r["caseTitle"],
                "judgeName": r["judgeName"],
                "vcLink": r["vcLink"],
                "status": r["status"],
            }
            for r in self.get(court_id)
        ]
