#!/usr/bin/env python3
"""
Court Directory
Read-only access to courts, workspace memberships and hearings kept by the
case management side of the application
"""

import logging
from datetime import date, timedelta
from typing import Dict, List, Optional

from elasticsearch import Elasticsearch

from config import COURTS_INDEX, HEARINGS_INDEX, MEMBERSHIPS_INDEX
from models import Court, UserHearing

logger = logging.getLogger(__name__)

MAX_RESULTS = 1000


class CourtDirectory:
    """
    Looks up courts and the caller's hearings

    Courts without a display_board_url are never scraped.
    """

    def __init__(self, es: Elasticsearch):
        self.es = es

    @staticmethod
    def _to_court(hit: Dict) -> Court:
        source = hit['_source']
        return Court(
            id=hit['_id'],
            court_name=source.get('court_name', ''),
            display_board_url=source.get('display_board_url') or None,
            court_type=source.get('court_type'),
            city=source.get('city'),
        )

    def get_court(self, court_id: str) -> Optional[Court]:
        return self.get_courts([court_id]).get(court_id)

    def get_courts(self, court_ids: List[str]) -> Dict[str, Court]:
        if not court_ids:
            return {}
        response = self.es.search(
            index=COURTS_INDEX,
            query={"ids": {"values": list(court_ids)}},
            size=MAX_RESULTS,
        )
        return {hit['_id']: self._to_court(hit) for hit in response['hits']['hits']}

    def list_display_board_courts(self) -> List[Court]:
        """All courts with a display board URL, sorted by name"""
        response = self.es.search(
            index=COURTS_INDEX,
            query={"bool": {"filter": [{"exists": {"field": "display_board_url"}}]}},
            sort=[{"court_name": {"order": "asc"}}],
            size=MAX_RESULTS,
        )
        courts = [self._to_court(hit) for hit in response['hits']['hits']]
        return [c for c in courts if c.display_board_url]

    def get_workspace_ids(self, user_id: str) -> List[str]:
        response = self.es.search(
            index=MEMBERSHIPS_INDEX,
            query={"bool": {"filter": [{"term": {"user_id": user_id}}]}},
            size=MAX_RESULTS,
        )
        return [hit['_source']['workspace_id'] for hit in response['hits']['hits']]

    def get_todays_hearings(self, user_id: str, today: Optional[date] = None) -> List[UserHearing]:
        """
        Hearings scheduled today in any workspace the user belongs to

        Args:
            user_id: Caller identity
            today: Day to look up, defaults to the local date

        Returns:
            One UserHearing per hearing whose case is attached to a court
        """
        workspace_ids = self.get_workspace_ids(user_id)
        if not workspace_ids:
            return []

        today = today or date.today()
        tomorrow = today + timedelta(days=1)
        response = self.es.search(
            index=HEARINGS_INDEX,
            query={"bool": {"filter": [
                {"terms": {"workspace_id": workspace_ids}},
                {"range": {"hearing_date": {"gte": today.isoformat(), "lt": tomorrow.isoformat()}}},
            ]}},
            size=MAX_RESULTS,
        )

        hearings = [hit['_source'] for hit in response['hits']['hits']]
        hearings = [h for h in hearings if (h.get('case') or {}).get('court_id')]
        courts = self.get_courts(sorted({h['case']['court_id'] for h in hearings}))

        result = []
        for hearing in hearings:
            case = hearing['case']
            court = courts.get(case['court_id'])
            result.append(UserHearing(
                court_id=case['court_id'],
                court_number=hearing.get('court_number'),
                case_number=case.get('case_number'),
                case_title=case.get('title'),
                court={
                    "id": court.id,
                    "courtName": court.court_name,
                    "displayBoardUrl": court.display_board_url,
                } if court else None,
            ))

        logger.debug(f"Found {len(result)} hearings today for user {user_id}")
        return result
