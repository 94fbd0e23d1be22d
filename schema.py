#!/usr/bin/env python3
"""
Elasticsearch Index Mappings
This file contains the mappings for every index the service reads or writes
"""

from config import DISPLAY_BOARD_INDEX, COURTS_INDEX, HEARINGS_INDEX, MEMBERSHIPS_INDEX

DISPLAY_BOARD_MAPPING = {
    "properties": {
        "court_id": {"type": "keyword"},
        "court_number": {"type": "keyword"},
        "item_number": {"type": "keyword"},
        "case_number": {"type": "keyword"},
        "case_title": {"type": "text"},
        "judge_name": {"type": "text"},
        "vc_link": {"type": "keyword", "index": False},
        "status": {"type": "keyword"},
        # Source row kept verbatim, never searched
        "raw_data": {"type": "object", "enabled": False},
        "last_updated": {"type": "date"}
    }
}

# Courts, hearings and memberships are owned by the case management side;
# the mappings only cover the fields read here.
COURTS_MAPPING = {
    "properties": {
        "court_name": {"type": "keyword"},
        "court_type": {"type": "keyword"},
        "city": {"type": "keyword"},
        "display_board_url": {"type": "keyword"}
    }
}

HEARINGS_MAPPING = {
    "properties": {
        "hearing_date": {"type": "date"},
        "court_number": {"type": "keyword"},
        "workspace_id": {"type": "keyword"},
        "case": {
            "properties": {
                "id": {"type": "keyword"},
                "case_number": {"type": "keyword"},
                "title": {"type": "text"},
                "court_id": {"type": "keyword"}
            }
        }
    }
}

MEMBERSHIPS_MAPPING = {
    "properties": {
        "user_id": {"type": "keyword"},
        "workspace_id": {"type": "keyword"}
    }
}

INDEX_MAPPINGS = {
    DISPLAY_BOARD_INDEX: DISPLAY_BOARD_MAPPING,
    COURTS_INDEX: COURTS_MAPPING,
    HEARINGS_INDEX: HEARINGS_MAPPING,
    MEMBERSHIPS_INDEX: MEMBERSHIPS_MAPPING,
}
