#!/usr/bin/env python3
"""
Data models and type definitions
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel

# Cell values that mean "no data" on a display board
NULL_SENTINELS = ("*", "-", "NA", "")

STATUS_IN_PROGRESS = "IN PROGRESS"
STATUS_WAITING = "WAITING"


@dataclass
class DisplayBoardEntry:
    """One courtroom row as read from a court's display board"""
    court_number: str
    item_number: Optional[str] = None
    case_number: Optional[str] = None
    case_title: Optional[str] = None
    judge_name: Optional[str] = None
    vc_link: Optional[str] = None
    status: Optional[str] = STATUS_WAITING

    def to_dict(self) -> Dict[str, Any]:
        return {
            "courtNumber": self.court_number,
            "itemNumber": self.item_number,
            "caseNumber": self.case_number,
            "caseTitle": self.case_title,
            "judgeName": self.judge_name,
            "vcLink": self.vc_link,
            "status": self.status,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DisplayBoardEntry":
        return cls(
            court_number=str(data["courtNumber"]),
            item_number=data.get("itemNumber") or None,
            case_number=data.get("caseNumber") or None,
            case_title=data.get("caseTitle") or None,
            judge_name=data.get("judgeName") or None,
            vc_link=data.get("vcLink") or None,
            status=data.get("status") or None,
        )


@dataclass(frozen=True)
class ColumnMapping:
    """Positional cell indices for the logical columns of a board"""
    court: Optional[int] = None
    item: Optional[int] = None
    judge: Optional[int] = None
    case_no: Optional[int] = None
    title: Optional[int] = None
    vc_link: Optional[int] = None


@dataclass(frozen=True)
class ParserConfig:
    type: str
    table_selector: str = "table tbody tr"
    column_mapping: ColumnMapping = field(default_factory=ColumnMapping)


@dataclass
class FetchResult:
    ok: bool
    # Raw body bytes from the fetcher, so the parser decodes with the page's charset
    html: Optional[Union[str, bytes]] = None
    http_status: Optional[int] = None
    message: Optional[str] = None


@dataclass
class Court:
    id: str
    court_name: str
    display_board_url: Optional[str] = None
    court_type: Optional[str] = None
    city: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "courtName": self.court_name,
            "displayBoardUrl": self.display_board_url,
            "courtType": self.court_type,
            "city": self.city,
        }


@dataclass
class ScrapingResult:
    court_id: str
    court_name: str
    success: bool
    entries_count: int = 0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "courtId": self.court_id,
            "courtName": self.court_name,
            "success": self.success,
            "entriesCount": self.entries_count,
        }
        if self.error is not None:
            result["error"] = self.error
        return result


@dataclass
class UserHearing:
    """A hearing of the caller scheduled for today, reduced to what the board needs"""
    court_id: str
    court_number: Optional[str]
    case_number: Optional[str]
    case_title: Optional[str]
    court: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "courtId": self.court_id,
            "courtNumber": self.court_number,
            "caseNumber": self.case_number,
            "caseTitle": self.case_title,
            "court": self.court,
        }


# === Request bodies ===

class CacheEntryIn(BaseModel):
    courtNumber: str
    itemNumber: Optional[str] = None
    caseNumber: Optional[str] = None
    caseTitle: Optional[str] = None
    status: Optional[str] = None
    judgeName: Optional[str] = None
    vcLink: Optional[str] = None
    rawData: Optional[Any] = None


class CacheUpdateRequest(BaseModel):
    courtId: Optional[str] = None
    entries: Optional[List[CacheEntryIn]] = None


class ScrapeRequest(BaseModel):
    courtId: Optional[str] = None
    scrapeAll: bool = False
    url: Optional[str] = None


# === Global State ===
monitor_state = {
    "is_running": False,
    "last_check": None,
    "total_runs": 0,
    "last_run_courts": 0,
    "last_run_successful": 0,
    "errors": []
}


def summarize_results(results: List[ScrapingResult]) -> Dict[str, int]:
    successful = [r for r in results if r.success]
    return {
        "total": len(results),
        "successful": len(successful),
        "failed": len(results) - len(successful),
        "totalEntries": sum(r.entries_count for r in successful),
    }
