#!/usr/bin/env python3
"""
Board Parser
Extracts normalized display board entries from raw court HTML
"""

import logging
import re
from typing import List, Optional, Union

from bs4 import BeautifulSoup

from models import (
    DisplayBoardEntry,
    ParserConfig,
    NULL_SENTINELS,
    STATUS_IN_PROGRESS,
    STATUS_WAITING,
)

logger = logging.getLogger(__name__)

MIN_CELLS = 4
HEADER_MARKER = "court"
SERIAL_HEADER = "S.No"


def _cell_text(cells, index: Optional[int]) -> str:
    if index is None or index < 0 or index >= len(cells):
        return ""
    return cells[index].get_text().strip()


def _cell_link(cells, index: Optional[int]) -> Optional[str]:
    if index is None or index < 0 or index >= len(cells):
        return None
    anchor = cells[index].find("a")
    if anchor is None:
        return None
    href = anchor.get("href")
    if not href or href == "NA":
        return None
    return href


def _nullable(value: str) -> Optional[str]:
    return None if value in NULL_SENTINELS else value


def _is_header(court_text: str) -> bool:
    return HEADER_MARKER in court_text.lower() or court_text == SERIAL_HEADER


def _select_rows(soup: BeautifulSoup, selector: str):
    rows = soup.select(selector)
    # html.parser keeps the markup as written, so tables without an explicit
    # <tbody> only match once the tbody step is dropped from the selector
    if not rows and "tbody" in selector:
        fallback = re.sub(r"\s*\btbody\b\s*", " ", selector).strip()
        rows = soup.select(fallback)
    return rows


def parse_display_board(html: Union[str, bytes], config: ParserConfig) -> List[DisplayBoardEntry]:
    """
    Parse a display board page into entries

    Rows with fewer than four cells, an empty court cell, or a header-looking
    court cell are skipped. Never raises on malformed markup.

    Args:
        html: Raw page HTML, either text or undecoded bytes
        config: Layout returned by the format detector

    Returns:
        List of DisplayBoardEntry in page order
    """
    soup = BeautifulSoup(html or "", "html.parser")
    mapping = config.column_mapping
    entries = []

    for row in _select_rows(soup, config.table_selector):
        cells = row.find_all("td")
        if len(cells) < MIN_CELLS:
            continue

        court_text = _cell_text(cells, mapping.court)
        if not court_text or _is_header(court_text):
            continue

        item_number = _nullable(_cell_text(cells, mapping.item))
        digits = re.sub(r"\D", "", court_text)

        entries.append(DisplayBoardEntry(
            court_number=digits or court_text,
            item_number=item_number,
            case_number=_nullable(_cell_text(cells, mapping.case_no)),
            case_title=_nullable(_cell_text(cells, mapping.title)),
            judge_name=_nullable(_cell_text(cells, mapping.judge)),
            vc_link=_cell_link(cells, mapping.vc_link),
            status=STATUS_IN_PROGRESS if item_number is not None else STATUS_WAITING,
        ))

    logger.debug(f"Parsed {len(entries)} entries with '{config.type}' layout")
    return entries
