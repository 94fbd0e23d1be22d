#!/usr/bin/env python3
"""
Format Detector
Maps a display board URL to the table layout used by that court's website.

New courts are supported by appending a rule to PARSER_RULES; the first rule
whose predicate matches the URL wins, otherwise DEFAULT_CONFIG is used.
"""

import logging
from typing import Callable, List, Tuple

from models import ColumnMapping, ParserConfig

logger = logging.getLogger(__name__)

GENERIC_COLUMNS = ColumnMapping(court=0, item=1, case_no=2, title=3, judge=4)

DEFAULT_CONFIG = ParserConfig(
    type="generic_table",
    table_selector="table tbody tr",
    column_mapping=GENERIC_COLUMNS,
)


def url_contains(*fragments: str) -> Callable[[str], bool]:
    """Build a predicate matching URLs that contain any of the fragments"""
    lowered = tuple(f.lower() for f in fragments)

    def predicate(url: str) -> bool:
        target = url.lower()
        return any(fragment in target for fragment in lowered)

    return predicate


PARSER_RULES: List[Tuple[Callable[[str], bool], ParserConfig]] = [
    # Delhi High Court
    (
        url_contains("delhihighcourt.nic.in"),
        ParserConfig(
            type="delhi_hc",
            table_selector="table tbody tr",
            column_mapping=ColumnMapping(court=0, item=1, judge=2, case_no=3, title=4, vc_link=5),
        ),
    ),
    # Bombay High Court
    (
        url_contains("bombayhighcourt."),
        ParserConfig(
            type="generic_table",
            table_selector="table.display-board tbody tr",
            column_mapping=GENERIC_COLUMNS,
        ),
    ),
    # Madras High Court
    (
        url_contains("mhc.gov.in", "hcmadras."),
        ParserConfig(type="generic_table", table_selector="table tbody tr", column_mapping=GENERIC_COLUMNS),
    ),
    # Karnataka High Court
    (
        url_contains("karnatakajudiciary.", "hckarnataka."),
        ParserConfig(type="generic_table", table_selector="table tbody tr", column_mapping=GENERIC_COLUMNS),
    ),
]


def detect_parser(url: str) -> ParserConfig:
    """
    Pick the parser configuration for a display board URL

    Args:
        url: Display board URL of a court

    Returns:
        The first matching rule's ParserConfig, or DEFAULT_CONFIG
    """
    for predicate, config in PARSER_RULES:
        if predicate(url):
            logger.debug(f"Detected parser '{config.type}' for {url}")
            return config

    logger.debug(f"No specific parser for {url}, using generic table")
    return DEFAULT_CONFIG
