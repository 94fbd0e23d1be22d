"""
Parsers Module
Format detection and table parsing for court display boards
"""

from .format_detector import detect_parser, PARSER_RULES, DEFAULT_CONFIG
from .board_parser import parse_display_board

__all__ = [
    'detect_parser',
    'parse_display_board',
    'PARSER_RULES',
    'DEFAULT_CONFIG'
]
