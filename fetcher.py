#!/usr/bin/env python3
"""
Display board fetcher
"""

import logging

import requests

from config import FETCH_HEADERS, FETCH_TIMEOUT
from models import FetchResult

logger = logging.getLogger(__name__)


def fetch_display_board(url: str, timeout: float = FETCH_TIMEOUT) -> FetchResult:
    """
    Fetch a court display board page with browser-like headers

    A single attempt is made. Every failure is returned as a FetchResult with
    ok=False; nothing is raised to the caller.
    """
    try:
        response = requests.get(url, headers=FETCH_HEADERS, timeout=(timeout, timeout))
    except requests.Timeout:
        logger.warning(f"⚠️ Timed out after {timeout}s fetching {url}")
        return FetchResult(ok=False, message=f"Request timed out after {timeout} seconds")
    except Exception as e:
        logger.warning(f"⚠️ Error fetching {url}: {e}")
        return FetchResult(ok=False, message=str(e) or e.__class__.__name__)

    if not 200 <= response.status_code < 300:
        logger.warning(f"⚠️ {url} returned status {response.status_code}")
        return FetchResult(
            ok=False,
            http_status=response.status_code,
            message=f"HTTP {response.status_code}: {response.reason}",
        )

    # Courts often omit the charset header; bs4 sniffs the <meta> tag or the bytes instead
    logger.debug(f"Fetched {len(response.content)} bytes from {url}")
    return FetchResult(ok=True, html=response.content, http_status=response.status_code)
