#!/usr/bin/env python3
"""
Configuration settings for the Display Board service
"""

import os

# === Elasticsearch Configuration ===
ES_HOST = os.getenv("ES_HOST", "http://localhost:9200")
DISPLAY_BOARD_INDEX = "display_board_cache"
COURTS_INDEX = "courts"
HEARINGS_INDEX = "hearings"
MEMBERSHIPS_INDEX = "workspace_members"

# === Connection Retry Configuration ===
MAX_RETRIES = 5  # Maximum number of connection retry attempts
RETRY_DELAY = 2  # Initial delay between retries in seconds (will increase exponentially)

# === Scraping Configuration ===
SCRAPE_BATCH_SIZE = 3  # Courts fetched concurrently per batch
FETCH_TIMEOUT = 20  # Seconds, applied to both connect and read
FETCH_DEADLINE = 45  # Overall cap on one court fetch, body trickle included
FETCH_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
    "Cache-Control": "no-cache",
}

# === Monitoring Configuration ===
CHECK_INTERVAL = 60  # Scrape all configured courts every 60 seconds
MONITOR_AUTOSTART = os.getenv("MONITOR_AUTOSTART", "true").lower() == "true"

# === Freshness Thresholds (minutes) ===
FRESH_MINUTES = 5
STALE_MINUTES = 30

# === Fan-out Configuration ===
SUBSCRIBER_QUEUE_SIZE = 100  # Pending pushes per connection before it is dropped

# === Viewer Configuration ===
VIEWER_API_URL = os.getenv("VIEWER_API_URL", "http://localhost:8007")
VIEWER_MAX_RECONNECTS = 5
VIEWER_RECONNECT_DELAY = 2  # Initial delay in seconds (doubles per attempt)
VIEWER_POLL_INTERVAL = 60

# === API Configuration ===
API_HOST = "0.0.0.0"
API_PORT = 8007
API_TITLE = "Display Board API"
API_DESCRIPTION = "Scrapes court display boards, caches them and pushes live updates"
API_VERSION = "1.0.0"

# === Logging Configuration ===
LOG_FILE = "display_board.log"
LOG_LEVEL = "INFO"
LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'
