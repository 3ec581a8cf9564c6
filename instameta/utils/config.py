"""Configuration management for InstaMeta."""

import os
from pathlib import Path
from typing import FrozenSet, List, Tuple

# Logging configuration (console only unless a log file is set)
LOG_FILE = Path(os.environ["INSTAMETA_LOG_FILE"]) if os.environ.get("INSTAMETA_LOG_FILE") else None
LOG_LEVEL = os.environ.get("INSTAMETA_LOG_LEVEL", "INFO").upper()

# Retry configuration
MAX_RETRIES = 3  # Retries after the first attempt (4 attempts total)
RETRY_DELAY = 2.0  # Seconds, multiplied by the attempt number

# Cache configuration
CACHE_TTL = 600.0  # Seconds (10 minutes)

# Batch configuration
MAX_CONCURRENT_EXTRACTIONS = 3

# HTTP configuration
REQUEST_TIMEOUT = 15.0  # Seconds
PROBE_TIMEOUT = 10.0  # Seconds
MAX_REDIRECTS = 5

# User agent pool for rotation
USER_AGENTS: List[str] = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.1 Safari/605.1.15",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
]

# Instagram CDN markers
CDN_HOST_MARKER = "cdninstagram.com"
CDN_PATH_MARKER = "scontent"

# Body markers that mean the page is behind a login wall
LOGIN_WALL_MARKERS: Tuple[str, ...] = (
    "login_and_signup_page",
    '"require_login"',
    "login/?next=",
)

# Body markers for age-restricted or sensitive posts
RESTRICTION_MARKERS: Tuple[str, ...] = (
    "age_restricted",
    "sensitive_content",
)

# Phrases that mark text as page chrome rather than a caption
BOILERPLATE_PHRASES: Tuple[str, ...] = (
    "more posts",
    "see more",
    "related posts",
)

# First path segments that are never a username
RESERVED_PATH_SEGMENTS: FrozenSet[str] = frozenset({
    "p",
    "reel",
    "reels",
    "tv",
    "stories",
    "explore",
    "www",
    "rsrc.php",
})

# Asset path fragments that leak into username regexes
ASSET_PATH_MARKERS: Tuple[str, ...] = ("rsrc", ".php")

# App information
APP_NAME = "instameta"
APP_VERSION = "0.1.0"
