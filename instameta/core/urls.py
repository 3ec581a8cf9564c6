"""Instagram post URL parsing and validation."""

import re
from typing import Optional
from urllib.parse import urlsplit

# Applied in order; the last capture group is the post id
POST_ID_PATTERNS = (
    re.compile(r"/p/([A-Za-z0-9_-]+)"),
    re.compile(r"/reel/([A-Za-z0-9_-]+)"),
    re.compile(r"/reels/([A-Za-z0-9_-]+)"),
    re.compile(r"/tv/([A-Za-z0-9_-]+)"),
    re.compile(r"instagram\.com/([A-Za-z0-9_.]+)/p/([A-Za-z0-9_-]+)"),
    re.compile(r"instagram\.com/([A-Za-z0-9_.]+)/reel/([A-Za-z0-9_-]+)"),
)

_POST_PATH = re.compile(r"instagram\.com/(p|reel|reels|tv)/[A-Za-z0-9_-]+")
_OWNER_POST_PATH = re.compile(r"instagram\.com/[A-Za-z0-9_.]+/(p|reel|reels|tv)/[A-Za-z0-9_-]+")
_REEL_PATH = re.compile(r"/reels?/")


def extract_post_id(url: str) -> Optional[str]:
    """
    Extract the post shortcode from an Instagram URL.

    Args:
        url: Post, reel or IGTV URL (optionally owner-qualified)

    Returns:
        Shortcode, or None if no known path shape matches
    """
    if not url:
        return None
    for pattern in POST_ID_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(match.lastindex)
    return None


def _is_absolute_url(url: str) -> bool:
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    if parts.scheme not in ("http", "https") or not parts.hostname:
        return False
    return "." in parts.hostname and not any(ch.isspace() for ch in url)


def validate_instagram_url(url: str) -> bool:
    """Check that ``url`` is an absolute URL pointing at an Instagram post or reel."""
    if not url or not _is_absolute_url(url):
        return False
    return bool(_POST_PATH.search(url) or _OWNER_POST_PATH.search(url))


def is_reel_url(url: str) -> bool:
    """Reels live under ``/reel/`` or ``/reels/``, optionally owner-qualified."""
    return bool(url) and bool(_REEL_PATH.search(url))
