"""
Single-field extractors for Instagram post HTML.

Each extractor walks an ordered list of heuristics and stops at the first
one that produces a usable value. Nothing here raises on odd markup; a
heuristic that cannot find its field simply yields nothing.
"""

import re
from typing import Callable, Optional, Sequence

from bs4 import BeautifulSoup

from instameta.core.urls import extract_post_id
from instameta.utils.config import (
    ASSET_PATH_MARKERS,
    BOILERPLATE_PHRASES,
    CDN_HOST_MARKER,
    CDN_PATH_MARKER,
    RESERVED_PATH_SEGMENTS,
)
from instameta.utils.logging import get_logger

logger = get_logger(__name__)

UNKNOWN_AUTHOR = "unknown"

CaptionTier = Callable[[str, BeautifulSoup, str], Optional[str]]


def make_soup(html: str) -> BeautifulSoup:
    """Parse HTML with the lxml backend."""
    return BeautifulSoup(html, "lxml")


def meta_content(soup: BeautifulSoup, attr: str, value: str) -> Optional[str]:
    """Return the ``content`` of ``<meta {attr}="{value}">`` if present and non-empty."""
    tag = soup.find("meta", attrs={attr: value})
    if tag is None:
        return None
    content = tag.get("content")
    return content or None


def has_boilerplate(text: str) -> bool:
    lowered = text.lower()
    return any(phrase in lowered for phrase in BOILERPLATE_PHRASES)


# ---------------------------------------------------------------------------
# URLs
# ---------------------------------------------------------------------------

_EDGE_QUOTES = re.compile(r"^[\"']|[\"']$")


def clean_media_url(url: str) -> str:
    """Undo JSON escaping on a media URL and make it absolute."""
    url = url.replace("\\u0026", "&").replace("\\", "")
    url = _EDGE_QUOTES.sub("", url).strip()
    if url.startswith("//"):
        url = "https:" + url
    return url


_REEL_VIDEO_PATTERNS = (
    re.compile(r'"video_url":\s*"([^"]+\.mp4[^"]*?)"'),
    re.compile(r'"video_versions":\s*\[([^\]]+)\]'),
    re.compile(r'https://[^"]*scontent[^"]*\.cdninstagram\.com[^"]*\.mp4[^"]*'),
    re.compile(r'"clips_metadata":\s*\{[^}]*"original_sound_info"[^}]*\}'),
)
_VIDEO_URL_FIELD = re.compile(r'"video_url":\s*"([^"]+)"')
_URL_FIELD = re.compile(r'"url":\s*"([^"]+)"')


def is_cdn_video_url(url: str) -> bool:
    return (
        CDN_PATH_MARKER in url
        and "." + CDN_HOST_MARKER in url
        and ".mp4" in url
        and "video_versions" not in url
    )


def _video_url_candidate(text: str) -> Optional[str]:
    if "video_url" in text:
        match = _VIDEO_URL_FIELD.search(text)
        return match.group(1) if match else None
    if "video_versions" in text:
        match = _URL_FIELD.search(text)
        return match.group(1) if match else None
    if CDN_PATH_MARKER in text and ".mp4" in text:
        return text.replace('"', "").replace("'", "")
    return None


def find_reel_video_url(html: str) -> Optional[str]:
    """
    Scan raw HTML for a playable CDN ``.mp4`` URL.

    Looks at ``video_url`` fields, ``video_versions`` arrays, bare CDN
    links and ``clips_metadata`` blocks, in that order.
    """
    for pattern in _REEL_VIDEO_PATTERNS:
        for match in pattern.finditer(html):
            candidate = _video_url_candidate(match.group(0))
            if not candidate:
                continue
            candidate = clean_media_url(candidate)
            if is_cdn_video_url(candidate):
                logger.debug("Found reel video URL in page markup")
                return candidate
    return None


# ---------------------------------------------------------------------------
# Thumbnail
# ---------------------------------------------------------------------------

THUMBNAIL_META_SOURCES = (
    ("property", "og:image"),
    ("name", "twitter:image"),
    ("property", "og:image:url"),
)


def extract_thumbnail(html: str, soup: Optional[BeautifulSoup] = None) -> str:
    """Pick the best preview image from the page's meta tags."""
    soup = soup if soup is not None else make_soup(html)
    sources = [meta_content(soup, attr, value) for attr, value in THUMBNAIL_META_SOURCES]

    for source in sources:
        if source and CDN_HOST_MARKER in source:
            return clean_media_url(source)

    fallback = next((source for source in sources if source), "")
    return clean_media_url(fallback) if fallback else ""


# ---------------------------------------------------------------------------
# Caption
# ---------------------------------------------------------------------------

CAPTION_SELECTORS = (
    # Caption span classes of the current post layout
    "span.x193iq5w.xeuugli.x13faqbe.x1vvkbs.xt0psk2.x1i0vuye.xvs91rp.xo1l8bm"
    ".x5n08af.x10wh9bi.xpm28yp.x8viiok.x1o7cslx.x126k92a",
    'span[style*="line-height"]',
    'span[dir="auto"]',
    'article span:-soup-contains("#")',
    'div[data-testid="post-caption"] span',
)

CAPTION_JSON_PATTERNS = (
    re.compile(r'"edge_media_to_caption":\s*\{\s*"edges":\s*\[\s*\{\s*"node":\s*\{\s*"text":\s*"([^"]+)"'),
    re.compile(r'"caption":\s*\{\s*"text":\s*"([^"]+)"[^}]*"created_at"'),
    re.compile(r'"edges":\s*\[\s*\{\s*"node":\s*\{\s*"text":\s*"([^"]*#[^"]*)",'),
    re.compile(r'"caption":\s*\{[^}]*"text":\s*"([^"]+)"'),
    re.compile(r'"text":\s*"([^"]*#[^"]*)"'),
)

_QUOTED_HASHTAG_TEXT = re.compile(
    "[\"'“”]([^\"'“”]*#[^\"'“”]*)[\"'“”]"
)


def _caption_from_markup(html: str, soup: BeautifulSoup, source_url: str) -> Optional[str]:
    for selector in CAPTION_SELECTORS:
        longest = ""
        for element in soup.select(selector):
            text = element.get_text().strip()
            if (
                "#" in text
                and len(text) > 20
                and len(text) > len(longest)
                and not has_boilerplate(text)
            ):
                longest = text
        if longest:
            logger.debug(f"Caption from markup selector {selector!r}")
            return longest
    return None


def _caption_for_post_id(html: str, soup: BeautifulSoup, source_url: str) -> Optional[str]:
    post_id = extract_post_id(source_url) if source_url else None
    if not post_id:
        return None

    pid = re.escape(post_id)
    patterns = (
        rf'"shortcode":"{pid}"[^}}]*"caption":\s*\{{[^}}]*"text":\s*"([^"]+)"',
        rf'"{pid}"[^}}]*"edge_media_to_caption":\s*\{{[^}}]*"text":\s*"([^"]+)"',
        rf'"shortcode_media":[^}}]*"shortcode":"{pid}"[^}}]*"caption":[^}}]*"text":"([^"]+)"',
    )
    for pattern in patterns:
        match = re.search(pattern, html, re.IGNORECASE)
        if match and len(match.group(1)) > 10:
            logger.debug(f"Caption from JSON keyed on post id {post_id}")
            return match.group(1)
    return None


def _caption_from_json(html: str, soup: BeautifulSoup, source_url: str) -> Optional[str]:
    for pattern in CAPTION_JSON_PATTERNS:
        candidates = [m.group(1) for m in pattern.finditer(html) if len(m.group(1)) > 10]
        if not candidates:
            continue
        tagged = [text for text in candidates if "#" in text]
        # max() keeps the first of equally long candidates
        return max(tagged, key=len) if tagged else candidates[0]
    return None


def _caption_from_meta_description(html: str, soup: BeautifulSoup, source_url: str) -> Optional[str]:
    description = (
        meta_content(soup, "property", "og:description")
        or meta_content(soup, "name", "description")
    )
    if not description or "#" not in description:
        return None

    match = _QUOTED_HASHTAG_TEXT.search(description)
    if match:
        return match.group(1)

    part = next((chunk for chunk in description.split('"') if "#" in chunk), None)
    if part and len(part) > 20:
        return part
    return None


def _caption_from_article(html: str, soup: BeautifulSoup, source_url: str) -> Optional[str]:
    article_text = "".join(article.get_text() for article in soup.find_all("article"))
    if "#" not in article_text:
        return None
    for line in article_text.split("\n"):
        if "#" in line and 20 < len(line) < 500:
            return line.strip()
    return None


CAPTION_TIERS: Sequence[CaptionTier] = (
    _caption_from_markup,
    _caption_for_post_id,
    _caption_from_json,
    _caption_from_meta_description,
    _caption_from_article,
)

_UNICODE_ESCAPE = re.compile(r"\\u[0-9a-fA-F]{4}")
_BACKSLASHES = re.compile(r"\\+")
_HTML_TAG = re.compile(r"<[^>]*>")
_HTML_ENTITIES = (
    ("&nbsp;", " "),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&amp;", "&"),
)


def _clean_caption_once(text: str) -> str:
    text = text.replace("\\n", "\n").replace('\\"', '"')
    text = _UNICODE_ESCAPE.sub("", text)
    text = _BACKSLASHES.sub("", text)
    for entity, char in _HTML_ENTITIES:
        text = text.replace(entity, char)
    text = _HTML_TAG.sub("", text)
    return text.strip()


def clean_caption(text: str) -> str:
    """
    Strip escapes, entities and tags from a raw caption.

    Cleaning repeats until the text stops changing, so cleaning an already
    cleaned caption is a no-op. Every pass that changes the text shortens
    it, which bounds the loop. Captions shorter than 10 characters or
    containing boilerplate phrases are rejected as empty.
    """
    if not text:
        return ""

    previous = None
    while text != previous:
        previous, text = text, _clean_caption_once(text)

    if len(text) < 10 or has_boilerplate(text):
        return ""
    return text


def extract_caption(html: str, source_url: str = "", soup: Optional[BeautifulSoup] = None) -> str:
    """
    Extract the post caption from page HTML.

    Args:
        html: Raw page HTML
        source_url: URL the page was fetched from (enables post-id keyed search)
        soup: Pre-parsed document, parsed from ``html`` when omitted

    Returns:
        Cleaned caption, or empty string
    """
    soup = soup if soup is not None else make_soup(html)

    caption = ""
    for tier in CAPTION_TIERS:
        found = tier(html, soup, source_url)
        if found:
            caption = found
            break

    caption = clean_caption(caption)
    logger.debug(f"Final extracted caption length: {len(caption)}")
    return caption


# ---------------------------------------------------------------------------
# Author
# ---------------------------------------------------------------------------

_URL_OWNER = re.compile(r"""instagram\.com/([^/\s"'?]+)/""")

USERNAME_JSON_PATTERNS = (
    re.compile(r'"username":\s*"([^"]+)"'),
    re.compile(r'"owner":\s*\{[^}]*"username":\s*"([^"]+)"'),
    re.compile(r'"user":\s*\{[^}]*"username":\s*"([^"]+)"'),
    re.compile(r'"account_username":\s*"([^"]+)"'),
)

TITLE_AUTHOR_PATTERNS = (
    re.compile(r"\(@([^)]+)\)"),
    re.compile(r"^([^(]+?)\s+\("),
    re.compile(r"^([^\s•]+)"),
)


def _looks_like_asset(value: str) -> bool:
    return any(marker in value for marker in ASSET_PATH_MARKERS)


def _owner_from_url_text(text: str) -> Optional[str]:
    match = _URL_OWNER.search(text)
    if not match:
        return None
    segment = match.group(1)
    if segment.lower() in RESERVED_PATH_SEGMENTS or len(segment) <= 1 or _looks_like_asset(segment):
        return None
    return segment


def _author_from_source_url(html: str, soup: BeautifulSoup, source_url: str) -> Optional[str]:
    return _owner_from_url_text(source_url) if source_url else None


def _author_from_html_url(html: str, soup: BeautifulSoup, source_url: str) -> Optional[str]:
    return _owner_from_url_text(html)


def _author_from_json(html: str, soup: BeautifulSoup, source_url: str) -> Optional[str]:
    for pattern in USERNAME_JSON_PATTERNS:
        match = pattern.search(html)
        if match and len(match.group(1)) > 1 and not _looks_like_asset(match.group(1)):
            return match.group(1)
    return None


def _author_from_title(html: str, soup: BeautifulSoup, source_url: str) -> Optional[str]:
    title = meta_content(soup, "property", "og:title")
    if not title:
        return None
    for pattern in TITLE_AUTHOR_PATTERNS:
        match = pattern.search(title)
        if (
            match
            and "Instagram" not in match.group(1)
            and "rsrc" not in match.group(1)
            and len(match.group(1)) > 1
        ):
            return match.group(1).strip()
    return None


AUTHOR_TIERS = (
    _author_from_source_url,
    _author_from_html_url,
    _author_from_json,
    _author_from_title,
)

_ON_INSTAGRAM_SUFFIX = re.compile(r"\s+on\s+Instagram.*$", re.IGNORECASE)
_BULLET_SUFFIX = re.compile(r"\s*•.*$")
_PAREN_SUFFIX = re.compile(r"\s*\(.*\)$")


def clean_author(author: Optional[str]) -> str:
    """Normalize a raw author string, falling back to :data:`UNKNOWN_AUTHOR`."""
    if author:
        author = author.replace('"', "").replace("'", "")
        author = _ON_INSTAGRAM_SUFFIX.sub("", author)
        author = _BULLET_SUFFIX.sub("", author)
        author = _PAREN_SUFFIX.sub("", author)
        author = author.strip()

    if not author or _looks_like_asset(author) or "Instagram" in author:
        return UNKNOWN_AUTHOR
    return author


def extract_author(html: str, source_url: str = "", soup: Optional[BeautifulSoup] = None) -> str:
    """Extract the post owner's username, or :data:`UNKNOWN_AUTHOR`."""
    soup = soup if soup is not None else make_soup(html)

    author = None
    for tier in AUTHOR_TIERS:
        author = tier(html, soup, source_url)
        if author:
            logger.debug(f"Author from {tier.__name__}: {author}")
            break

    return clean_author(author)
