"""
Extraction strategies for Instagram post pages.

Every strategy takes a :class:`PageContext` and returns a MediaRecord or
None. Strategies do not know about each other; ordering and precedence
live in ``html_scraper``.
"""

import json
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterator, Optional

from bs4 import BeautifulSoup

from instameta.core.exceptions import ParsingError
from instameta.core.scrapers.fields import (
    UNKNOWN_AUTHOR,
    clean_author,
    clean_caption,
    clean_media_url,
    extract_author,
    extract_caption,
    extract_thumbnail,
    find_reel_video_url,
    make_soup,
    meta_content,
)
from instameta.core.scrapers.normalizer import dig, locate_media_object, normalize_media_object
from instameta.core.urls import extract_post_id, is_reel_url
from instameta.models.data_models import MediaRecord, MediaType, MediaVariant
from instameta.utils.config import CDN_HOST_MARKER
from instameta.utils.logging import get_logger

logger = get_logger(__name__)

_DECODER = json.JSONDecoder()


@dataclass
class PageContext:
    """One fetched page: raw HTML, its URL and a lazily parsed soup."""
    html: str
    source_url: str = ""
    _soup: Optional[BeautifulSoup] = field(default=None, repr=False)

    @property
    def soup(self) -> BeautifulSoup:
        if self._soup is None:
            self._soup = make_soup(self.html)
        return self._soup

    @property
    def post_id(self) -> str:
        return extract_post_id(self.source_url) or "unknown"

    @property
    def is_reel(self) -> bool:
        return is_reel_url(self.source_url)


def decode_json_at(text: str, index: int) -> Optional[Any]:
    """Decode the JSON value starting at ``text[index]``, ignoring trailing content."""
    try:
        value, _ = _DECODER.raw_decode(text, index)
    except json.JSONDecodeError:
        return None
    return value


def _video_record(page: PageContext, video_url: str, **extra: Any) -> MediaRecord:
    """Build a video record around a bare URL, resolving the other fields from markup."""
    soup = page.soup
    return MediaRecord(
        type=MediaType.VIDEO,
        post_id=page.post_id,
        author=extract_author(page.html, page.source_url, soup),
        caption=extract_caption(page.html, page.source_url, soup),
        timestamp=int(datetime.now(timezone.utc).timestamp()),
        is_reel=extra.pop("is_reel", page.is_reel),
        thumbnail=extract_thumbnail(page.html, soup) or None,
        video_url=video_url,
        duration=0.0,
        view_count=0,
        qualities=(MediaVariant("original", video_url),),
        **extra,
    )


# ---------------------------------------------------------------------------
# 1. Structured data (JSON-LD)
# ---------------------------------------------------------------------------

def _first(value: Any) -> Any:
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _iter_ld_blocks(soup: BeautifulSoup) -> Iterator[dict]:
    for script in soup.find_all("script", type="application/ld+json"):
        raw = script.string or script.get_text()
        if not raw:
            continue
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            continue
        for block in data if isinstance(data, list) else [data]:
            if isinstance(block, dict):
                yield block


def _str(value: Any, default: str = "") -> str:
    return value if isinstance(value, str) and value else default


def _epoch_from_iso(value: Any) -> Optional[int]:
    if not isinstance(value, str):
        return None
    try:
        return int(datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp())
    except ValueError:
        return None


def extract_from_structured_data(page: PageContext) -> Optional[MediaRecord]:
    """Use the first JSON-LD block that exposes a video ``contentUrl``."""
    for block in _iter_ld_blocks(page.soup):
        video = _first(block.get("video"))
        if not isinstance(video, dict) or not isinstance(video.get("contentUrl"), str):
            continue

        logger.debug("Found video data in JSON-LD")
        video_url = clean_media_url(video["contentUrl"])
        thumbnail = _first(video.get("thumbnailUrl"))
        author = _first(block.get("author"))
        author_name = author.get("name") if isinstance(author, dict) else author
        upload_date = block.get("uploadDate") or video.get("uploadDate")
        now = datetime.now(timezone.utc)
        width = video.get("width") if isinstance(video.get("width"), int) else 0
        height = video.get("height") if isinstance(video.get("height"), int) else 0

        return MediaRecord(
            type=MediaType.VIDEO,
            post_id=page.post_id,
            author=clean_author(author_name) if isinstance(author_name, str) else UNKNOWN_AUTHOR,
            caption=clean_caption(_str(block.get("description")) or _str(block.get("caption"))),
            timestamp=_epoch_from_iso(upload_date) or int(now.timestamp()),
            is_reel=page.is_reel,
            thumbnail=thumbnail if isinstance(thumbnail, str) else None,
            video_url=video_url,
            duration=0.0,
            view_count=0,
            qualities=(MediaVariant("original", video_url, width, height),),
            title=_str(block.get("headline")) or _str(block.get("name"), "Instagram Video"),
            upload_date=upload_date if isinstance(upload_date, str) else now.isoformat(),
        )
    return None


# ---------------------------------------------------------------------------
# 2. window._sharedData
# ---------------------------------------------------------------------------

_SHARED_DATA_SCRIPT = re.compile(r"window\._sharedData")
_SHARED_DATA_ASSIGNMENT = re.compile(r"window\._sharedData\s*=\s*(?=\{)")


def extract_from_shared_data(page: PageContext) -> Optional[MediaRecord]:
    """Read the post from ``entry_data.PostPage[0].graphql.shortcode_media``."""
    for script in page.soup.find_all("script", string=_SHARED_DATA_SCRIPT):
        text = script.string
        match = _SHARED_DATA_ASSIGNMENT.search(text)
        if not match:
            continue

        shared_data = decode_json_at(text, match.end())
        if shared_data is None:
            raise ParsingError("Failed to parse window._sharedData")

        logger.debug("Found window._sharedData")
        media = dig(shared_data, "entry_data", "PostPage", 0, "graphql", "shortcode_media")
        if media is not None:
            return normalize_media_object(media, page.source_url)
    return None


# ---------------------------------------------------------------------------
# 3. Reel-specific inline fields
# ---------------------------------------------------------------------------

_CLIPS_METADATA = re.compile(r'"clips_metadata":\s*(\{[^}]+(?:\{[^}]*\}[^}]*)*\})')
_DIRECT_VIDEO_URL = re.compile(r'"video_url":\s*"([^"]+)"')
_VIDEO_VERSIONS = re.compile(r'"video_versions":\s*\[([^\]]+)\]')
_VERSION_URL = re.compile(r'"url":\s*"([^"]+)"')
_DASH_MANIFEST = re.compile(r'"dash_manifest":\s*"([^"]+)"')


def extract_from_reel_patterns(page: PageContext) -> Optional[MediaRecord]:
    """Pick up a CDN video URL from inline reel fields."""
    html = page.html
    has_clips = bool(_CLIPS_METADATA.search(html))
    has_dash = bool(_DASH_MANIFEST.search(html))

    candidates = []
    direct = _DIRECT_VIDEO_URL.search(html)
    if direct:
        candidates.append(direct.group(1))
    versions = _VIDEO_VERSIONS.search(html)
    if versions:
        first_url = _VERSION_URL.search(versions.group(1))
        if first_url:
            candidates.append(first_url.group(1))

    for candidate in candidates:
        if CDN_HOST_MARKER not in candidate:
            continue
        logger.debug(f"Found reel-specific data (clips_metadata={has_clips}, dash_manifest={has_dash})")
        return _video_record(
            page,
            clean_media_url(candidate),
            is_reel=page.is_reel or has_clips,
            title="Instagram Reel",
        )
    return None


# ---------------------------------------------------------------------------
# 4. Alternate page-data blobs
# ---------------------------------------------------------------------------

# Each anchor ends right where the JSON value starts
ADDITIONAL_DATA_ANCHORS = (
    re.compile(r"""window\.__additionalDataLoaded\(\s*['"][^'"]*['"]\s*,\s*(?=\{)"""),
    re.compile(r"""window\.__d\(\s*['"]PolarisPostRoot\.react['"]\s*,\s*function[^}]+\}\s*,\s*(?=\{)"""),
    re.compile(r'"require":\s*(?=\[\["PolarisPostRoot")'),
    re.compile(r'"xdt_shortcode_media":\s*(?=\{)'),
)


def extract_from_additional_data(page: PageContext) -> Optional[MediaRecord]:
    """Parse blobs such as ``__additionalDataLoaded`` and search them for the media object."""
    for anchor in ADDITIONAL_DATA_ANCHORS:
        match = anchor.search(page.html)
        if not match:
            continue

        data = decode_json_at(page.html, match.end())
        media = locate_media_object(data)
        if media is None:
            logger.debug(f"No media object behind {anchor.pattern[:32]!r}")
            continue

        logger.debug("Found media object in additional data")
        record = normalize_media_object(media, page.source_url)
        if record is not None:
            return record
    return None


# ---------------------------------------------------------------------------
# 5. Any inline shortcode_media object
# ---------------------------------------------------------------------------

_SHORTCODE_MEDIA = re.compile(r'"shortcode_media":\s*(\{[^}]+(?:\{[^}]*\}[^}]*)*\})')


def _parse_shortcode_media(html: str, match: "re.Match[str]") -> Optional[Any]:
    value = decode_json_at(html, match.start(1))
    if value is not None:
        return value
    try:
        return json.loads(match.group(1))
    except json.JSONDecodeError:
        return None


def extract_from_shortcode_media_scan(page: PageContext, prefer_video: bool = True) -> Optional[MediaRecord]:
    """
    Normalize every inline ``shortcode_media`` object in document order.

    The first usable record is kept, but a later video replaces an earlier
    image when ``prefer_video`` is set.
    """
    best: Optional[MediaRecord] = None
    for match in _SHORTCODE_MEDIA.finditer(page.html):
        media = _parse_shortcode_media(page.html, match)
        record = normalize_media_object(media, page.source_url)
        if record is None:
            continue

        logger.debug(f"Found shortcode_media ({record.type.value})")
        if best is None:
            best = record
        if record.is_video and prefer_video:
            return record
        if not prefer_video:
            return best
    return best


# ---------------------------------------------------------------------------
# 6. Enhanced reel video detection
# ---------------------------------------------------------------------------

def extract_reel_video(page: PageContext) -> Optional[MediaRecord]:
    """Find any playable CDN mp4 in the page and wrap it as a video record."""
    video_url = find_reel_video_url(page.html)
    if not video_url:
        return None
    return _video_record(page, video_url, title="Instagram Reel")


# ---------------------------------------------------------------------------
# 7. Open Graph meta tags
# ---------------------------------------------------------------------------

def extract_from_meta_tags(page: PageContext) -> Optional[MediaRecord]:
    """Last resort: build a record from ``og:*`` tags."""
    soup = page.soup
    video_url = meta_content(soup, "property", "og:video") or meta_content(soup, "property", "og:video:url")
    image_url = meta_content(soup, "property", "og:image")
    title = meta_content(soup, "property", "og:title")
    description = meta_content(soup, "property", "og:description")

    if not (video_url or image_url):
        return None

    logger.debug("Found media data in meta tags")
    if extract_post_id(page.source_url):
        is_reel = page.is_reel
    else:
        # No recognizable post URL, so fall back to hints in the page itself
        is_reel = "/reel/" in page.html or "reel" in (title or "").lower()
    video_url = clean_media_url(video_url) if video_url else None
    image_url = clean_media_url(image_url) if image_url else None

    common = dict(
        post_id=page.post_id,
        author=extract_author(page.html, page.source_url, soup),
        caption=extract_caption(page.html, page.source_url, soup) or clean_caption(description or ""),
        timestamp=int(datetime.now(timezone.utc).timestamp()),
        is_reel=is_reel,
        thumbnail=image_url,
        title=title or "Instagram Post",
    )

    if video_url:
        return MediaRecord(
            type=MediaType.VIDEO,
            video_url=video_url,
            duration=0.0,
            view_count=0,
            qualities=(MediaVariant("original", video_url),),
            **common,
        )
    if is_reel:
        # Reel without a playable URL keeps the poster image as its only media URL
        return MediaRecord(
            type=MediaType.VIDEO,
            duration=0.0,
            view_count=0,
            qualities=(),
            image_url=image_url,
            images=(MediaVariant("original", image_url),),
            **common,
        )
    return MediaRecord(
        type=MediaType.IMAGE,
        image_url=image_url,
        images=(MediaVariant("original", image_url),),
        **common,
    )
