"""Normalize raw graph-style media objects into MediaRecord."""

import time
from typing import Any, List, Optional, Tuple

from instameta.core.scrapers.fields import UNKNOWN_AUTHOR, clean_caption, clean_media_url
from instameta.core.urls import is_reel_url
from instameta.models.data_models import CarouselItem, MediaRecord, MediaType, MediaVariant
from instameta.utils.logging import get_logger

logger = get_logger(__name__)

VIDEO_TYPENAMES = frozenset({"GraphVideo", "XDTGraphVideo"})
SIDECAR_TYPENAMES = frozenset({"GraphSidecar", "XDTGraphSidecar"})
REEL_PRODUCT_TYPE = "clips"

# Versions narrower than this are only used when nothing better exists
MIN_PREFERRED_VIDEO_WIDTH = 480

# Keys under which pages nest the post media object
MEDIA_OBJECT_KEYS = ("shortcode_media", "xdt_shortcode_media")
MAX_SEARCH_DEPTH = 32


def dig(obj: Any, *path: Any) -> Any:
    """Follow a key/index path through nested dicts and lists, or return None."""
    for key in path:
        if isinstance(obj, dict):
            obj = obj.get(key)
        elif isinstance(obj, list) and isinstance(key, int) and -len(obj) <= key < len(obj):
            obj = obj[key]
        else:
            return None
    return obj


def find_media_object(data: Any, max_depth: int = MAX_SEARCH_DEPTH) -> Optional[dict]:
    """
    Depth-first search for a nested ``shortcode_media`` object.

    Children are visited in key insertion order. Nodes deeper than
    ``max_depth`` are not visited.
    """
    if max_depth < 0:
        return None

    if isinstance(data, dict):
        for key in MEDIA_OBJECT_KEYS:
            if isinstance(data.get(key), dict):
                return data[key]
        children = data.values()
    elif isinstance(data, list):
        children = data
    else:
        return None

    for child in children:
        found = find_media_object(child, max_depth - 1)
        if found is not None:
            return found
    return None


def locate_media_object(data: Any) -> Optional[dict]:
    """Find the post media object inside a captured page-data blob."""
    if not isinstance(data, (dict, list)):
        return None

    media = dig(data, "graphql", "shortcode_media") or find_media_object(data)
    if media is not None:
        return media

    # Some captures are already the media object itself
    if isinstance(data, dict) and ("shortcode" in data or "__typename" in data):
        if data.get("video_url") or data.get("display_url") or data.get("video_versions"):
            return data
    return None


def _count(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)) and value > 0:
        return int(value)
    if isinstance(value, str) and value.isdigit():
        return int(value)
    return 0


def _text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def _seconds(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    return max(float(value), 0.0)


def _dimensions(node: dict) -> Tuple[int, int]:
    return _count(dig(node, "dimensions", "width")), _count(dig(node, "dimensions", "height"))


def _caption_of(media: dict) -> str:
    text = dig(media, "edge_media_to_caption", "edges", 0, "node", "text")
    if _text(text):
        return text

    caption = media.get("caption")
    if isinstance(caption, dict):
        return _text(caption.get("text")) or ""
    if isinstance(caption, str):
        return caption
    return ""


def _first_count(media: dict, *paths: Tuple[str, ...]) -> int:
    for path in paths:
        value = _count(dig(media, *path))
        if value:
            return value
    return 0


def _video_versions(media: dict) -> List[dict]:
    versions = media.get("video_versions")
    if not isinstance(versions, list):
        return []
    return [version for version in versions if isinstance(version, dict) and _text(version.get("url"))]


def _pick_video_url(media: dict, versions: List[dict]) -> Optional[str]:
    video_url = _text(media.get("video_url"))
    if not video_url and versions:
        best = next(
            (v for v in versions if _count(v.get("width")) >= MIN_PREFERRED_VIDEO_WIDTH),
            versions[0],
        )
        video_url = best["url"]
    return clean_media_url(video_url) if video_url else None


def _video_qualities(video_url: Optional[str], media: dict, versions: List[dict]) -> Tuple[MediaVariant, ...]:
    qualities: List[MediaVariant] = []
    if video_url:
        width, height = _dimensions(media)
        qualities.append(MediaVariant("original", video_url, width, height))

    seen = {video_url}
    alternates: List[MediaVariant] = []
    for version in versions:
        url = clean_media_url(version["url"])
        if url in seen:
            continue
        seen.add(url)
        width, height = _count(version.get("width")), _count(version.get("height"))
        alternates.append(MediaVariant(f"{width}x{height}", url, width, height))

    # Highest resolution first; sorted() keeps page order for ties
    alternates = sorted(alternates, key=lambda v: v.width * v.height, reverse=True)
    return tuple(qualities + alternates)


def _carousel_items(media: dict) -> Optional[Tuple[CarouselItem, ...]]:
    edges = dig(media, "edge_sidecar_to_children", "edges")
    if not isinstance(edges, list):
        return None

    items = []
    for edge in edges:
        node = dig(edge, "node")
        if not isinstance(node, dict):
            continue
        node_is_video = bool(node.get("is_video"))
        url = _text(node.get("video_url") if node_is_video else node.get("display_url"))
        thumbnail = _text(node.get("display_url"))
        width, height = _dimensions(node)
        items.append(CarouselItem(
            type=MediaType.VIDEO if node_is_video else MediaType.IMAGE,
            url=clean_media_url(url) if url else None,
            thumbnail=clean_media_url(thumbnail) if thumbnail else None,
            width=width,
            height=height,
        ))
    return tuple(items)


def _build_record(media: dict, source_url: str) -> Optional[MediaRecord]:
    typename = media.get("__typename")
    is_reel = is_reel_url(source_url) or media.get("product_type") == REEL_PRODUCT_TYPE
    is_video = (
        bool(media.get("is_video"))
        or typename in VIDEO_TYPENAMES
        or is_reel
        or bool(_text(media.get("video_url")))
    )
    is_carousel = typename in SIDECAR_TYPENAMES

    post_id = media.get("shortcode") or media.get("code") or media.get("id") or "unknown"
    author = _text(dig(media, "owner", "username")) or UNKNOWN_AUTHOR
    thumbnail = _text(media.get("display_url")) or _text(media.get("thumbnail_url"))
    thumbnail = clean_media_url(thumbnail) if thumbnail else None
    items = _carousel_items(media) if is_carousel else None

    common = dict(
        post_id=str(post_id),
        author=author,
        caption=clean_caption(_caption_of(media)),
        likes=_first_count(media, ("edge_media_preview_like", "count"), ("like_count",), ("edge_liked_by", "count")),
        comments=_first_count(media, ("edge_media_to_comment", "count"), ("comment_count",)),
        timestamp=_count(media.get("taken_at_timestamp")) or _count(media.get("taken_at")) or int(time.time()),
        is_carousel=is_carousel,
        is_reel=is_reel,
        thumbnail=thumbnail,
        items=items,
    )

    if is_video:
        versions = _video_versions(media)
        video_url = _pick_video_url(media, versions)
        # A reel with no resolvable video keeps its display image as the media URL
        fallback_image = thumbnail if not video_url else None
        return MediaRecord(
            type=MediaType.VIDEO,
            video_url=video_url,
            image_url=fallback_image,
            images=(MediaVariant("original", fallback_image),) if fallback_image else None,
            duration=_seconds(media.get("video_duration")),
            view_count=_first_count(media, ("video_view_count",), ("play_count",)),
            qualities=_video_qualities(video_url, media, versions),
            **common,
        )

    image_url = thumbnail
    if not image_url and not items:
        return None

    width, height = _dimensions(media)
    return MediaRecord(
        type=MediaType.IMAGE,
        image_url=image_url,
        images=(MediaVariant("original", image_url, width, height),) if image_url else (),
        **common,
    )


def _minimal_record(media: dict, source_url: str) -> Optional[MediaRecord]:
    is_reel = is_reel_url(source_url)
    video_url = _text(media.get("video_url"))
    display_url = _text(media.get("display_url"))
    if not (video_url or display_url or is_reel):
        return None

    video_url = clean_media_url(video_url) if video_url else None
    display_url = clean_media_url(display_url) if display_url else None
    common = dict(
        post_id=str(_text(media.get("shortcode")) or "unknown"),
        author=_text(dig(media, "owner", "username")) or UNKNOWN_AUTHOR,
        timestamp=int(time.time()),
        is_reel=is_reel,
        thumbnail=display_url,
    )

    if video_url or is_reel:
        if video_url:
            return MediaRecord(
                type=MediaType.VIDEO,
                video_url=video_url,
                qualities=(MediaVariant("original", video_url),),
                **common,
            )
        return MediaRecord(
            type=MediaType.VIDEO,
            qualities=(),
            image_url=display_url,
            images=(MediaVariant("original", display_url),) if display_url else None,
            **common,
        )
    return MediaRecord(
        type=MediaType.IMAGE,
        image_url=display_url,
        images=(MediaVariant("original", display_url),),
        **common,
    )


def normalize_media_object(media: Any, source_url: str = "") -> Optional[MediaRecord]:
    """
    Convert a raw media object into a MediaRecord.

    Args:
        media: Graph-style post object (``shortcode_media`` and friends)
        source_url: URL the page was fetched from, used for reel detection

    Returns:
        MediaRecord, or None if the object holds no usable media
    """
    if not isinstance(media, dict):
        return None

    logger.debug(
        f"Processing media object: shortcode={media.get('shortcode')!r} "
        f"typename={media.get('__typename')!r} is_video={media.get('is_video')!r}"
    )

    try:
        return _build_record(media, source_url)
    except Exception as e:
        logger.warning(f"Failed to process media object, using minimal record: {str(e)}")
        return _minimal_record(media, source_url)
