"""HTML extraction cascade for Instagram post pages."""

from dataclasses import replace
from functools import partial
from typing import Callable, Optional, Sequence, Tuple

from instameta.core.scrapers.strategies import (
    PageContext,
    extract_from_additional_data,
    extract_from_meta_tags,
    extract_from_reel_patterns,
    extract_from_shared_data,
    extract_from_shortcode_media_scan,
    extract_from_structured_data,
    extract_reel_video,
)
from instameta.models.data_models import MediaRecord
from instameta.utils.logging import get_logger

logger = get_logger(__name__)

Strategy = Callable[[PageContext], Optional[MediaRecord]]


def primary_strategies(prefer_video: bool = True) -> Sequence[Tuple[str, Strategy]]:
    """Strategies tried in order until one produces a record."""
    return (
        ("structured_data", extract_from_structured_data),
        ("shared_data", extract_from_shared_data),
        ("reel_patterns", extract_from_reel_patterns),
        ("additional_data", extract_from_additional_data),
        ("shortcode_media_scan", partial(extract_from_shortcode_media_scan, prefer_video=prefer_video)),
    )


def _run_strategy(name: str, strategy: Strategy, page: PageContext) -> Optional[MediaRecord]:
    try:
        record = strategy(page)
    except Exception as e:
        logger.debug(f"Strategy {name} failed: {str(e)}")
        return None

    if record is None:
        return None
    if record.extraction_method is None:
        record = replace(record, extraction_method=name)
    return record


def extract_media_from_html(html: str, source_url: str = "", prefer_video: bool = True) -> Optional[MediaRecord]:
    """
    Run the extraction cascade against one page.

    Args:
        html: Raw page HTML
        source_url: URL the page was fetched from
        prefer_video: Let the reel video scan replace an image result

    Returns:
        MediaRecord, or None if no strategy matched
    """
    page = PageContext(html=html, source_url=source_url)
    logger.debug(f"HTML content length: {len(html)}")

    record: Optional[MediaRecord] = None
    for name, strategy in primary_strategies(prefer_video):
        record = _run_strategy(name, strategy, page)
        if record is not None:
            break

    if record is None or (prefer_video and not record.is_video):
        logger.debug("Trying enhanced reel detection...")
        reel_record = _run_strategy("reel_detection", extract_reel_video, page)
        if reel_record is not None:
            record = reel_record

    if record is None:
        record = _run_strategy("meta_tags", extract_from_meta_tags, page)

    if record is not None:
        logger.info(
            f"Extracted {record.type.value} via {record.extraction_method} "
            f"(video_url={bool(record.video_url)}, image_url={bool(record.image_url)}, "
            f"caption={bool(record.caption)})"
        )
    else:
        title = page.soup.title.get_text(strip=True) if page.soup.title else ""
        logger.warning(
            f"No media data found in HTML (title={title!r}, scripts={len(page.soup.find_all('script'))})"
        )
    return record
