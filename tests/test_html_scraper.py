"""Tests for the extraction strategies and the cascade that orders them."""

from __future__ import annotations

import json
from typing import Any, Callable, Dict

import pytest

from instameta.core.exceptions import ParsingError
from instameta.core.scrapers.html_scraper import _run_strategy, extract_media_from_html
from instameta.core.scrapers.strategies import (
    PageContext,
    extract_from_additional_data,
    extract_from_meta_tags,
    extract_from_shared_data,
    extract_from_shortcode_media_scan,
    extract_from_structured_data,
)
from instameta.models.data_models import MediaType, MediaVariant

POST_URL = "https://www.instagram.com/p/ABC123/"
REEL_URL = "https://www.instagram.com/username/reel/XYZ789/"
CDN = "https://scontent.cdninstagram.com/v"


def html_page(body: str, head: str = "") -> str:
    return f"<html><head>{head}</head><body>{body}</body></html>"


# ---------------------------------------------------------------------------
# Individual strategies
# ---------------------------------------------------------------------------


class TestStructuredData:
    def test_video_object(self) -> None:
        block = {
            "@type": "VideoObject",
            "video": {"contentUrl": f"{CDN}/a.mp4", "thumbnailUrl": f"{CDN}/t.jpg"},
            "headline": "Morning run",
            "description": "Caption text here",
            "author": {"name": "creator"},
            "uploadDate": "2024-01-02T03:04:05Z",
        }
        html = html_page(f'<script type="application/ld+json">{json.dumps(block)}</script>')
        record = extract_media_from_html(html, REEL_URL)

        assert record is not None
        assert record.type == MediaType.VIDEO
        assert record.extraction_method == "structured_data"
        assert record.video_url == f"{CDN}/a.mp4"
        assert record.thumbnail == f"{CDN}/t.jpg"
        assert record.author == "creator"
        assert record.caption == "Caption text here"
        assert record.title == "Morning run"
        assert record.upload_date == "2024-01-02T03:04:05Z"
        assert record.timestamp == 1704164645
        assert record.post_id == "XYZ789"

    def test_default_title(self) -> None:
        block = {"video": [{"contentUrl": f"{CDN}/a.mp4"}]}
        html = html_page(f'<script type="application/ld+json">{json.dumps(block)}</script>')
        record = extract_from_structured_data(PageContext(html, POST_URL))

        assert record is not None
        assert record.title == "Instagram Video"
        assert record.author == "unknown"

    def test_block_without_video(self) -> None:
        html = html_page('<script type="application/ld+json">{"@type": "Person", "name": "x"}</script>')
        assert extract_from_structured_data(PageContext(html, POST_URL)) is None

    def test_invalid_json_is_skipped(self) -> None:
        html = html_page('<script type="application/ld+json">{not json</script>')
        assert extract_from_structured_data(PageContext(html, POST_URL)) is None

    def test_description_is_cleaned(self) -> None:
        block = {
            "video": {"contentUrl": f"{CDN}/a.mp4"},
            "description": "Leg day&lt;br&gt; <b>done</b> \\u00e9 at the gym",
        }
        script = json.dumps(block).replace("</", "<\\/")
        html = html_page(f'<script type="application/ld+json">{script}</script>')
        record = extract_from_structured_data(PageContext(html, POST_URL))

        assert record is not None
        assert record.caption == "Leg day done  at the gym"

    def test_boilerplate_description_is_dropped(self) -> None:
        block = {
            "video": {"contentUrl": f"{CDN}/a.mp4"},
            "description": "Leg day&lt;br&gt; <b>done</b> \\u00e9 see more #gym",
        }
        script = json.dumps(block).replace("</", "<\\/")
        html = html_page(f'<script type="application/ld+json">{script}</script>')
        record = extract_from_structured_data(PageContext(html, POST_URL))

        assert record is not None
        assert record.caption == ""


class TestSharedData:
    def test_image_post(self, image_page: str) -> None:
        record = extract_media_from_html(image_page, POST_URL)

        assert record is not None
        assert record.type == MediaType.IMAGE
        assert record.extraction_method == "shared_data"
        assert record.post_id == "ABC123"
        assert record.author == "photo_person"
        assert record.caption == "Golden hour in the hills #sunset"
        assert record.likes == 120
        assert record.comments == 8

    def test_video_post(
        self,
        video_media: Dict[str, Any],
        shared_data_page: Callable[[Dict[str, Any]], str],
    ) -> None:
        record = extract_media_from_html(shared_data_page(video_media), REEL_URL)

        assert record is not None
        assert record.extraction_method == "shared_data"
        assert record.video_url == "https://scontent.cdninstagram.com/v/t50/clip.mp4?a=1&b=2"

    def test_unparseable_blob(self) -> None:
        html = html_page("<script>window._sharedData = {broken;</script>")
        with pytest.raises(ParsingError):
            extract_from_shared_data(PageContext(html, POST_URL))


class TestReelPatterns:
    def test_inline_video_url(self) -> None:
        html = html_page(
            f'<script>{{"clips_metadata": {{"audio_type": "original"}}, "video_url": "{CDN}/reel.mp4"}}</script>',
            head=f'<meta property="og:image" content="{CDN}/cover.jpg">',
        )
        record = extract_media_from_html(html, REEL_URL)

        assert record is not None
        assert record.extraction_method == "reel_patterns"
        assert record.title == "Instagram Reel"
        assert record.video_url == f"{CDN}/reel.mp4"
        assert record.thumbnail == f"{CDN}/cover.jpg"
        assert record.author == "username"
        assert record.is_reel is True

    def test_non_cdn_url_is_ignored(self) -> None:
        html = html_page('<script>{"video_url": "https://example.com/reel.mp4"}</script>')
        assert extract_media_from_html(html, POST_URL) is None

    def test_video_versions_candidate(self) -> None:
        html = html_page(
            '<script>{"video_versions": [{"width": 720, "url": "https://scontent.cdninstagram.com/v/vv.mp4"}]}</script>'
        )
        record = extract_media_from_html(html, REEL_URL)

        assert record is not None
        assert record.extraction_method == "reel_patterns"
        assert record.video_url == "https://scontent.cdninstagram.com/v/vv.mp4"


class TestAdditionalData:
    IMAGE_MEDIA = {
        "__typename": "GraphImage",
        "shortcode": "ROOT1",
        "display_url": f"{CDN}/root.jpg",
        "is_video": False,
    }

    def test_additional_data_loaded(self) -> None:
        payload = {
            "graphql": {
                "shortcode_media": {
                    "__typename": "GraphImage",
                    "shortcode": "ABC123",
                    "display_url": f"{CDN}/img.jpg",
                    "is_video": False,
                }
            }
        }
        html = html_page(f"<script>window.__additionalDataLoaded('/p/ABC123/',{json.dumps(payload)});</script>")
        record = extract_media_from_html(html, POST_URL)

        assert record is not None
        assert record.extraction_method == "additional_data"
        assert record.image_url == f"{CDN}/img.jpg"

    def test_polaris_post_root_module(self) -> None:
        payload = {"graphql": {"shortcode_media": self.IMAGE_MEDIA}}
        html = html_page(
            "<script>window.__d(\"PolarisPostRoot.react\", function(a,b){return 1;}, "
            f"{json.dumps(payload)});</script>"
        )
        record = extract_media_from_html(html, POST_URL)

        assert record is not None
        assert record.extraction_method == "additional_data"
        assert record.image_url == f"{CDN}/root.jpg"

    def test_polaris_require_block(self) -> None:
        payload = {"require": [["PolarisPostRoot", "init", None, [{"props": {"shortcode_media": self.IMAGE_MEDIA}}]]]}
        html = html_page(f"<script>{json.dumps(payload)}</script>")
        record = extract_media_from_html(html, POST_URL)

        assert record is not None
        assert record.extraction_method == "additional_data"
        assert record.post_id == "ROOT1"
        assert record.image_url == f"{CDN}/root.jpg"

    def test_xdt_media_object(self) -> None:
        media = {"__typename": "XDTGraphImage", "shortcode": "X1", "display_url": f"{CDN}/x.jpg"}
        html = html_page(f'<script>{{"data": {{"xdt_shortcode_media": {json.dumps(media)}}}}}</script>')
        record = extract_from_additional_data(PageContext(html, POST_URL))

        assert record is not None
        assert record.post_id == "X1"


class TestShortcodeMediaScan:
    HTML = html_page(
        "<script>"
        f'{{"shortcode_media": {{"shortcode": "A", "display_url": "{CDN}/a.jpg", "is_video": false}}}}'
        f'{{"shortcode_media": {{"shortcode": "B", "is_video": true, "video_url": "{CDN}/b.mp4"}}}}'
        "</script>"
    )

    def test_prefers_later_video(self) -> None:
        record = extract_from_shortcode_media_scan(PageContext(self.HTML, POST_URL))

        assert record is not None
        assert record.post_id == "B"

    def test_keeps_first_without_video_preference(self) -> None:
        record = extract_from_shortcode_media_scan(PageContext(self.HTML, POST_URL), prefer_video=False)

        assert record is not None
        assert record.post_id == "A"


# ---------------------------------------------------------------------------
# Cascade ordering
# ---------------------------------------------------------------------------


class TestCascade:
    BARE_VIDEO = '<script>var src = "https://scontent-abc.cdninstagram.com/v/t66/reel.mp4?x=1";</script>'

    def test_reel_detection_overrides_image(self, image_page: str) -> None:
        html = image_page.replace("</body>", self.BARE_VIDEO + "</body>")
        record = extract_media_from_html(html, POST_URL)

        assert record is not None
        assert record.type == MediaType.VIDEO
        assert record.extraction_method == "reel_detection"
        assert record.video_url == "https://scontent-abc.cdninstagram.com/v/t66/reel.mp4?x=1"

    def test_image_kept_without_video_preference(self, image_page: str) -> None:
        html = image_page.replace("</body>", self.BARE_VIDEO + "</body>")
        record = extract_media_from_html(html, POST_URL, prefer_video=False)

        assert record is not None
        assert record.type == MediaType.IMAGE
        assert record.extraction_method == "shared_data"

    def test_meta_tags_image(self, meta_page: Callable[..., str]) -> None:
        html = meta_page(og_image=f"{CDN}/og.jpg", og_description="Nice pic from the weekend")
        record = extract_media_from_html(html, POST_URL)

        assert record is not None
        assert record.extraction_method == "meta_tags"
        assert record.type == MediaType.IMAGE
        assert record.image_url == f"{CDN}/og.jpg"
        assert record.caption == "Nice pic from the weekend"
        assert record.title == "Instagram Post"

    def test_meta_tags_reel_without_video(self, meta_page: Callable[..., str]) -> None:
        record = extract_media_from_html(meta_page(og_image=f"{CDN}/og.jpg"), REEL_URL)

        assert record is not None
        assert record.type == MediaType.VIDEO
        assert record.video_url is None
        assert record.image_url == f"{CDN}/og.jpg"
        assert record.images == (MediaVariant("original", f"{CDN}/og.jpg"),)
        assert record.thumbnail == f"{CDN}/og.jpg"
        assert record.qualities == ()

    def test_meta_tags_post_linking_to_reel_stays_image(self) -> None:
        html = html_page(
            '<a href="/reel/OTHER1/">Another reel</a>',
            head=f'<meta property="og:image" content="{CDN}/og.jpg">',
        )
        record = extract_media_from_html(html, POST_URL)

        assert record is not None
        assert record.extraction_method == "meta_tags"
        assert record.type == MediaType.IMAGE
        assert record.is_reel is False
        assert record.image_url == f"{CDN}/og.jpg"

    def test_meta_tags_reel_hint_without_source_url(self) -> None:
        html = html_page(
            '<a href="/reel/OTHER1/">Watch</a>',
            head=f'<meta property="og:image" content="{CDN}/og.jpg">',
        )
        record = extract_from_meta_tags(PageContext(html))

        assert record is not None
        assert record.type == MediaType.VIDEO
        assert record.is_reel is True
        assert record.video_url is None
        assert record.image_url == f"{CDN}/og.jpg"

    def test_meta_tags_boilerplate_description(self, meta_page: Callable[..., str]) -> None:
        html = meta_page(og_image=f"{CDN}/og.jpg", og_description="See more posts from this account")
        record = extract_media_from_html(html, POST_URL)

        assert record is not None
        assert record.caption == ""

    def test_url_less_media_object_falls_through(self) -> None:
        payload = {"graphql": {"shortcode_media": {"shortcode": "ABC123", "is_video": False}}}
        html = html_page(
            f"<script>window.__additionalDataLoaded('/p/ABC123/',{json.dumps(payload)});</script>",
            head=f'<meta property="og:image" content="{CDN}/og.jpg">',
        )
        record = extract_media_from_html(html, POST_URL)

        assert record is not None
        assert record.extraction_method == "meta_tags"
        assert record.image_url == f"{CDN}/og.jpg"

    def test_nothing_matches(self, empty_page: str) -> None:
        assert extract_media_from_html(empty_page, POST_URL) is None

    def test_strategy_errors_are_absorbed(self) -> None:
        def broken(page: PageContext) -> None:
            raise ValueError("boom")

        assert _run_strategy("broken", broken, PageContext("<html></html>")) is None
