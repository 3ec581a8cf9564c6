"""Shared fixtures: canned Instagram pages and fake collaborators."""

from __future__ import annotations

import json
from typing import Any, Callable, Dict, List, Optional, Union

import pytest

from instameta.core.exceptions import InstaMetaError
from instameta.core.fetcher import FetchedDocument

IMAGE_URL = "https://scontent.cdninstagram.com/v/t51/photo.jpg"


def build_shared_data_page(media: Dict[str, Any]) -> str:
    """Wrap a media object the way legacy post pages embed it."""
    payload = {"entry_data": {"PostPage": [{"graphql": {"shortcode_media": media}}]}}
    return (
        "<html><head><title>Instagram</title></head><body>"
        f"<script type=\"text/javascript\">window._sharedData = {json.dumps(payload)};</script>"
        "</body></html>"
    )


def build_meta_page(**tags: str) -> str:
    """Build a page holding only ``og:*`` meta tags (``og_image`` -> ``og:image``)."""
    metas = "".join(
        f'<meta property="{name.replace("_", ":")}" content="{value}">' for name, value in tags.items()
    )
    return f"<html><head>{metas}</head><body><p>nothing else</p></body></html>"


Outcome = Union[FetchedDocument, InstaMetaError]


class FakeFetcher:
    """Serves scripted outcomes per URL; the last outcome repeats."""

    def __init__(self, pages: Dict[str, List[Outcome]]):
        self.pages = {url: list(outcomes) for url, outcomes in pages.items()}
        self.calls: List[str] = []

    async def fetch_document(self, url: str, timeout: Optional[float] = None) -> FetchedDocument:
        self.calls.append(url)
        outcomes = self.pages.get(url) or [FetchedDocument(status=404, body="")]
        outcome = outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class RecordingSleep:
    """Async sleep replacement that only records requested delays."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def image_media() -> Dict[str, Any]:
    return {
        "__typename": "GraphImage",
        "shortcode": "ABC123",
        "is_video": False,
        "display_url": IMAGE_URL,
        "dimensions": {"width": 1080, "height": 1350},
        "owner": {"username": "photo_person"},
        "edge_media_to_caption": {"edges": [{"node": {"text": "Golden hour in the hills #sunset"}}]},
        "edge_media_preview_like": {"count": 120},
        "edge_media_to_comment": {"count": 8},
        "taken_at_timestamp": 1700000000,
    }


@pytest.fixture
def video_media() -> Dict[str, Any]:
    return {
        "__typename": "GraphVideo",
        "shortcode": "XYZ789",
        "is_video": True,
        "product_type": "clips",
        "video_url": "https:\\/\\/scontent.cdninstagram.com\\/v\\/t50\\/clip.mp4?a=1\\u0026b=2",
        "display_url": IMAGE_URL,
        "dimensions": {"width": 720, "height": 1280},
        "video_duration": 12.5,
        "video_view_count": 4000,
        "owner": {"username": "reel_maker"},
        "caption": {"text": "Backflip practice #gym"},
        "like_count": 300,
        "comment_count": 12,
        "taken_at_timestamp": 1700000500,
    }


@pytest.fixture
def image_page(image_media: Dict[str, Any]) -> str:
    return build_shared_data_page(image_media)


@pytest.fixture
def empty_page() -> str:
    return "<html><head><title>Instagram</title></head><body><div>Nothing to see</div></body></html>"


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def shared_data_page() -> Callable[[Dict[str, Any]], str]:
    return build_shared_data_page


@pytest.fixture
def meta_page() -> Callable[..., str]:
    return build_meta_page


@pytest.fixture
def make_fetcher() -> Callable[[Dict[str, List[Outcome]]], FakeFetcher]:
    return FakeFetcher

