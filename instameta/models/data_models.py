"""Data models for extracted Instagram media."""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class MediaType(str, Enum):
    """Media type enumeration."""
    VIDEO = "video"
    IMAGE = "image"


@dataclass(frozen=True)
class MediaVariant:
    """One rendition of a video or image at a given resolution."""
    quality: str
    url: str
    width: int = 0
    height: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "quality": self.quality,
            "url": self.url,
            "width": self.width,
            "height": self.height,
        }


@dataclass(frozen=True)
class CarouselItem:
    """Represents a single child of a carousel post."""
    type: MediaType
    url: Optional[str]
    thumbnail: Optional[str]
    width: int = 0
    height: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "type": self.type.value,
            "thumbnail": self.thumbnail,
            "dimensions": {"width": self.width, "height": self.height},
        }
        if self.url is not None:
            data["url"] = self.url
        return data


@dataclass(frozen=True)
class MediaRecord:
    """
    Canonical metadata for one Instagram post or reel.

    Video records carry ``video_url``/``qualities``; image records carry
    ``image_url``/``images``. Fields of the other variant stay ``None``
    and are left out of :meth:`to_dict`. A reel whose video could not be
    resolved is still typed video but carries its poster in ``image_url``.
    """
    type: MediaType
    post_id: str = "unknown"
    author: str = "unknown"
    caption: str = ""
    likes: int = 0
    comments: int = 0
    timestamp: int = 0
    is_carousel: bool = False
    is_reel: bool = False
    thumbnail: Optional[str] = None

    # Video variant
    video_url: Optional[str] = None
    duration: Optional[float] = None
    view_count: Optional[int] = None
    qualities: Optional[Tuple[MediaVariant, ...]] = None

    # Image variant
    image_url: Optional[str] = None
    images: Optional[Tuple[MediaVariant, ...]] = None

    # Carousel children
    items: Optional[Tuple[CarouselItem, ...]] = None

    title: Optional[str] = None
    upload_date: Optional[str] = None
    extraction_method: Optional[str] = None

    @property
    def is_video(self) -> bool:
        return self.type == MediaType.VIDEO

    def to_dict(self) -> Dict[str, Any]:
        """Render the record in its camelCase output shape."""
        data: Dict[str, Any] = {
            "type": self.type.value,
            "postId": self.post_id,
            "author": self.author,
            "caption": self.caption,
            "likes": self.likes,
            "comments": self.comments,
            "timestamp": self.timestamp,
            "isCarousel": self.is_carousel,
            "isReel": self.is_reel,
        }
        optional = {
            "thumbnail": self.thumbnail,
            "videoUrl": self.video_url,
            "duration": self.duration,
            "viewCount": self.view_count,
            "imageUrl": self.image_url,
            "title": self.title,
            "uploadDate": self.upload_date,
            "extractionMethod": self.extraction_method,
        }
        data.update({key: value for key, value in optional.items() if value is not None})
        if self.qualities is not None:
            data["qualities"] = [variant.to_dict() for variant in self.qualities]
        if self.images is not None:
            data["images"] = [variant.to_dict() for variant in self.images]
        if self.items is not None:
            data["items"] = [item.to_dict() for item in self.items]
        return data


def to_info_view(record: MediaRecord) -> MediaRecord:
    """
    Copy a record without any direct media URLs.

    Used for metadata-only responses; the original record is left intact.
    """
    items = None
    if record.items is not None:
        items = tuple(replace(item, url=None) for item in record.items)
    return replace(
        record,
        video_url=None,
        image_url=None,
        qualities=None,
        images=None,
        items=items,
    )


@dataclass
class BatchItemResult:
    """Outcome of one URL in a batch extraction."""
    url: str
    success: bool
    data: Optional[MediaRecord] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        if self.success and self.data is not None:
            return {"url": self.url, "success": True, "data": self.data.to_dict()}
        return {"url": self.url, "success": False, "error": self.error, "code": self.error_code}


@dataclass
class BatchResult:
    """Summary of a batch extraction."""
    total: int = 0
    successful: int = 0
    failed: int = 0
    results: List[BatchItemResult] = field(default_factory=list)

    def add(self, item: BatchItemResult) -> None:
        self.results.append(item)
        if item.success:
            self.successful += 1
        else:
            self.failed += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "successful": self.successful,
            "failed": self.failed,
            "results": [item.to_dict() for item in self.results],
        }


@dataclass
class ProbeReport:
    """Diagnostic snapshot of how a URL looks before extraction."""
    url: str
    post_id: Optional[str]
    is_valid: bool
    http_status: Optional[int] = None
    content_length: Optional[int] = None
    has_login_redirect: Optional[bool] = None
    has_age_restriction: Optional[bool] = None
    request_error: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "postId": self.post_id,
            "isValidUrl": self.is_valid,
            "httpStatus": self.http_status,
            "contentLength": self.content_length,
            "hasLoginRedirect": self.has_login_redirect,
            "hasAgeRestriction": self.has_age_restriction,
            "requestError": self.request_error,
            "timestamp": self.timestamp.isoformat(),
        }
