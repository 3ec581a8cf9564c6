"""HTTP fetching and response classification for Instagram post pages."""

import random
from dataclasses import dataclass, field
from typing import Dict, Optional

import httpx

from instameta.core.exceptions import (
    AgeRestrictedError,
    BlockedError,
    FetcherNotOpenError,
    LoginRequiredError,
    PostNotFoundError,
    RateLimitedError,
    TransportError,
)
from instameta.utils.config import (
    LOGIN_WALL_MARKERS,
    MAX_REDIRECTS,
    REQUEST_TIMEOUT,
    RESTRICTION_MARKERS,
    USER_AGENTS,
)
from instameta.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class FetchedDocument:
    """Raw page as returned by Instagram."""
    status: int
    body: str
    headers: Dict[str, str] = field(default_factory=dict)


def has_login_wall(body: str) -> bool:
    return any(marker in body for marker in LOGIN_WALL_MARKERS)


def has_age_restriction(body: str) -> bool:
    return any(marker in body for marker in RESTRICTION_MARKERS)


def classify_response(document: FetchedDocument) -> None:
    """
    Raise if the page cannot contain post data.

    Raises:
        PostNotFoundError: On 404
        RateLimitedError: On 429
        BlockedError: On any other 4xx status
        LoginRequiredError: If the body is a login wall
        AgeRestrictedError: If the body is an age/sensitivity gate
    """
    status = document.status
    if status == 404:
        raise PostNotFoundError("Instagram post not found (404) - post may be deleted or private")
    if status == 429:
        raise RateLimitedError("Instagram rate limiting detected (429) - too many requests")
    if status >= 400:
        raise BlockedError(f"Instagram returned error status: {status}")

    if has_login_wall(document.body):
        raise LoginRequiredError("Instagram requires login - post may be private or region restricted")
    if has_age_restriction(document.body):
        raise AgeRestrictedError("Instagram post is age restricted or contains sensitive content")


class PageFetcher:
    """Fetches post pages with a rotating browser-like header set."""

    def __init__(self, timeout: float = REQUEST_TIMEOUT, client: Optional[httpx.AsyncClient] = None):
        """
        Initialize fetcher.

        Args:
            timeout: Request timeout in seconds
            client: Existing client to use instead of creating one on context entry
        """
        self.timeout = timeout
        self.client = client
        self._owns_client = client is None

    async def __aenter__(self):
        """Create HTTP client on context entry."""
        if self.client is None:
            self.client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                max_redirects=MAX_REDIRECTS,
            )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Close HTTP client on context exit."""
        if self.client and self._owns_client:
            await self.client.aclose()
            self.client = None

    def _get_headers(self) -> dict:
        """Generate request headers with random user agent."""
        return {
            "User-Agent": random.choice(USER_AGENTS),
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.5",
            "Accept-Encoding": "gzip, deflate",
            "DNT": "1",
            "Connection": "keep-alive",
            "Upgrade-Insecure-Requests": "1",
            "Sec-Fetch-Dest": "document",
            "Sec-Fetch-Mode": "navigate",
            "Sec-Fetch-Site": "none",
            "Cache-Control": "max-age=0",
        }

    async def fetch_document(self, url: str, timeout: Optional[float] = None) -> FetchedDocument:
        """
        Fetch a page without raising on 4xx statuses.

        Args:
            url: Page URL
            timeout: Per-request timeout overriding the client default

        Returns:
            FetchedDocument with status, body and headers

        Raises:
            TransportError: On network failure, timeout or a 5xx status
            FetcherNotOpenError: If called outside ``async with``
        """
        if not self.client:
            raise FetcherNotOpenError("PageFetcher must be used as context manager")

        try:
            response = await self.client.get(
                url,
                headers=self._get_headers(),
                timeout=httpx.USE_CLIENT_DEFAULT if timeout is None else timeout,
            )
        except httpx.TimeoutException as e:
            raise TransportError(f"Request timeout - Instagram may be slow or blocking: {str(e)}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"HTTP error: {str(e)}") from e
        except httpx.InvalidURL as e:
            raise TransportError(f"Invalid URL: {str(e)}") from e

        logger.debug(
            f"Instagram response: status={response.status_code} "
            f"content_type={response.headers.get('content-type')} length={len(response.text)}"
        )

        if response.status_code >= 500:
            raise TransportError(f"Instagram returned server error: {response.status_code}")

        if len(response.text) < 1000:
            logger.warning(f"Received very short HTML response ({len(response.text)} bytes). Possible redirect or error page.")

        return FetchedDocument(
            status=response.status_code,
            body=response.text,
            headers=dict(response.headers),
        )
