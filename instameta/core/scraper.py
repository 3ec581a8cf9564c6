"""Fetch-and-retry orchestration for Instagram media extraction."""

import asyncio
from typing import Awaitable, Callable, Optional, Sequence

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from instameta.core.cache import TTLCache
from instameta.core.exceptions import (
    RETRYABLE_ERRORS,
    ExtractionFailedError,
    InstaMetaError,
    InvalidUrlError,
    PostNotFoundError,
    TransportError,
)
from instameta.core.fetcher import (
    PageFetcher,
    classify_response,
    has_age_restriction,
    has_login_wall,
)
from instameta.core.scrapers.html_scraper import extract_media_from_html
from instameta.core.urls import extract_post_id, validate_instagram_url
from instameta.models.data_models import BatchItemResult, BatchResult, MediaRecord, ProbeReport
from instameta.utils.config import (
    MAX_CONCURRENT_EXTRACTIONS,
    MAX_RETRIES,
    PROBE_TIMEOUT,
    RETRY_DELAY,
)
from instameta.utils.logging import get_logger

logger = get_logger(__name__)

SleepFn = Callable[[float], Awaitable[None]]

FAILURE_CAUSES = (
    "This could be due to: 1) Private/deleted post, 2) Instagram blocking the request, "
    "3) Changed Instagram structure, 4) Invalid URL format."
)


def cache_key(post_id: str) -> str:
    return f"media_{post_id}"


class MediaExtractor:
    """
    Extracts media records from Instagram post URLs.

    Each call fetches the page, classifies the response and runs the HTML
    extraction cascade. A failed attempt is retried after
    ``attempt * retry_delay`` seconds until ``max_retries`` retries are used.
    Successful records are cached by post id.
    """

    def __init__(
        self,
        fetcher: Optional[PageFetcher] = None,
        cache: Optional[TTLCache[MediaRecord]] = None,
        max_retries: int = MAX_RETRIES,
        retry_delay: float = RETRY_DELAY,
        sleep: SleepFn = asyncio.sleep,
        max_concurrent: int = MAX_CONCURRENT_EXTRACTIONS,
        prefer_video: bool = True,
    ):
        """
        Initialize extractor.

        Args:
            fetcher: Page fetcher (default: new PageFetcher, opened on context entry)
            cache: Record cache shared across calls (default: new TTLCache)
            max_retries: Retries after the first attempt
            retry_delay: Base backoff in seconds, multiplied by the attempt number
            sleep: Coroutine used to wait between attempts
            max_concurrent: Batch items processed at the same time
            prefer_video: Let video results override image results in the cascade
        """
        self.fetcher = fetcher if fetcher is not None else PageFetcher()
        self.cache: TTLCache[MediaRecord] = cache if cache is not None else TTLCache()
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.sleep = sleep
        self.max_concurrent = max_concurrent
        self.prefer_video = prefer_video

    async def __aenter__(self):
        await self.fetcher.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.fetcher.__aexit__(exc_type, exc_val, exc_tb)

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.warning(
            f"Attempt {retry_state.attempt_number} failed ({error}); retrying in {delay:.1f}s"
        )

    async def _attempt(self, url: str, attempt: int) -> MediaRecord:
        logger.info(f"Attempt {attempt} for URL: {url}")

        document = await self.fetcher.fetch_document(url)
        classify_response(document)

        record = extract_media_from_html(document.body, url, prefer_video=self.prefer_video)
        if record is None:
            logger.debug(f"HTML sample: {document.body[:1000]}")
            raise PostNotFoundError("Could not extract media information from the page")
        return record

    async def extract(self, url: str) -> MediaRecord:
        """
        Extract media metadata for one post URL.

        Args:
            url: Instagram post, reel or IGTV URL

        Returns:
            MediaRecord

        Raises:
            InvalidUrlError: If the URL is not a supported post URL
            ExtractionFailedError: If every attempt failed
            FetcherNotOpenError: If the fetcher was never opened
        """
        post_id = extract_post_id(url) if validate_instagram_url(url) else None
        if not post_id:
            raise InvalidUrlError(f"Invalid URL format: {url}")

        key = cache_key(post_id)
        cached = self.cache.get(key)
        if cached is not None:
            logger.info(f"Returning cached result for {post_id}")
            return cached

        attempts = 0

        async def attempt() -> MediaRecord:
            nonlocal attempts
            attempts += 1
            return await self._attempt(url, attempts)

        retrying = AsyncRetrying(
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_incrementing(start=self.retry_delay, increment=self.retry_delay),
            sleep=self.sleep,
            before_sleep=self._log_retry,
            reraise=True,
        )

        try:
            record = await retrying(attempt)
        except RETRYABLE_ERRORS as e:
            logger.error(f"Failed to extract media information after {attempts} attempts: {str(e)}")
            raise ExtractionFailedError(
                f"Failed to extract media information after {attempts} attempts: {str(e)}. {FAILURE_CAUSES}",
                attempts=attempts,
                reason=e.code,
            ) from e

        logger.info(f"Successfully extracted media info for {post_id}")
        self.cache.set(key, record)
        return record

    async def extract_many(self, urls: Sequence[str]) -> BatchResult:
        """
        Extract several URLs concurrently, isolating failures per URL.

        Args:
            urls: Post URLs

        Returns:
            BatchResult with one entry per URL, in input order
        """
        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def run_one(url: str) -> MediaRecord:
            async with semaphore:
                return await self.extract(url)

        outcomes = await asyncio.gather(*(run_one(url) for url in urls), return_exceptions=True)

        result = BatchResult(total=len(urls))
        for url, outcome in zip(urls, outcomes):
            if isinstance(outcome, MediaRecord):
                result.add(BatchItemResult(url=url, success=True, data=outcome))
            elif isinstance(outcome, InstaMetaError):
                result.add(BatchItemResult(url=url, success=False, error=str(outcome), error_code=outcome.code))
            elif isinstance(outcome, Exception):
                logger.exception(f"Unexpected error extracting {url}", exc_info=outcome)
                result.add(BatchItemResult(url=url, success=False, error=str(outcome), error_code=InstaMetaError.code))
            else:
                raise outcome

        logger.info(f"Batch finished: {result.successful}/{result.total} successful")
        return result

    async def probe(self, url: str) -> ProbeReport:
        """
        Report how a URL looks to the extractor without running the cascade.

        Only supported post URLs are fetched; network failures are recorded
        in the report rather than raised.
        """
        report = ProbeReport(url=url, post_id=extract_post_id(url), is_valid=validate_instagram_url(url))
        if not report.is_valid:
            return report

        try:
            document = await self.fetcher.fetch_document(url, timeout=PROBE_TIMEOUT)
        except TransportError as e:
            report.request_error = str(e)
            return report

        report.http_status = document.status
        report.content_length = len(document.body)
        report.has_login_redirect = has_login_wall(document.body)
        report.has_age_restriction = has_age_restriction(document.body)
        return report
