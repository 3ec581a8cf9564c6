"""Custom exceptions for InstaMeta."""


class InstaMetaError(Exception):
    """Base exception for InstaMeta."""
    code = "error"


class InvalidUrlError(InstaMetaError):
    """URL is malformed or not a supported Instagram post shape."""
    code = "invalid_url"


class PostNotFoundError(InstaMetaError):
    """Post returned 404 or no extraction strategy matched."""
    code = "not_found"


class BlockedError(InstaMetaError):
    """Instagram refused to serve the post content."""
    code = "blocked"


class RateLimitedError(BlockedError):
    """Rate limited by Instagram."""
    code = "rate_limited"


class LoginRequiredError(BlockedError):
    """Post sits behind a login wall (private or region restricted)."""
    code = "login_required"


class AgeRestrictedError(BlockedError):
    """Post is age restricted or flagged as sensitive content."""
    code = "restricted"


class TransportError(InstaMetaError):
    """Network failure, timeout or server error while fetching."""
    code = "transport_error"


class FetcherNotOpenError(InstaMetaError):
    """Fetcher used outside its async context."""
    code = "fetcher_not_open"


class ParsingError(InstaMetaError):
    """Failed to parse data."""
    code = "parsing_error"


class ExtractionFailedError(InstaMetaError):
    """All attempts exhausted without producing a media record."""
    code = "extraction_failed"

    def __init__(self, message: str, attempts: int = 0, reason: str = "not_found"):
        super().__init__(message)
        self.attempts = attempts
        self.reason = reason


# Errors worth another attempt at the whole fetch + extract pipeline
RETRYABLE_ERRORS = (PostNotFoundError, BlockedError, TransportError)
