# errors.py


class ScrapeError(Exception):
    """Base class for errors surfaced by run_scrape."""


class ValidationError(ScrapeError):
    """Seed URL is malformed, non-HTTP or points at an internal host."""


class RendererError(ScrapeError):
    """Page renderer call failed."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class AuthError(RendererError):
    """Raised when the renderer rejects the API key (HTTP 401/403)."""


class QuotaError(RendererError):
    """Raised when the renderer account is out of credits (HTTP 402)."""


class RateLimitError(RendererError):
    """Raised when the renderer returns HTTP 429."""


class ProtocolError(RendererError):
    """Unexpected status or payload from the renderer, or a failed crawl job."""


class CrawlTimeoutError(ScrapeError):
    """Crawl hit the poll ceiling without discovering a single page."""


class InternalError(ScrapeError):
    """Unexpected failure inside the pipeline."""


def error_for_status(status_code: int, body: str = "") -> RendererError:
    if status_code in (401, 403):
        return AuthError("Authentication failed - invalid or missing API key", status_code)
    if status_code == 402:
        return QuotaError("Out of API credits", status_code)
    if status_code == 429:
        return RateLimitError("Rate limited - please retry later", status_code)
    return ProtocolError(f"Renderer error HTTP {status_code}: {body[:200]}", status_code)
