"""
Error taxonomy for playlist scraping.

Client-input errors (InvalidInput) are surfaced to the caller as-is; every
crawl-side error is collapsed into ScrapeFailed at the request boundary.
"""
from __future__ import annotations


class ScrapeError(Exception):
    """Base error carrying an optional meta dict for diagnostics."""

    def __init__(self, message: str, meta: dict | None = None):
        super().__init__(message)
        self.message = message
        self.meta = meta or {}


class InvalidInput(ScrapeError):
    """Malformed or incomplete request; no crawl attempted."""


class NavigationFault(ScrapeError):
    """The browser could not load the target URL."""


class RequestBudgetExceeded(ScrapeError):
    """The job tried to navigate more times than its request budget allows."""


class ContentNotFound(ScrapeError):
    """No playlist item appeared before the initial-content timeout."""


class ExtractionFault(ScrapeError):
    """Page structure could not be turned into video records."""


class JobCancelled(ScrapeError):
    """The job was cancelled cooperatively before it finished."""


class ScrapeFailed(ScrapeError):
    """Generic crawl failure returned to callers; the cause is only logged."""
