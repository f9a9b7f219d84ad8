"""Exception taxonomy for the scrape engine.

Transient errors are retried locally, session-fatal errors end one search,
configuration and authentication errors stop the run before any work starts.
"""
from __future__ import annotations


class ScraperError(Exception):
    """Base error for everything raised by the scraper."""


class ConfigurationError(ScraperError):
    """Missing or invalid credential / options. Fatal at startup."""


class AuthenticationError(ScraperError):
    """The session cookie was rejected by the site. Fatal at startup."""


class ScraperStateError(ScraperError):
    """The scraper facade was used out of lifecycle order."""


class IllegalStateTransition(ScraperError):
    def __init__(self, current, target):
        super().__init__(f"Illegal session transition {current.value} -> {target.value}")
        self.current = current
        self.target = target


class SessionFatalError(ScraperError):
    """The page or browser context behind a search is no longer usable."""


class TransientError(ScraperError):
    """DOM not ready yet; worth retrying."""


class ListNotFoundError(TransientError):
    pass


class DetailPanelNotReady(TransientError):
    def __init__(self, job_id: str):
        super().__init__(f"Details panel does not show job {job_id} yet")
        self.job_id = job_id


class IncompleteRecordError(ScraperError):
    def __init__(self, job_id: str, missing: list[str]):
        super().__init__(f"Job {job_id or '?'} is missing required fields: {', '.join(missing)}")
        self.job_id = job_id
        self.missing = missing
