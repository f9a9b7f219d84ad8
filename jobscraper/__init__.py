"""jobscraper package public API."""
from importlib import metadata as _metadata

try:
    __version__ = _metadata.version("jobscraper")
except _metadata.PackageNotFoundError:  # fallback when not installed
    __version__ = "0.1.0"

from .linkedin.db import JobDB  # re-export
from .linkedin.dedup import DedupTracker  # re-export
from .linkedin.models import Filter, GlobalFilters, JobRecord  # re-export
from .linkedin.scraper import LinkedInScraper  # re-export

__all__ = ["__version__", "DedupTracker", "Filter", "GlobalFilters", "JobDB", "JobRecord", "LinkedInScraper"]
