from __future__ import annotations
import threading
from typing import Iterable, Optional


class DedupTracker:
    """Set of job ids already scraped during one run.

    One instance is shared by every search session of a run. ``add`` is
    atomic and reports whether the id was new, so two sessions racing on the
    same job cannot both deliver it.
    """

    def __init__(self, seed: Optional[Iterable[str]] = None):
        self._lock = threading.Lock()
        self._ids: set[str] = {str(i) for i in (seed or ()) if i}
        self._seeded = len(self._ids)

    def has(self, job_id: str) -> bool:
        with self._lock:
            return job_id in self._ids

    __contains__ = has

    def add(self, job_id: str) -> bool:
        with self._lock:
            if job_id in self._ids:
                return False
            self._ids.add(job_id)
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._ids)

    @property
    def added(self) -> int:
        """Ids added during this run (seed excluded)."""
        return len(self) - self._seeded

    def snapshot(self) -> frozenset:
        with self._lock:
            return frozenset(self._ids)
