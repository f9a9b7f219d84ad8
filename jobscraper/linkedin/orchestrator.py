"""Run one or many searches with a bounded pool of browser sessions.

Several filters go into a FIFO queue drained by ``min(max_concurrent, n)``
workers. A worker owns one authenticated session at a time, so the number of
sessions driving the site never exceeds the worker count.
"""
from __future__ import annotations
import asyncio
import logging
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Protocol

from .dedup import DedupTracker
from .logging_config import log_event
from .models import Filter, SearchTask
from .page import SearchPage
from .session import OnScrape, SearchSession, SessionOutcome, SessionState
from .settings import SETTINGS, Settings
from .utils import jitter_sleep

logger = logging.getLogger('orchestrator')


class SessionHandle(Protocol):
    search_page: SearchPage
    extractor: object

    async def close(self) -> None:  # pragma: no cover - interface definition
        ...


SessionOpener = Callable[[], Awaitable[SessionHandle]]


class ScrapeOrchestrator:
    def __init__(self, open_session: SessionOpener, tracker: DedupTracker, settings: Settings = SETTINGS):
        self.open_session = open_session
        self.tracker = tracker
        self.settings = settings

    async def run(self, filters: List[Filter], on_scrape: OnScrape, *, limit: Optional[int] = None,
                  exclude_fields: Iterable[str] = (), max_concurrent: Optional[int] = None,
                  primary: Optional[SessionHandle] = None) -> List[SessionOutcome]:
        """Scrape every filter and return one outcome per filter, in filter order.

        Never raises because a single search failed; failures are logged with
        the filter index and reported in the outcome.
        """
        if not filters:
            return []
        exclude_fields = frozenset(exclude_fields)
        if len(filters) == 1:
            return [await self._run_single(SearchTask(filters[0], 0), on_scrape, limit, exclude_fields, primary)]

        max_concurrent = max_concurrent or self.settings.max_concurrent
        if max_concurrent < 1:
            raise ValueError('max_concurrent must be >= 1')
        queue: asyncio.Queue[SearchTask] = asyncio.Queue()
        for i, flt in enumerate(filters):
            queue.put_nowait(SearchTask(flt, i))
        n_workers = min(max_concurrent, len(filters))
        logger.info(f"Running {len(filters)} searches with {n_workers} workers")
        log_event('pool_start', searches=len(filters), workers=n_workers)
        outcomes: Dict[int, SessionOutcome] = {}
        workers = [
            asyncio.create_task(
                self._worker(w, queue, outcomes, on_scrape, limit, exclude_fields, primary if w == 0 else None),
                name=f"scrape-worker-{w}",
            )
            for w in range(n_workers)
        ]
        await asyncio.gather(*workers)
        done = [outcomes[i] for i in sorted(outcomes)]
        log_event('pool_done', searches=len(filters), emitted=sum(o.emitted for o in done),
                  failed=sum(1 for o in done if o.state is SessionState.FAILED))
        return done

    async def _run_single(self, task: SearchTask, on_scrape, limit, exclude_fields, primary) -> SessionOutcome:
        handle, owned = primary, primary is None
        try:
            if handle is None:
                handle = await self.open_session()
            return await self._run_task(task, handle, on_scrape, limit, exclude_fields)
        except Exception as e:
            return self._failed(task, e)
        finally:
            if owned and handle is not None:
                await handle.close()

    async def _worker(self, worker_id: int, queue: asyncio.Queue, outcomes: Dict[int, SessionOutcome],
                      on_scrape, limit, exclude_fields, lent: Optional[SessionHandle]) -> None:
        # a lent session belongs to the caller; it is only closed here after a failed task
        handle, owned = lent, lent is None
        try:
            while True:
                try:
                    task = queue.get_nowait()
                except asyncio.QueueEmpty:
                    break
                delay = await jitter_sleep(self.settings.task_start_min, self.settings.task_start_max)
                logger.debug(f"worker {worker_id} starting search {task.index} after {delay:.1f}s")
                try:
                    if handle is None:
                        handle, owned = await self.open_session(), True
                    outcome = await self._run_task(task, handle, on_scrape, limit, exclude_fields)
                except Exception as e:
                    outcome = self._failed(task, e)
                outcomes[task.index] = outcome
                if outcome.state is SessionState.FAILED and handle is not None:
                    # a lent session is closed too so it stops counting against the bound;
                    # its owner sees it closed and reopens on next use
                    await handle.close()
                    handle = None
        finally:
            if owned and handle is not None:
                await handle.close()
            logger.debug(f"worker {worker_id} finished")

    async def _run_task(self, task: SearchTask, handle: SessionHandle, on_scrape, limit, exclude_fields) -> SessionOutcome:
        session = SearchSession(
            task.filter,
            task.index,
            handle.search_page,
            handle.extractor,
            self.tracker,
            on_scrape,
            limit=limit,
            exclude_fields=exclude_fields,
            settings=self.settings,
        )
        try:
            return await session.run()
        except Exception as e:
            logger.error(f"[{task.index}] search '{task.filter.keywords}' failed after "
                         f"{session.outcome.emitted} jobs: {type(e).__name__}: {e}")
            log_event('search_failed', level='error', index=task.index, keywords=task.filter.keywords,
                      emitted=session.outcome.emitted, error=e)
            return session.outcome

    def _failed(self, task: SearchTask, err: BaseException) -> SessionOutcome:
        logger.error(f"[{task.index}] search '{task.filter.keywords}' could not start: {type(err).__name__}: {err}")
        log_event('search_failed', level='error', index=task.index, keywords=task.filter.keywords, error=err)
        return SessionOutcome(index=task.index, state=SessionState.FAILED, error=f"{type(err).__name__}: {err}")
