"""Drive one search filter through navigate / load list / extract / paginate.

A ``SearchSession`` owns nothing but its state: the page and extractor belong
to the worker's browser session, the dedup tracker to the whole run.
"""
from __future__ import annotations
import asyncio
import enum
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, FrozenSet, Iterable, Optional

from .constants import REPOSTED_MARKER, SELECTORS, VERIFICATION_BADGE
from .dedup import DedupTracker
from .errors import IllegalStateTransition, IncompleteRecordError, SessionFatalError
from .filters import build_search_url, next_page_url
from .logging_config import log_event
from .models import REQUIRED_FIELDS, Filter, JobCard, JobRecord
from .page import SearchPage
from .retry import RetryFailure, RetryPolicy
from .settings import SETTINGS, Settings
from .stabilizer import ListStabilizer, StabilizeResult
from .utils import jitter_sleep, leading_token, sanitize_lines, sanitize_text, split_skills, strip_query

logger = logging.getLogger('session')

OnScrape = Callable[[JobRecord, int], Any]


class SessionState(enum.Enum):
    IDLE = 'idle'
    NAVIGATED = 'navigated'
    LIST_LOADING = 'list_loading'
    EXTRACTING = 'extracting'
    PAGINATING = 'paginating'
    DONE = 'done'
    FAILED = 'failed'


TRANSITIONS = {
    SessionState.IDLE: {SessionState.NAVIGATED, SessionState.DONE, SessionState.FAILED},
    SessionState.NAVIGATED: {SessionState.LIST_LOADING, SessionState.DONE, SessionState.FAILED},
    SessionState.LIST_LOADING: {SessionState.EXTRACTING, SessionState.DONE, SessionState.FAILED},
    SessionState.EXTRACTING: {SessionState.PAGINATING, SessionState.DONE, SessionState.FAILED},
    SessionState.PAGINATING: {SessionState.LIST_LOADING, SessionState.DONE, SessionState.FAILED},
    SessionState.DONE: set(),
    SessionState.FAILED: set(),
}


@dataclass
class SessionOutcome:
    index: int
    state: SessionState = SessionState.IDLE
    emitted: int = 0
    pages: int = 0
    skipped: int = 0
    error: Optional[str] = None


def build_record(card: JobCard, details: Dict[str, Any], exclude_fields: FrozenSet[str] = frozenset()) -> JobRecord:
    """Merge sanitized card fields with extracted details into a JobRecord.

    Raises ``IncompleteRecordError`` when a required field is empty.
    """
    title = sanitize_text(card.title.replace(VERIFICATION_BADGE, ''))
    data: Dict[str, Any] = {
        'id': card.id.strip(),
        'title': title,
        'link': strip_query(card.link),
        'company': sanitize_text(card.company),
        'location': sanitize_text(card.location),
        'company_img_link': card.company_img_link or None,
        'remote': sanitize_text(card.remote) or None,
        'is_promoted': card.is_promoted,
    }
    missing = [f for f in REQUIRED_FIELDS if not data[f]]
    if missing:
        raise IncompleteRecordError(data['id'], missing)

    if 'description' in details:
        data['description'] = '\n'.join(sanitize_lines(details['description']))
    if 'time_since_posted' in details:
        posted = sanitize_text(details['time_since_posted'])
        data['time_since_posted'] = posted
        data['is_reposted'] = REPOSTED_MARKER in posted
    if 'company_link' in details:
        data['company_link'] = strip_query(details['company_link'])
    if 'company_size' in details:
        data['company_size'] = leading_token(details['company_size'])
    if 'skills_required' in details:
        data['skills_required'] = split_skills(details['skills_required'])
    if 'requirements' in details:
        data['requirements'] = sanitize_lines(details['requirements'])
    if 'job_insights' in details:
        data['job_insights'] = sanitize_lines(details['job_insights'])
    if 'apply_link' in details:
        data['apply_link'] = details['apply_link'] or ''
    for name in exclude_fields:
        data.pop(name, None)
    return JobRecord(**data)


class SearchSession:
    def __init__(self, flt: Filter, index: int, page: SearchPage, extractor, tracker: DedupTracker,
                 on_scrape: OnScrape, limit: Optional[int] = None,
                 exclude_fields: Iterable[str] = (), settings: Settings = SETTINGS,
                 stabilizer: Optional[ListStabilizer] = None):
        self.filter = flt
        self.index = index
        self.page = page
        self.extractor = extractor
        self.tracker = tracker
        self.on_scrape = on_scrape
        self.limit = settings.default_limit if limit is None else limit
        self.exclude_fields = frozenset(exclude_fields)
        self.settings = settings
        self.stabilizer = stabilizer or ListStabilizer(
            page_size=settings.page_size,
            poll_interval=settings.list_poll_interval,
            timeout=settings.list_timeout,
        )
        self.list_policy = RetryPolicy.for_list(settings)
        self.details_policy = RetryPolicy.for_details(settings)
        self.state = SessionState.IDLE
        self.outcome = SessionOutcome(index=index)

    def _transition(self, target: SessionState) -> None:
        if target not in TRANSITIONS[self.state]:
            raise IllegalStateTransition(self.state, target)
        logger.debug(f"[{self.index}] {self.state.value} -> {target.value}")
        self.state = target
        self.outcome.state = target

    def _is_fatal(self, _err: BaseException) -> bool:
        return self.page.is_closed()

    def _check_alive(self, err: Optional[BaseException] = None) -> None:
        if self.page.is_closed():
            raise SessionFatalError(f"Page closed during search {self.index}") from err

    @property
    def remaining(self) -> int:
        return self.limit - self.outcome.emitted

    async def run(self) -> SessionOutcome:
        """Run the search to completion and return its outcome.

        Re-raises ``SessionFatalError`` after moving to FAILED when the page
        becomes unusable.
        """
        if self.state is not SessionState.IDLE:
            raise IllegalStateTransition(self.state, SessionState.NAVIGATED)
        timeout = self.settings.search_timeout
        try:
            if timeout and timeout > 0:
                try:
                    await asyncio.wait_for(self._drive(), timeout)
                except asyncio.TimeoutError:
                    logger.warning(f"[{self.index}] search time cap {timeout}s reached after {self.outcome.emitted} jobs")
                    if self.state not in (SessionState.DONE, SessionState.FAILED):
                        self._transition(SessionState.DONE)
            else:
                await self._drive()
        except SessionFatalError as e:
            self._fail(e)
            raise
        except IllegalStateTransition:
            raise
        except Exception as e:
            if self.page.is_closed():
                fatal = SessionFatalError(f"Page closed during search {self.index}")
                self._fail(fatal)
                raise fatal from e
            self._fail(e)
            raise
        log_event('search_done', index=self.index, keywords=self.filter.keywords,
                  emitted=self.outcome.emitted, pages=self.outcome.pages)
        return self.outcome

    def _fail(self, err: BaseException) -> None:
        self.outcome.error = f"{type(err).__name__}: {err}"
        if self.state not in (SessionState.DONE, SessionState.FAILED):
            self._transition(SessionState.FAILED)

    async def _drive(self) -> None:
        if self.limit <= 0:
            logger.info(f"[{self.index}] limit is 0, nothing to do")
            self._transition(SessionState.DONE)
            return
        url = build_search_url(self.filter)
        logger.info(f"[{self.index}] searching '{self.filter.keywords}' in '{self.filter.location}' limit={self.limit}")
        log_event('search_start', index=self.index, keywords=self.filter.keywords,
                  location=self.filter.location, limit=self.limit)
        await self.page.goto(url)
        self._transition(SessionState.NAVIGATED)
        await self.page.accept_cookies()
        await self.page.hide_chat()

        while True:
            self._transition(SessionState.LIST_LOADING)
            loaded = await self._load_list()
            self.outcome.pages += 1
            if loaded.count == 0:
                logger.info(f"[{self.index}] no jobs on page {self.outcome.pages}")
                self._transition(SessionState.DONE)
                return
            self._transition(SessionState.EXTRACTING)
            new_jobs = await self._extract_page()
            if self.remaining <= 0:
                logger.info(f"[{self.index}] limit of {self.limit} reached")
                self._transition(SessionState.DONE)
                return
            if new_jobs == 0:
                logger.info(f"[{self.index}] page {self.outcome.pages} had no new jobs, stopping")
                self._transition(SessionState.DONE)
                return
            self._transition(SessionState.PAGINATING)
            if self.outcome.pages >= self.settings.max_pages:
                logger.info(f"[{self.index}] page cap {self.settings.max_pages} reached")
                self._transition(SessionState.DONE)
                return
            await self.page.goto(next_page_url(self.page.url, self.settings.page_size))

    async def _load_list(self) -> StabilizeResult:
        surface = self.page.results_list()

        def on_retry(err: BaseException, attempt: int) -> None:
            logger.debug(f"[{self.index}] list not ready (attempt {attempt}): {err}")

        res = await self.list_policy.run(
            lambda: self.stabilizer.stabilize(surface, SELECTORS['jobs']),
            on_retry=on_retry,
            is_fatal=self._is_fatal,
        )
        if isinstance(res, RetryFailure):
            logger.warning(f"[{self.index}] results list never loaded: {res.describe()}")
            self._check_alive(res.error)
            return StabilizeResult(False, 0)
        logger.info(f"[{self.index}] list loaded count={res.count} success={res.success}")
        return res

    async def _extract_page(self) -> int:
        cards = await self.extractor.extract_cards(self.settings.page_size)
        emitted = 0
        for card in cards:
            if self.remaining <= 0:
                break
            if not card.id:
                continue
            if card.id in self.tracker:
                logger.debug(f"[{self.index}] job {card.id} already scraped, skipping")
                continue
            try:
                if await self._extract_job(card):
                    emitted += 1
                    await jitter_sleep(self.settings.polite_min, self.settings.polite_max)
            except SessionFatalError:
                raise
            except Exception as e:
                self._check_alive(e)
                self.outcome.skipped += 1
                logger.warning(f"[{self.index}] job {card.id} skipped: {type(e).__name__}: {e}")
                log_event('job_skipped', level='warn', index=self.index, job_id=card.id, error=e)
        return emitted

    async def _extract_job(self, card: JobCard) -> bool:
        await self.page.open_card(card.id)
        ready = await self.details_policy.run(
            lambda: self.page.ensure_details_for(card.id),
            is_fatal=self._is_fatal,
        )
        if isinstance(ready, RetryFailure):
            self._check_alive(ready.error)
            self.outcome.skipped += 1
            logger.warning(f"[{self.index}] details for job {card.id} never loaded: {ready.describe()}")
            return False
        details = await self.extractor.extract_details(self.exclude_fields)
        record = build_record(card, details, self.exclude_fields)
        if not self.tracker.add(record.id):
            # another session delivered it meanwhile
            logger.debug(f"[{self.index}] job {record.id} taken by another session")
            return False
        result = self.on_scrape(record, self.index)
        if inspect.isawaitable(result):
            await result
        self.outcome.emitted += 1
        logger.info(f"[{self.index}] scraped {self.outcome.emitted}/{self.limit}: {record.title} @ {record.company}")
        return True
