"""In-process stand-ins for the browser side of a search.

``FakeSite`` holds result ids per keyword; ``FakeSessionFactory`` hands out
sessions whose page and extractor read from it. Used by the test-suite and
handy for dry runs of callbacks without a browser.
"""
from __future__ import annotations
import asyncio
import dataclasses
from typing import Dict, Iterable, List, Optional, Set
from urllib.parse import parse_qs, urlsplit

from .errors import AuthenticationError, DetailPanelNotReady
from .models import JobCard
from .settings import SETTINGS, Settings


def fast_settings(**overrides) -> Settings:
    """Settings with every wait shrunk to (near) zero."""
    base = dict(
        polite_min=0.0,
        polite_max=0.001,
        task_start_min=0.0,
        task_start_max=0.001,
        list_poll_interval=0.001,
        list_timeout=1.0,
        list_retry_base_delay=0.001,
        list_retry_deadline=2.0,
        details_retry_base_delay=0.001,
        details_retry_deadline=1.0,
        placeholder_timeout=0.01,
        apply_tab_timeout=0.05,
        search_timeout=0.0,
    )
    base.update(overrides)
    return dataclasses.replace(SETTINGS, **base)


def make_card(job_id: str) -> JobCard:
    return JobCard(
        id=job_id,
        title=f"  Python Engineer {job_id} with verification\n",
        link=f"https://www.linkedin.com/jobs/view/{job_id}/?refId=abc&trk=flagship",
        company=" Acme\tCorp ",
        company_img_link=f"https://media.licdn.com/logo/{job_id}.png",
        location="Berlin, Germany ",
        remote="Hybrid",
        is_promoted=False,
    )


def make_details(job_id: str) -> Dict[str, object]:
    return {
        'description': ['  About   the role\n', '', 'Build\tthings  with Python. '],
        'time_since_posted': ' Reposted 2 weeks ago ' if job_id.endswith('7') else '3 days ago',
        'company_link': 'https://www.linkedin.com/company/acme/life/?trk=top-card',
        'company_size': '201-500 employees · 120 on LinkedIn',
        'skills_required': ['Python, SQL, and Docker'],
        'requirements': ['3+ years of\nPython'],
        'job_insights': ['Hybrid', ' Full-time '],
        'apply_link': f"https://jobs.acme.com/apply/{job_id}",
    }


class FakePageClosed(Exception):
    """Mimics Playwright's 'Target page, context or browser has been closed'."""


class FakeSite:
    def __init__(self, results: Optional[Dict[str, List[str]]] = None, page_size: int = 25,
                 failing_fields: Iterable[str] = (), broken_details: Iterable[str] = (),
                 crash_on: Iterable[str] = (), step_delay: float = 0.0):
        self.results = results or {}
        self.page_size = page_size
        self.failing_fields = set(failing_fields)
        self.broken_details: Set[str] = set(broken_details)
        self.crash_on: Set[str] = set(crash_on)
        self.step_delay = step_delay

    def cards(self, keywords: str, start: int) -> List[JobCard]:
        ids = self.results.get(keywords, [])
        return [make_card(i) for i in ids[start:start + self.page_size]]


class StaticList:
    """List already fully rendered with ``count`` items."""

    def __init__(self, count: int):
        self.count = count

    async def ensure_visible(self) -> None:
        return None

    async def no_results(self) -> bool:
        return self.count == 0

    async def scroll_last_into_view(self, item_selector: str) -> None:
        await asyncio.sleep(0)

    async def wait_placeholders_detached(self) -> None:
        return None

    async def count_items(self, item_selector: str) -> int:
        return self.count


class GrowingList(StaticList):
    """Gains one item per scroll until ``stop_after`` (never stops when None)."""

    def __init__(self, stop_after: Optional[int] = None, start: int = 0):
        super().__init__(start)
        self.stop_after = stop_after
        self.scrolls = 0

    async def no_results(self) -> bool:
        return False

    async def scroll_last_into_view(self, item_selector: str) -> None:
        self.scrolls += 1
        if self.stop_after is None or self.count < self.stop_after:
            self.count += 1


class FakeSearchPage:
    def __init__(self, site: FakeSite):
        self.site = site
        self.url = 'about:blank'
        self.closed = False
        self.visited: List[str] = []
        self.opened: List[str] = []

    def is_closed(self) -> bool:
        return self.closed

    def _alive(self) -> None:
        if self.closed:
            raise FakePageClosed('Target page, context or browser has been closed')

    async def goto(self, url: str) -> None:
        self._alive()
        await asyncio.sleep(self.site.step_delay)
        self.url = url
        self.visited.append(url)

    async def accept_cookies(self) -> None:
        self._alive()

    async def hide_chat(self) -> None:
        self._alive()

    def current_cards(self) -> List[JobCard]:
        qs = parse_qs(urlsplit(self.url).query)
        keywords = qs.get('keywords', [''])[0]
        start = int(qs.get('start', ['0'])[0])
        return self.site.cards(keywords, start)

    def results_list(self) -> StaticList:
        return StaticList(len(self.current_cards()))

    async def open_card(self, job_id: str) -> None:
        self._alive()
        await asyncio.sleep(self.site.step_delay)
        if job_id in self.site.crash_on:
            self.closed = True
            raise FakePageClosed('Target page, context or browser has been closed')
        self.opened.append(job_id)

    async def ensure_details_for(self, job_id: str) -> None:
        self._alive()
        if job_id in self.site.broken_details:
            raise DetailPanelNotReady(job_id)


class FakeExtractor:
    def __init__(self, page: FakeSearchPage):
        self.page = page

    async def extract_cards(self, limit: Optional[int] = None) -> List[JobCard]:
        self.page._alive()
        return self.page.current_cards()[:limit]

    async def extract_details(self, exclude_fields: Iterable[str] = ()) -> Dict[str, object]:
        self.page._alive()
        job_id = self.page.opened[-1]
        excluded = set(exclude_fields) | self.page.site.failing_fields
        return {k: v for k, v in make_details(job_id).items() if k not in excluded}


class FakeBrowserSession:
    def __init__(self, site: FakeSite, factory: Optional['FakeSessionFactory'] = None):
        self.search_page = FakeSearchPage(site)
        self.extractor = FakeExtractor(self.search_page)
        self._factory = factory
        self.closed = False

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.search_page.closed = True
        if self._factory is not None:
            self._factory.active -= 1


class FakeSessionFactory:
    """Counts open sessions so tests can check the concurrency bound."""

    def __init__(self, site: FakeSite, fail_auth: bool = False):
        self.site = site
        self.fail_auth = fail_auth
        self.active = 0
        self.peak = 0
        self.opened = 0
        self.sessions: List[FakeBrowserSession] = []

    async def open(self) -> FakeBrowserSession:
        await asyncio.sleep(0)
        if self.fail_auth:
            raise AuthenticationError('LinkedIn rejected the li_at session cookie (expired or invalid)')
        session = FakeBrowserSession(self.site, self)
        self.opened += 1
        self.active += 1
        self.peak = max(self.peak, self.active)
        self.sessions.append(session)
        return session
