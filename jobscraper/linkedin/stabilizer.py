"""Know when an append-on-scroll list has finished loading.

LinkedIn renders the first few cards of a results page and appends the rest
as the last card scrolls into view. ``ListStabilizer`` keeps triggering that
until one full page is rendered or the count stops changing.
"""
from __future__ import annotations
import asyncio
import logging
import re
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Protocol, runtime_checkable

from playwright.async_api import Page, TimeoutError as PlaywrightTimeoutError

from .constants import NO_RESULTS_PATTERN, PLACEHOLDER_SELECTORS
from .errors import ListNotFoundError

logger = logging.getLogger('stabilizer')

# patched in tests to account for poll waits
_sleep = asyncio.sleep


@runtime_checkable
class ScrollableList(Protocol):
    async def ensure_visible(self) -> None:  # pragma: no cover - interface definition
        ...

    async def no_results(self) -> bool:  # pragma: no cover
        ...

    async def scroll_last_into_view(self, item_selector: str) -> None:  # pragma: no cover
        ...

    async def wait_placeholders_detached(self) -> None:  # pragma: no cover
        ...

    async def count_items(self, item_selector: str) -> int:  # pragma: no cover
        ...


@dataclass(frozen=True)
class StabilizeResult:
    success: bool
    count: int


class ListStabilizer:
    def __init__(self, page_size: int = 25, poll_interval: float = 0.2, timeout: float = 10.0,
                 clock: Callable[[], float] = time.monotonic):
        self.page_size = page_size
        self.poll_interval = poll_interval
        self.timeout = timeout
        self._clock = clock

    async def stabilize(self, surface: ScrollableList, item_selector: str) -> StabilizeResult:
        """Scroll until ``page_size`` items are rendered or growth stops.

        Returns ``success=False`` with the last count when ``timeout`` runs out,
        and ``count=0, success=False`` as soon as a no-results notice shows.
        """
        # the notice replaces the list container, so look for it first
        if await surface.no_results():
            logger.info('No matching jobs found')
            return StabilizeResult(False, 0)
        await surface.ensure_visible()
        started = self._clock()
        previous: Optional[int] = None
        count = 0
        while True:
            if await surface.no_results():
                logger.info('No matching jobs found')
                return StabilizeResult(False, 0)
            if self._clock() - started >= self.timeout:
                logger.warning(f"List did not stabilize within {self.timeout}s (last count={count})")
                return StabilizeResult(False, count)
            await _sleep(self.poll_interval)
            await surface.scroll_last_into_view(item_selector)
            await surface.wait_placeholders_detached()
            count = await surface.count_items(item_selector)
            logger.debug(f"list count={count}")
            if count >= self.page_size:
                return StabilizeResult(True, count)
            if previous is not None and count == previous:
                # growth stopped; an empty list that never grew is not a success
                return StabilizeResult(count > 0, count)
            previous = count


class PlaywrightList:
    """``ScrollableList`` over any DOM list that appends children on scroll."""

    def __init__(self, page: Page, list_selector: str,
                 placeholder_selectors: Iterable[str] = PLACEHOLDER_SELECTORS,
                 no_results_pattern: str = NO_RESULTS_PATTERN,
                 placeholder_timeout: float = 3.0):
        self.page = page
        self.list_selector = list_selector
        self.placeholder_selectors = tuple(placeholder_selectors)
        self.no_results_rgx = re.compile(no_results_pattern, re.I)
        self.placeholder_timeout = placeholder_timeout

    def _items(self, item_selector: str):
        return self.page.locator(f"{self.list_selector} {item_selector}")

    async def ensure_visible(self) -> None:
        if not await self.page.locator(self.list_selector).first.is_visible():
            raise ListNotFoundError(f"List {self.list_selector!r} is not visible")

    async def no_results(self) -> bool:
        return await self.page.get_by_text(self.no_results_rgx).first.is_visible()

    async def scroll_last_into_view(self, item_selector: str) -> None:
        items = self._items(item_selector)
        n = await items.count()
        if n:
            await items.nth(n - 1).scroll_into_view_if_needed()

    async def wait_placeholders_detached(self) -> None:
        timeout_ms = self.placeholder_timeout * 1000
        results = await asyncio.gather(
            *(self.page.wait_for_selector(sel, state='detached', timeout=timeout_ms)
              for sel in self.placeholder_selectors),
            return_exceptions=True,
        )
        for res in results:
            # a placeholder still attached is fine: the next poll reads again
            if isinstance(res, Exception) and not isinstance(res, PlaywrightTimeoutError):
                raise res

    async def count_items(self, item_selector: str) -> int:
        return await self._items(item_selector).count()
