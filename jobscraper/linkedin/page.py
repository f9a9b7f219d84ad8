from __future__ import annotations
import logging
from typing import Protocol, runtime_checkable

from playwright.async_api import Error as PlaywrightError, Page

from .constants import PLACEHOLDER_SELECTORS, SELECTORS
from .errors import DetailPanelNotReady
from .settings import SETTINGS, Settings
from .stabilizer import PlaywrightList, ScrollableList

logger = logging.getLogger('page')


@runtime_checkable
class SearchPage(Protocol):
    """What a search session needs from the browser page it drives."""

    @property
    def url(self) -> str:  # pragma: no cover - interface definition
        ...

    def is_closed(self) -> bool:  # pragma: no cover
        ...

    async def goto(self, url: str) -> None:  # pragma: no cover
        ...

    async def accept_cookies(self) -> None:  # pragma: no cover
        ...

    async def hide_chat(self) -> None:  # pragma: no cover
        ...

    def results_list(self) -> ScrollableList:  # pragma: no cover
        ...

    async def open_card(self, job_id: str) -> None:  # pragma: no cover
        ...

    async def ensure_details_for(self, job_id: str) -> None:  # pragma: no cover
        ...


class PlaywrightSearchPage:
    def __init__(self, page: Page, settings: Settings = SETTINGS):
        self.page = page
        self.settings = settings

    @property
    def url(self) -> str:
        return self.page.url

    def is_closed(self) -> bool:
        return self.page.is_closed()

    async def goto(self, url: str) -> None:
        await self.page.goto(url, wait_until='domcontentloaded')

    async def accept_cookies(self) -> None:
        try:
            btn = self.page.locator(SELECTORS['cookie_accept']).first
            if await btn.is_visible():
                await btn.click()
                logger.debug('cookie banner accepted')
        except PlaywrightError as e:
            logger.warning(f"Could not dismiss cookie banner: {e}")

    async def hide_chat(self) -> None:
        try:
            await self.page.evaluate(
                "(sel) => document.querySelectorAll(sel).forEach((el) => { el.style.display = 'none'; })",
                SELECTORS['chat_panel'],
            )
        except PlaywrightError as e:
            logger.warning(f"Could not hide chat overlay: {e}")

    def results_list(self) -> ScrollableList:
        return PlaywrightList(
            self.page,
            SELECTORS['list'],
            placeholder_selectors=PLACEHOLDER_SELECTORS,
            placeholder_timeout=self.settings.placeholder_timeout,
        )

    async def open_card(self, job_id: str) -> None:
        card = self.page.locator(f'div[data-job-id="{job_id}"]').first
        await card.scroll_into_view_if_needed()
        await card.click()

    async def ensure_details_for(self, job_id: str) -> None:
        """Raise ``DetailPanelNotReady`` until the details pane shows ``job_id``."""
        panel = self.page.locator(SELECTORS['details_panel']).first
        if not await panel.is_visible():
            raise DetailPanelNotReady(job_id)
        html = await panel.inner_html()
        if job_id not in html:
            raise DetailPanelNotReady(job_id)
