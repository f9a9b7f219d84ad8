"""Read job cards and job details off a LinkedIn search page.

Card fields come from one bulk DOM read. Detail fields are independent
sub-extractions run concurrently; a failing field is logged and left out,
it never costs the whole job.
"""
from __future__ import annotations
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

from playwright.async_api import Error as PlaywrightError, Locator, Page, TimeoutError as PlaywrightTimeoutError

from .constants import MODAL_SELECTORS, PROMOTED_MARKER, SELECTORS
from .logging_config import log_event
from .models import DETAIL_FIELDS, JobCard
from .settings import SETTINGS, Settings
from .utils import same_origin, strip_query

logger = logging.getLogger('extractor')

CARDS_JS = """
({selectors, limit, promoted}) => Array.from(document.querySelectorAll(selectors.jobs))
  .slice(0, limit)
  .map((job) => {
    const meta = (job.querySelector(selectors.card_metadata)?.textContent || '').split('(');
    const anchor = job.querySelector(selectors.job_link);
    return {
      id: job.getAttribute('data-job-id') || '',
      title: job.querySelector(selectors.job_title)?.textContent || '',
      link: anchor ? anchor.href : '',
      company: job.querySelector(selectors.company)?.textContent || '',
      company_img_link: job.querySelector('img')?.getAttribute('src') || '',
      is_promoted: Array.from(job.querySelectorAll('li')).some((li) => li.textContent?.trim() === promoted),
      location: meta[0] || '',
      remote: (meta[1] || '').replace(')', ''),
    };
  })
"""


class JobExtractor:
    def __init__(self, page: Page, settings: Settings = SETTINGS):
        self.page = page
        self.settings = settings

    @property
    def _field_timeout_ms(self) -> float:
        return self.settings.placeholder_timeout * 1000

    @property
    def _tab_timeout_ms(self) -> float:
        return self.settings.apply_tab_timeout * 1000

    async def extract_cards(self, limit: Optional[int] = None) -> List[JobCard]:
        limit = min(limit or self.settings.page_size, self.settings.page_size)
        raw = await self.page.evaluate(CARDS_JS, {
            'selectors': SELECTORS,
            'limit': limit,
            'promoted': PROMOTED_MARKER,
        })
        cards = []
        for item in raw or []:
            card = JobCard.model_validate(item)
            cards.append(card.model_copy(update={'link': strip_query(card.link)}))
        logger.debug(f"extracted {len(cards)} cards")
        return cards

    def detail_getters(self, exclude_fields: Iterable[str] = ()) -> Dict[str, Callable[[], Awaitable[Any]]]:
        excluded = set(exclude_fields)
        return {name: getattr(self, f"get_{name}") for name in DETAIL_FIELDS if name not in excluded}

    async def extract_details(self, exclude_fields: Iterable[str] = ()) -> Dict[str, Any]:
        """Run every requested detail getter concurrently; keep only the ones that succeeded."""
        tasks = {name: asyncio.ensure_future(getter()) for name, getter in self.detail_getters(exclude_fields).items()}
        if not tasks:
            return {}
        await asyncio.gather(*tasks.values(), return_exceptions=True)
        details: Dict[str, Any] = {}
        for name, task in tasks.items():
            err = task.exception()
            if err is not None:
                logger.warning(f"Failed to extract job detail {name}: {type(err).__name__}: {err}")
                log_event('detail_field_failed', level='warn', field=name, error=err)
                continue
            details[name] = task.result()
        return details

    async def _texts(self, selector: str) -> List[str]:
        return await self.page.locator(selector).all_text_contents()

    async def _text(self, selector: str) -> str:
        return await self.page.locator(selector).first.text_content(timeout=self._field_timeout_ms) or ''

    async def get_description(self) -> List[str]:
        root = SELECTORS['job_description']
        return await self._texts(f"{root} p, {root} li")

    async def get_time_since_posted(self) -> str:
        return await self._text(SELECTORS['time_since_posted'])

    async def get_company_link(self) -> str:
        href = await self.page.locator(SELECTORS['company_link']).first.get_attribute('href', timeout=self._field_timeout_ms)
        return href or ''

    async def get_company_size(self) -> str:
        return await self._text(SELECTORS['company_size'])

    async def get_skills_required(self) -> List[str]:
        return await self._texts(SELECTORS['skills_required'])

    async def get_requirements(self) -> List[str]:
        return await self._texts(SELECTORS['requirements'])

    async def get_job_insights(self) -> List[str]:
        return await self._texts(SELECTORS['insights'])

    async def get_apply_link(self) -> str:
        """External apply URL without query string, or '' when there is none.

        Clicking the apply control either opens the employer site in a new
        tab or a LinkedIn modal whose confirm button does.
        """
        try:
            button = self.page.locator(SELECTORS['apply_button']).first
            if await button.count() == 0:
                return ''
            tab = await self._click_for_new_tab(button)
            if tab is None:
                confirm = self.page.locator(MODAL_SELECTORS['apply_button']).first
                await confirm.wait_for(state='visible', timeout=self._tab_timeout_ms)
                tab = await self._click_for_new_tab(confirm)
            if tab is None:
                return ''
            try:
                return strip_query(tab.url)
            finally:
                await tab.close()
        except Exception as e:
            logger.warning(f"Failed to get apply link: {type(e).__name__}: {e}")
            return ''
        finally:
            await self._dismiss_modal()

    async def _click_for_new_tab(self, control: Locator) -> Optional[Page]:
        try:
            async with self.page.context.expect_page(timeout=self._tab_timeout_ms) as info:
                await control.click()
            tab = await info.value
        except PlaywrightTimeoutError:
            return None
        try:
            await tab.wait_for_load_state('domcontentloaded', timeout=self._tab_timeout_ms)
        except PlaywrightTimeoutError:
            logger.debug(f"apply tab still loading, using url {tab.url}")
        if same_origin(tab.url, self.page.url):
            await tab.close()
            return None
        return tab

    async def _dismiss_modal(self) -> None:
        try:
            close = self.page.locator(MODAL_SELECTORS['close_button']).first
            if await close.is_visible():
                await close.click()
        except PlaywrightError as e:
            logger.debug(f"modal dismiss failed: {e}")
