"""Site URLs, DOM selectors and browser launch defaults.

Selectors are volatile: LinkedIn changes its markup regularly, so every
lookup key used by the engine lives here and nowhere else.
"""
from __future__ import annotations

HOME_URL = 'https://www.linkedin.com'
JOBS_SEARCH_URL = 'https://www.linkedin.com/jobs/search'
JOB_VIEW_URL = 'https://www.linkedin.com/jobs/view'

SESSION_COOKIE_NAME = 'li_at'
SESSION_COOKIE_DOMAIN = '.linkedin.com'

SELECTORS = {
    'active_menu': 'a.global-nav__primary-link--active',
    'list': '.scaffold-layout__list ul',
    'jobs': 'div.job-card-container',
    'job_link': 'a.job-card-container__link',
    'job_title': '.artdeco-entity-lockup__title .visually-hidden',
    'company': '.artdeco-entity-lockup__subtitle',
    'card_metadata': 'ul.job-card-container__metadata-wrapper li span',
    'details_panel': '.jobs-search__job-details--container',
    'job_description': '.jobs-description',
    'time_since_posted': '.job-details-jobs-unified-top-card__primary-description-container span:nth-of-type(3)',
    'company_link': '.job-details-jobs-unified-top-card__company-name a',
    'company_size': 'span.jobs-company__inline-information',
    'insights': '.job-details-jobs-unified-top-card__container--two-pane li',
    'skills_required': '.job-details-how-you-match__skills-item-subtitle',
    'requirements': '.job-details-how-you-match-card__qualification-section-list-item',
    'apply_button': "button.jobs-apply-button[role='link']",
    'cookie_accept': 'button.artdeco-global-alert-action[action-type="ACCEPT"]',
    'chat_panel': '.msg-overlay-list-bubble',
}

# list placeholders rendered while more cards are being fetched
PLACEHOLDER_SELECTORS = (
    '.scaffold-skeleton',
    '.scaffold-skeleton-container',
    '.scaffold-skeleton-entity',
    '.job-card-container__ghost-placeholder',
)

NO_RESULTS_PATTERN = r'No matching jobs found'

MODAL_SELECTORS = {
    'close_button': '.artdeco-modal.artdeco-modal--layer-default .artdeco-modal__dismiss',
    'share_profile_toggle': "input[role='switch'].artdeco-toggle__button",
    'apply_button': '.artdeco-modal button[role="link"].jobs-apply-button',
}

REPOSTED_MARKER = 'Reposted'
PROMOTED_MARKER = 'Promoted'
VERIFICATION_BADGE = 'with verification'

BROWSER_DEFAULTS = {
    'headless': True,
    'slow_mo': 50,
    'timeout': 30_000,
    'args': [
        '--no-sandbox',
        '--disable-setuid-sandbox',
        '--disable-dev-shm-usage',
        '--disable-gpu',
        '--lang=en-US',
        '--disable-notifications',
        '--disable-extensions',
        '--disable-background-timer-throttling',
        '--disable-backgrounding-occluded-windows',
        '--disable-renderer-backgrounding',
    ],
}

DEFAULT_VIEWPORT = {'width': 1366, 'height': 900}
DEFAULT_LOCALE = 'en-US'
