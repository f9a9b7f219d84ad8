"""Filter -> LinkedIn search URL encoding.

Every facet maps through a fixed table onto the site's query parameter value.
Facets that are not set are left out of the URL entirely.
"""
from __future__ import annotations
from typing import Iterable, Mapping, Optional, Union
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from .constants import JOBS_SEARCH_URL
from .models import Filter, GlobalFilters

URL_PARAMS = {
    'keywords': 'keywords',
    'location': 'location',
    'relevance': 'sortBy',
    'remote': 'f_WT',
    'date_posted': 'f_TPR',
    'experience': 'f_E',
    'job_type': 'f_JT',
    'salary': 'f_SB2',
    'easy_apply': 'f_AL',
}

PAGE_PARAM = 'start'

MULTI_VALUE_DELIMITER = ','

FACET_TABLES: dict[str, dict[str, str]] = {
    'relevance': {'relevant': 'R', 'recent': 'DD'},
    'remote': {'onSite': '1', 'remote': '2', 'hybrid': '3'},
    'date_posted': {'1': 'r86400', '7': 'r604800', '30': 'r2592000', 'any': ''},
    'experience': {
        'internship': '1',
        'entry': '2',
        'associate': '3',
        'mid-senior': '4',
        'director': '5',
        'executive': '6',
    },
    'job_type': {
        'fulltime': 'F',
        'parttime': 'P',
        'contract': 'C',
        'temporary': 'T',
        'volunteer': 'V',
        'internship': 'I',
        'other': 'O',
    },
    'salary': {
        '40K': '1',
        '60K': '2',
        '80K': '3',
        '100K': '4',
        '120K': '5',
        '140K': '6',
        '160K': '7',
        '180K': '8',
        '200K': '9',
    },
}


def encode_facet(name: str, value) -> Optional[str]:
    """Return the query value for one facet, or None when it adds nothing."""
    if value is None:
        return None
    if name == 'easy_apply':
        return 'true' if value else None
    table = FACET_TABLES[name]
    if isinstance(value, (tuple, list, set, frozenset)):
        wanted = set(value)
        # enumeration order, not caller order, so equal filters give equal URLs
        codes = [code for key, code in table.items() if key in wanted and code]
        return MULTI_VALUE_DELIMITER.join(codes) or None
    return table[value] or None


def search_params(flt: Filter) -> list[tuple[str, str]]:
    params = [
        (URL_PARAMS['keywords'], flt.keywords),
        (URL_PARAMS['location'], flt.location),
    ]
    for name, value in flt.facets().items():
        encoded = encode_facet(name, value)
        if encoded is not None:
            params.append((URL_PARAMS[name], encoded))
    return params


def build_search_url(flt: Filter, base: str = JOBS_SEARCH_URL) -> str:
    return f"{base}/?{urlencode(search_params(flt))}"


def next_page_url(url: str, page_size: int) -> str:
    """Advance the ``start`` offset of a search URL by one page."""
    parts = urlsplit(url)
    query = parse_qsl(parts.query, keep_blank_values=True)
    current = 0
    kept = []
    for key, value in query:
        if key == PAGE_PARAM:
            try:
                current = int(value)
            except ValueError:
                current = 0
            continue
        kept.append((key, value))
    kept.append((PAGE_PARAM, str(current + page_size)))
    return urlunsplit(parts._replace(query=urlencode(kept)))


def page_offset(url: str) -> int:
    for key, value in parse_qsl(urlsplit(url).query):
        if key == PAGE_PARAM:
            try:
                return int(value)
            except ValueError:
                return 0
    return 0


FilterLike = Union[Filter, Mapping]


def as_filter(value: FilterLike) -> Filter:
    if isinstance(value, Filter):
        return value
    return Filter.model_validate(dict(value))


def as_global_filters(value: Union[GlobalFilters, Mapping, None]) -> Optional[GlobalFilters]:
    if value is None or isinstance(value, GlobalFilters):
        return value
    return GlobalFilters.model_validate(dict(value))


def merge_filters(flt: Filter, global_filters: Optional[GlobalFilters]) -> Filter:
    """Shallow merge: global facets underneath, per-search values win."""
    if global_filters is None:
        return flt
    merged = {**global_filters.facets(), **flt.model_dump(exclude_none=True)}
    return Filter.model_validate(merged)


def normalize_filters(filters: Union[FilterLike, Iterable[FilterLike]],
                      global_filters=None) -> list[Filter]:
    if isinstance(filters, (Filter, Mapping)):
        filters = [filters]
    gf = as_global_filters(global_filters)
    out = [merge_filters(as_filter(f), gf) for f in filters]
    if not out:
        raise ValueError('At least one filter is required')
    return out
