from urllib.parse import parse_qs, urlsplit
import pytest
from pydantic import ValidationError

from jobscraper.linkedin.filters import (
    build_search_url,
    encode_facet,
    merge_filters,
    next_page_url,
    normalize_filters,
    page_offset,
)
from jobscraper.linkedin.models import Filter, GlobalFilters


def query(url):
    return {k: v[0] for k, v in parse_qs(urlsplit(url).query).items()}


def test_only_keywords_and_location_when_no_facets():
    url = build_search_url(Filter(keywords='python developer', location='Berlin, Germany'))
    assert url.startswith('https://www.linkedin.com/jobs/search/?')
    assert query(url) == {'keywords': 'python developer', 'location': 'Berlin, Germany'}


def test_facets_map_through_tables():
    flt = Filter(
        keywords='data',
        location='Remote',
        relevance='recent',
        remote=['hybrid', 'remote'],
        experience=['director', 'entry'],
        jobType=['contract', 'fulltime'],
        datePosted=7,
        salary='120K',
        easyApply=True,
    )
    q = query(build_search_url(flt))
    assert q['sortBy'] == 'DD'
    # enumeration order regardless of input order
    assert q['f_WT'] == '2,3'
    assert q['f_E'] == '2,5'
    assert q['f_JT'] == 'F,C'
    assert q['f_TPR'] == 'r604800'
    assert q['f_SB2'] == '5'
    assert q['f_AL'] == 'true'


def test_any_date_and_false_easy_apply_are_omitted():
    q = query(build_search_url(Filter(keywords='x', location='y', date_posted='any', easy_apply=False, remote=[])))
    assert set(q) == {'keywords', 'location'}


def test_duplicate_multi_values_collapse():
    assert encode_facet('remote', ('remote', 'remote', 'onSite')) == '1,2'


def test_invalid_facet_value_rejected():
    with pytest.raises(ValidationError):
        Filter(keywords='x', location='y', remote=['moon'])
    with pytest.raises(ValidationError):
        Filter(keywords='x')


def test_blank_keywords_or_location_rejected():
    with pytest.raises(ValidationError):
        Filter(keywords='  ', location='Berlin')
    with pytest.raises(ValidationError):
        Filter(keywords='python', location='')
    assert Filter(keywords=' python ', location=' Berlin ').keywords == 'python'


def test_global_filters_merge_under_search():
    gf = GlobalFilters(date_posted='1', remote=('remote',), easy_apply=True)
    merged = merge_filters(Filter(keywords='go', location='NYC', remote=['hybrid'], easy_apply=False), gf)
    assert merged.remote == ('hybrid',)
    assert merged.date_posted == '1'
    assert merged.easy_apply is False
    assert merged.keywords == 'go'


def test_normalize_accepts_dicts_and_single_filter():
    flts = normalize_filters({'keywords': 'a', 'location': 'b'}, {'relevance': 'relevant'})
    assert len(flts) == 1 and flts[0].relevance == 'relevant'
    with pytest.raises(ValidationError):
        normalize_filters([{'keywords': 'a', 'location': 'b'}], {'keywords': 'not a facet'})
    with pytest.raises(ValueError):
        normalize_filters([])


def test_pagination_advances_start():
    url = build_search_url(Filter(keywords='a', location='b'))
    p2 = next_page_url(url, 25)
    p3 = next_page_url(p2, 25)
    assert page_offset(url) == 0
    assert page_offset(p2) == 25
    assert page_offset(p3) == 50
    assert query(p3)['keywords'] == 'a'
