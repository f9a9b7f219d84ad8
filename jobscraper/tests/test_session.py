import asyncio
import pytest

from jobscraper.linkedin.dedup import DedupTracker
from jobscraper.linkedin.errors import IllegalStateTransition, IncompleteRecordError, SessionFatalError
from jobscraper.linkedin.models import Filter, JobCard, OPTIONAL_FIELDS
from jobscraper.linkedin.session import SearchSession, SessionState, build_record
from jobscraper.linkedin.testing import FakeBrowserSession, FakeSite, make_card, make_details


def run_session(site, settings, keywords='python', limit=25, tracker=None, exclude=(), on_scrape=None):
    handle = FakeBrowserSession(site)
    records = []
    callback = on_scrape or (lambda rec, idx: records.append((rec, idx)))
    session = SearchSession(
        Filter(keywords=keywords, location='Berlin'),
        4,
        handle.search_page,
        handle.extractor,
        tracker if tracker is not None else DedupTracker(),
        callback,
        limit=limit,
        exclude_fields=exclude,
        settings=settings,
    )
    outcome = asyncio.run(session.run())
    return session, outcome, records, handle


def test_build_record_sanitizes_and_derives():
    rec = build_record(make_card('17'), make_details('17'))
    assert rec.title == 'Python Engineer 17'
    assert rec.link == 'https://www.linkedin.com/jobs/view/17/'
    assert rec.company == 'Acme Corp'
    assert rec.location == 'Berlin, Germany'
    assert rec.description == 'About the role\nBuild things with Python.'
    assert rec.time_since_posted == 'Reposted 2 weeks ago'
    assert rec.is_reposted is True
    assert rec.company_size == '201-500'
    assert rec.company_link == 'https://www.linkedin.com/company/acme/life/'
    assert rec.skills_required == ['Python', 'SQL', 'Docker']
    assert rec.requirements == ['3+ years of Python']
    assert rec.job_insights == ['Hybrid', 'Full-time']


def test_build_record_requires_core_fields():
    card = JobCard(id='1', title='Dev', link='https://x/1', company='', location='Berlin')
    with pytest.raises(IncompleteRecordError) as exc:
        build_record(card, {})
    assert exc.value.missing == ['company']


def test_emits_all_jobs_then_done(site, settings):
    session, outcome, records, handle = run_session(site, settings)
    assert [r.id for r, _ in records] == ['101', '102', '103']
    assert {idx for _, idx in records} == {4}
    assert outcome.state is SessionState.DONE
    assert outcome.emitted == 3
    # second page was requested and came back empty
    assert outcome.pages == 2
    assert 'start=25' in handle.search_page.visited[-1]


def test_quota_is_never_exceeded(settings):
    site = FakeSite({'python': [str(i) for i in range(60)]})
    _, outcome, records, _ = run_session(site, settings, limit=30)
    assert len(records) == 30
    assert outcome.emitted == 30
    assert outcome.pages == 2


def test_known_ids_are_skipped(site, settings):
    tracker = DedupTracker(['102'])
    _, _, records, _ = run_session(site, settings, tracker=tracker)
    assert [r.id for r, _ in records] == ['101', '103']
    assert tracker.has('101') and tracker.has('103')


def test_page_of_only_known_ids_ends_search(settings):
    site = FakeSite({'python': [str(i) for i in range(30)]})
    tracker = DedupTracker([str(i) for i in range(25)])
    _, outcome, records, _ = run_session(site, settings, tracker=tracker)
    assert records == []
    assert outcome.state is SessionState.DONE
    assert outcome.pages == 1


def test_failing_detail_field_is_omitted(settings):
    site = FakeSite({'python': ['101', '102']}, failing_fields={'company_size'})
    _, _, records, _ = run_session(site, settings)
    assert len(records) == 2
    for rec, _ in records:
        assert rec.company_size is None
        assert rec.description and rec.apply_link


def test_excluded_fields_absent_from_records(site, settings):
    _, _, records, _ = run_session(site, settings, exclude={'description', 'apply_link'})
    for rec, _ in records:
        dumped = rec.model_dump(exclude_none=True)
        assert 'description' not in dumped and 'apply_link' not in dumped
        for f in set(OPTIONAL_FIELDS) - {'description', 'apply_link', 'is_reposted'}:
            assert f in dumped, f


def test_details_panel_never_loading_skips_job(settings):
    site = FakeSite({'python': ['101', '102', '103']}, broken_details={'102'})
    _, outcome, records, _ = run_session(site, settings)
    assert [r.id for r, _ in records] == ['101', '103']
    assert outcome.skipped == 1
    assert outcome.state is SessionState.DONE


def test_callback_error_skips_only_that_job(site, settings):
    seen = []

    def flaky(rec, idx):
        if rec.id == '101':
            raise RuntimeError('db locked')
        seen.append(rec.id)

    _, outcome, _, _ = run_session(site, settings, on_scrape=flaky)
    assert seen == ['102', '103']
    assert outcome.state is SessionState.DONE


def test_async_callback_is_awaited(site, settings):
    seen = []

    async def cb(rec, idx):
        await asyncio.sleep(0)
        seen.append(rec.id)

    run_session(site, settings, on_scrape=cb)
    assert seen == ['101', '102', '103']


def test_page_crash_fails_session_and_keeps_emitted(settings):
    site = FakeSite({'python': ['101', '102', '103']}, crash_on={'102'})
    handle = FakeBrowserSession(site)
    records = []
    session = SearchSession(Filter(keywords='python', location='Berlin'), 0, handle.search_page, handle.extractor,
                            DedupTracker(), lambda r, i: records.append(r), settings=settings)
    with pytest.raises(SessionFatalError):
        asyncio.run(session.run())
    assert session.state is SessionState.FAILED
    assert [r.id for r in records] == ['101']
    assert session.outcome.emitted == 1


def test_no_results_is_done_with_zero(settings):
    _, outcome, records, _ = run_session(FakeSite({}), settings, keywords='cobol')
    assert records == []
    assert outcome.state is SessionState.DONE
    assert outcome.pages == 1


def test_zero_limit_does_not_navigate(site, settings):
    _, outcome, records, handle = run_session(site, settings, limit=0)
    assert records == [] and handle.search_page.visited == []
    assert outcome.state is SessionState.DONE


def test_session_runs_once(site, settings):
    session, _, _, _ = run_session(site, settings)
    with pytest.raises(IllegalStateTransition):
        asyncio.run(session.run())
