import asyncio
from collections import Counter

from jobscraper.linkedin.dedup import DedupTracker
from jobscraper.linkedin.models import Filter
from jobscraper.linkedin.orchestrator import ScrapeOrchestrator
from jobscraper.linkedin.session import SessionState
from jobscraper.linkedin.testing import FakeSessionFactory, FakeSite


def filters(*keywords):
    return [Filter(keywords=k, location=f"City {i}") for i, k in enumerate(keywords)]


def run_pool(factory, flts, settings, tracker=None, max_concurrent=2, limit=25, primary=None):
    calls = []
    orch = ScrapeOrchestrator(factory.open, tracker or DedupTracker(), settings)
    outcomes = asyncio.run(orch.run(
        flts,
        lambda rec, idx: calls.append((rec.id, idx)),
        limit=limit,
        max_concurrent=max_concurrent,
        primary=primary,
    ))
    return outcomes, calls


def test_five_filters_two_workers(settings):
    kws = [f"kw{i}" for i in range(5)]
    site = FakeSite({kw: [f"{kw}-{j}" for j in range(3)] for kw in kws}, step_delay=0.002)
    factory = FakeSessionFactory(site)
    outcomes, calls = run_pool(factory, filters(*kws), settings, max_concurrent=2)

    assert len(calls) == 15
    assert Counter(idx for _, idx in calls) == {i: 3 for i in range(5)}
    assert len({job_id for job_id, _ in calls}) == 15
    assert [o.index for o in outcomes] == [0, 1, 2, 3, 4]
    assert all(o.state is SessionState.DONE and o.emitted == 3 for o in outcomes)
    # bound holds and sessions are released
    assert factory.peak == 2
    assert factory.opened == 2
    assert factory.active == 0


def test_concurrency_bound_with_many_filters(settings):
    kws = [f"kw{i}" for i in range(9)]
    site = FakeSite({kw: [f"{kw}-{j}" for j in range(4)] for kw in kws}, step_delay=0.001)
    factory = FakeSessionFactory(site)
    run_pool(factory, filters(*kws), settings, max_concurrent=3)
    assert 1 <= factory.peak <= 3
    assert factory.active == 0


def test_shared_id_is_emitted_once(settings):
    site = FakeSite({'a': ['1', 'shared', '2'], 'b': ['shared', '3']}, step_delay=0.001)
    outcomes, calls = run_pool(FakeSessionFactory(site), filters('a', 'b'), settings)
    ids = [job_id for job_id, _ in calls]
    assert ids.count('shared') == 1
    assert sorted(ids) == ['1', '2', '3', 'shared']
    assert sum(o.emitted for o in outcomes) == 4


def test_seeded_ids_never_emitted(settings):
    site = FakeSite({'a': ['1', '2'], 'b': ['2', '3']})
    tracker = DedupTracker(['2', '3'])
    _, calls = run_pool(FakeSessionFactory(site), filters('a', 'b'), settings, tracker=tracker)
    assert [job_id for job_id, _ in calls] == ['1']


def test_crashed_search_does_not_stop_others(settings):
    site = FakeSite({'a': ['a1', 'a2', 'a3'], 'b': ['b1', 'b2'], 'c': ['c1']}, crash_on={'a2'})
    factory = FakeSessionFactory(site)
    outcomes, calls = run_pool(factory, filters('a', 'b', 'c'), settings, max_concurrent=1)
    assert outcomes[0].state is SessionState.FAILED
    assert outcomes[0].emitted == 1
    assert 'SessionFatalError' in outcomes[0].error
    assert [o.state for o in outcomes[1:]] == [SessionState.DONE, SessionState.DONE]
    assert sorted(job_id for job_id, _ in calls) == ['a1', 'b1', 'b2', 'c1']
    # crashed session was replaced for the remaining tasks
    assert factory.opened == 2
    assert factory.active == 0


def test_auth_failure_is_reported_per_task(settings):
    site = FakeSite({'a': ['1'], 'b': ['2']})
    outcomes, calls = run_pool(FakeSessionFactory(site, fail_auth=True), filters('a', 'b'), settings)
    assert calls == []
    assert [o.state for o in outcomes] == [SessionState.FAILED, SessionState.FAILED]
    assert all('AuthenticationError' in o.error for o in outcomes)


def test_single_filter_uses_primary_session(settings):
    site = FakeSite({'solo': ['1', '2']})
    factory = FakeSessionFactory(site)
    primary = asyncio.run(factory.open())
    outcomes, calls = run_pool(factory, filters('solo'), settings, primary=primary)
    assert [c[0] for c in calls] == ['1', '2']
    assert factory.opened == 1
    # primary belongs to the caller and stays open
    assert not primary.closed
    assert outcomes[0].index == 0


def test_pool_lends_primary_to_first_worker(settings):
    site = FakeSite({'a': ['1'], 'b': ['2'], 'c': ['3']})
    factory = FakeSessionFactory(site)
    primary = asyncio.run(factory.open())
    run_pool(factory, filters('a', 'b', 'c'), settings, max_concurrent=2, primary=primary)
    assert factory.peak == 2
    assert not primary.closed
    assert factory.active == 1


def test_empty_filter_list(settings):
    outcomes, calls = run_pool(FakeSessionFactory(FakeSite()), [], settings)
    assert outcomes == [] and calls == []


def test_failed_primary_is_closed_before_replacement(settings):
    site = FakeSite({'a': ['a1', 'a2'], 'b': ['b1'], 'c': ['c1'], 'd': ['d1']}, crash_on={'a2'}, step_delay=0.001)
    factory = FakeSessionFactory(site)
    primary = asyncio.run(factory.open())
    outcomes, calls = run_pool(factory, filters('a', 'b', 'c', 'd'), settings, max_concurrent=2, primary=primary)
    # worker 0 takes the first task on the lent primary
    assert outcomes[0].state is SessionState.FAILED
    assert primary.closed
    assert factory.peak <= 2
    assert factory.active == 0
    assert sorted(job_id for job_id, _ in calls) == ['a1', 'b1', 'c1', 'd1']
