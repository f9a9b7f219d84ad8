import asyncio
import pytest

from jobscraper.linkedin import retry as retry_mod
from jobscraper.linkedin.errors import ListNotFoundError, SessionFatalError
from jobscraper.linkedin.retry import RetryFailure, RetryPolicy, backoff_delay, retry


class Flaky:
    def __init__(self, failures, exc=ListNotFoundError):
        self.failures = failures
        self.calls = 0
        self.exc = exc

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc(f"not ready #{self.calls}")
        return 'loaded'


@pytest.fixture
def recorded_sleeps(monkeypatch):
    delays = []

    async def fake_sleep(d):
        delays.append(d)

    monkeypatch.setattr(retry_mod, '_sleep', fake_sleep)
    return delays


def test_success_after_failures_with_exponential_backoff(recorded_sleeps):
    op = Flaky(3)
    retried = []
    res = asyncio.run(retry(op, max_attempts=5, base_delay=0.3, on_retry=lambda e, n: retried.append(n)))
    assert res == 'loaded'
    assert op.calls == 4
    assert retried == [1, 2, 3]
    assert recorded_sleeps == pytest.approx([0.3, 0.6, 1.2])
    assert all(b >= a for a, b in zip(recorded_sleeps, recorded_sleeps[1:]))


def test_first_try_success_never_sleeps(recorded_sleeps):
    assert asyncio.run(retry(Flaky(0), max_attempts=3, base_delay=1)) == 'loaded'
    assert recorded_sleeps == []


def test_exhaustion_returns_failure_value(recorded_sleeps):
    op = Flaky(10)
    res = asyncio.run(retry(op, max_attempts=3, base_delay=0.2))
    assert isinstance(res, RetryFailure)
    assert res.attempts == 3
    assert not res.timed_out
    assert isinstance(res.error, ListNotFoundError)
    assert op.calls == 3
    # no wait after the final attempt
    assert recorded_sleeps == pytest.approx([0.2, 0.4])
    assert 'attempts exhausted' in res.describe()


def test_deadline_stops_new_attempts(recorded_sleeps):
    now = [0.0]

    def clock():
        return now[0]

    async def op():
        now[0] += 1.5
        raise ListNotFoundError('slow')

    res = asyncio.run(retry(op, max_attempts=10, base_delay=0.01, deadline=2.0, clock=clock))
    assert isinstance(res, RetryFailure)
    assert res.timed_out
    assert res.attempts == 2


def test_fatal_error_propagates_immediately(recorded_sleeps):
    op = Flaky(5, exc=SessionFatalError)
    with pytest.raises(SessionFatalError):
        asyncio.run(retry(op, max_attempts=3, is_fatal=lambda e: isinstance(e, SessionFatalError)))
    assert op.calls == 1
    assert recorded_sleeps == []


def test_invalid_attempts():
    with pytest.raises(ValueError):
        asyncio.run(retry(Flaky(0), max_attempts=0))


def test_policy_from_settings(settings, recorded_sleeps):
    policy = RetryPolicy.for_details(settings)
    assert policy.max_attempts == settings.details_retry_attempts
    assert asyncio.run(policy.run(Flaky(1))) == 'loaded'
    assert recorded_sleeps == [backoff_delay(settings.details_retry_base_delay, 1)]
