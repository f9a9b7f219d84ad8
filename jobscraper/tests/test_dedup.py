from concurrent.futures import ThreadPoolExecutor

from jobscraper.linkedin.dedup import DedupTracker


def test_seeded_ids_are_known():
    tracker = DedupTracker(['1', '2', '', None])
    assert tracker.has('1') and '2' in tracker
    assert '3' not in tracker
    assert len(tracker) == 2
    assert tracker.added == 0


def test_add_reports_first_writer_only():
    tracker = DedupTracker()
    assert tracker.add('42') is True
    assert tracker.add('42') is False
    assert tracker.added == 1
    assert tracker.snapshot() == frozenset({'42'})


def test_concurrent_adds_have_a_single_winner_per_id():
    tracker = DedupTracker(['seed'])
    ids = [str(i % 50) for i in range(2000)]

    with ThreadPoolExecutor(max_workers=8) as pool:
        wins = list(pool.map(tracker.add, ids))

    assert sum(wins) == 50
    assert len(tracker) == 51
