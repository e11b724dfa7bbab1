"""Tests for the rate-limited work queue."""

import threading

import pytest

from workqueue import RateLimitingQueue


@pytest.fixture
def queue():
    q = RateLimitingQueue(base_delay=0.01, max_delay=0.05)
    yield q
    q.shut_down()


def test_add_deduplicates(queue):
    queue.add("a")
    queue.add("a")
    queue.add("b")
    assert len(queue) == 2
    assert queue.get(timeout=1) == "a"
    assert queue.get(timeout=1) == "b"


def test_key_added_while_processing_waits_for_done(queue):
    queue.add("a")
    key = queue.get(timeout=1)
    queue.add("a")
    assert len(queue) == 0

    queue.done(key)

    assert len(queue) == 1
    assert queue.get(timeout=1) == "a"


def test_done_without_readd_leaves_queue_empty(queue):
    queue.add("a")
    queue.done(queue.get(timeout=1))
    assert len(queue) == 0
    assert queue.get(timeout=0.01) is None


def test_backoff_grows_and_caps(queue):
    delays = [queue.when("a") for _ in range(5)]
    assert delays == [0.01, 0.02, 0.04, 0.05, 0.05]
    assert queue.num_requeues("a") == 5

    queue.forget("a")

    assert queue.num_requeues("a") == 0
    assert queue.when("a") == 0.01


def test_add_rate_limited_requeues_after_delay(queue):
    queue.add_rate_limited("a")
    assert len(queue) == 0
    assert queue.get(timeout=2) == "a"


def test_shutdown_releases_blocked_getters(queue):
    results = []
    worker = threading.Thread(target=lambda: results.append(queue.get()))
    worker.start()

    queue.shut_down()
    worker.join(timeout=2)

    assert results == [None]
    assert queue.shutting_down
    queue.add("a")
    assert len(queue) == 0
