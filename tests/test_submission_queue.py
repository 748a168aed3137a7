"""Tests for the durable submission queue."""

import random

from autosubmit.models import Job
from autosubmit.store import JsonFileStore
from autosubmit.submission_queue import SubmissionQueue


def test_enqueue_is_idempotent(queue):
    assert queue.enqueue(Job(job_url="https://x/jobs/~1"))
    assert not queue.enqueue(Job(job_url="https://x/jobs/~1", job_title="again"))
    assert len(queue) == 1
    assert queue.peek_head().job_title == ""


def test_fifo_order_and_head_removal(queue):
    for i in range(3):
        queue.enqueue(Job(job_url=f"https://x/jobs/~{i}"))
    assert queue.peek_head().job_url == "https://x/jobs/~0"
    assert queue.remove_head().job_url == "https://x/jobs/~0"
    assert [j.job_url for j in queue.jobs()] == ["https://x/jobs/~1", "https://x/jobs/~2"]


def test_remove_by_url(queue):
    queue.enqueue(Job(job_url="https://x/jobs/~1"))
    queue.enqueue(Job(job_url="https://x/jobs/~2"))
    assert queue.remove("https://x/jobs/~2")
    assert not queue.remove("https://x/jobs/~2")
    assert [j.job_url for j in queue.jobs()] == ["https://x/jobs/~1"]


def test_empty_queue(queue):
    assert queue.is_empty()
    assert queue.peek_head() is None
    assert queue.remove_head() is None


def test_random_enqueue_sequences_never_duplicate(queue):
    rng = random.Random(7)
    urls = [f"https://x/jobs/~{i}" for i in range(6)]
    for _ in range(200):
        op = rng.random()
        if op < 0.6:
            queue.enqueue(Job(job_url=rng.choice(urls)))
        elif op < 0.8:
            queue.enqueue_many([Job(job_url=rng.choice(urls)) for _ in range(3)])
        else:
            queue.remove_head()
        seen = [j.job_url for j in queue.jobs()]
        assert len(seen) == len(set(seen))


def test_enqueue_many_skips_duplicates_within_batch(queue):
    added = queue.enqueue_many([
        Job(job_url="https://x/jobs/~1"),
        Job(job_url="https://x/jobs/~1"),
        Job(job_url="https://x/jobs/~2"),
    ])
    assert added == 2


def test_queue_survives_reopen(tmp_path):
    path = tmp_path / "state.json"
    SubmissionQueue(JsonFileStore(path)).enqueue(Job(job_url="https://x/jobs/~1", job_id="~1"))
    head = SubmissionQueue(JsonFileStore(path)).peek_head()
    assert head.job_url == "https://x/jobs/~1"
    assert head.job_id == "~1"
