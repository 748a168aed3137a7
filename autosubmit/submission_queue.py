"""Durable FIFO of jobs awaiting submission, unique by job URL."""
from __future__ import annotations

from autosubmit.log import get_logger
from autosubmit.models import Job
from autosubmit.store import KeyValueStore

log = get_logger(__name__)

QUEUE_KEY = "submission_queue"


class SubmissionQueue:
    """Every operation is one read-modify-write of the persisted list.

    Store read and write failures propagate to the caller.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def jobs(self) -> list[Job]:
        return [Job.from_dict(j) for j in self.store.get(QUEUE_KEY, []) if isinstance(j, dict)]

    def __len__(self) -> int:
        return len(self.jobs())

    def is_empty(self) -> bool:
        return not self.jobs()

    def enqueue(self, job: Job) -> bool:
        """Append ``job`` unless its URL is already queued. Returns True if added."""
        jobs = self.jobs()
        if any(j.job_url == job.job_url for j in jobs):
            return False
        jobs.append(job)
        self._save(jobs)
        log.debug("Queued %s (%d in queue)", job.job_url, len(jobs))
        return True

    def enqueue_many(self, new_jobs: list[Job]) -> int:
        jobs = self.jobs()
        seen = {j.job_url for j in jobs}
        added = 0
        for job in new_jobs:
            if job.job_url in seen:
                continue
            seen.add(job.job_url)
            jobs.append(job)
            added += 1
        if added:
            self._save(jobs)
        return added

    def peek_head(self) -> Job | None:
        jobs = self.jobs()
        return jobs[0] if jobs else None

    def remove_head(self) -> Job | None:
        jobs = self.jobs()
        if not jobs:
            return None
        head = jobs.pop(0)
        self._save(jobs)
        return head

    def remove(self, job_url: str) -> bool:
        jobs = self.jobs()
        kept = [j for j in jobs if j.job_url != job_url]
        if len(kept) == len(jobs):
            return False
        self._save(kept)
        return True

    def _save(self, jobs: list[Job]) -> None:
        self.store.set(QUEUE_KEY, [j.to_dict() for j in jobs])
