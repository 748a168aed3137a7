"""Pull proposals from the configured services and queue the pending ones."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from autosubmit.config import ProposalSource
from autosubmit.errors import ExternalServiceError
from autosubmit.log import get_logger
from autosubmit.models import Job, ProposalStatus
from autosubmit.proposals import ProposalStore
from autosubmit.service import ProposalServiceClient
from autosubmit.submission_queue import SubmissionQueue
from autosubmit.urls import site_marker

log = get_logger(__name__)


@dataclass
class RefreshResult:
    new_count: int = 0
    total_count: int = 0
    failed_sources: list[str] = field(default_factory=list)


class ProposalIntake:
    def __init__(
        self,
        *,
        client: ProposalServiceClient,
        proposals: ProposalStore,
        queue: SubmissionQueue,
        sources: list[ProposalSource],
        on_enqueued: Callable[[], None] | None = None,
    ) -> None:
        self.client = client
        self.proposals = proposals
        self.queue = queue
        self.sources = sources
        self.on_enqueued = on_enqueued

    def refresh(self) -> RefreshResult:
        """Fetch every enabled source and store the results. Never raises for
        service failures; those are logged and listed in ``failed_sources``."""
        result = RefreshResult()
        enabled = [s for s in self.sources if s.enabled and s.url.strip()]
        if not enabled:
            log.info("No proposal sources configured")
            return result

        for source in enabled:
            try:
                batch = self.client.fetch_proposals(source.url)
            except ExternalServiceError as exc:
                log.error("Failed to fetch proposals from %s: %s", source.name, exc)
                result.failed_sources.append(source.name)
                continue
            put = self.proposals.put(batch)
            result.new_count += put.new_count
            result.total_count = put.total_count
            if put.new_count:
                log.info("Fetched %d new proposal(s) from %s", put.new_count, source.name)
        return result

    def enqueue_pending(self) -> int:
        """Queue a job for every pending proposal not already queued."""
        pending = [p for p in self.proposals.get_all() if p.status == ProposalStatus.PENDING]
        if not pending:
            return 0
        jobs = [
            Job(
                job_url=p.job_url,
                job_id=p.job_id or site_marker(p.job_url) or None,
                job_title=p.job_title,
            )
            for p in pending
        ]
        added = self.queue.enqueue_many(jobs)
        if added:
            log.info("Added %d jobs to submission queue", added)
            if self.on_enqueued is not None:
                self.on_enqueued()
        return added

    def check_for_new_proposals(self) -> RefreshResult:
        log.info("Checking for new proposals...")
        result = self.refresh()
        if result.new_count > 0:
            self.enqueue_pending()
        return result
