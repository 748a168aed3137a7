"""
Single-flight submission loop.

One cycle takes the head of the queue, drives it through the job state
machine and removes it. Cycles never overlap: the processing flag is a
lock acquired without blocking, so a cycle that finds it taken is a no-op.
"""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable

from autosubmit.agent import ProposalAgent
from autosubmit.config import Settings, SettingsStore, SubmitterConfig
from autosubmit.driver import PageDriver
from autosubmit.intake import ProposalIntake
from autosubmit.log import get_logger
from autosubmit.matcher import ProposalMatcher
from autosubmit.models import Job, RunOutcome
from autosubmit.proposals import ProposalStore
from autosubmit.protocol import MessageChannel
from autosubmit.service import NotifyResult, ProposalServiceClient
from autosubmit.state_machine import JobStateMachine
from autosubmit.store import KeyValueStore
from autosubmit.submission_queue import SubmissionQueue

log = get_logger(__name__)


class Orchestrator:
    def __init__(
        self,
        *,
        queue: SubmissionQueue,
        machine: JobStateMachine,
        settings: SettingsStore,
        on_removed: Callable[[Job], NotifyResult] | None = None,
        idle_poll_interval: float = 30.0,
    ) -> None:
        self.queue = queue
        self.machine = machine
        self.settings = settings
        self.on_removed = on_removed
        self.idle_poll_interval = idle_poll_interval
        self._processing = threading.Lock()
        self._wake = threading.Event()
        self._stopped = threading.Event()

    @property
    def in_flight(self) -> bool:
        return self._processing.locked()

    @property
    def wake_pending(self) -> bool:
        return self._wake.is_set()

    def trigger(self) -> None:
        """Ask the loop to run a cycle now. Idempotent."""
        self._wake.set()

    def stop(self) -> None:
        """Stop after the in-flight job, if any. Does not abort it."""
        self._stopped.set()
        self._wake.set()

    def process_next(self) -> RunOutcome | None:
        """Run one cycle. Returns None when the cycle was a no-op."""
        settings = self.settings.load()
        if not settings.enabled:
            log.info("Auto-submission is disabled")
            return None
        if not self._processing.acquire(blocking=False):
            log.debug("A job is already in flight")
            return None
        try:
            job = self.queue.peek_head()
            if job is None:
                log.debug("No jobs in submission queue")
                return None
            log.info("Processing job from queue: %s", job.job_url)
            try:
                return self.machine.run(job, settings)
            finally:
                self._retire(job)
        finally:
            self._processing.release()

    def run_until_empty(self, sleep: Callable[[float], None] = time.sleep) -> list[RunOutcome]:
        outcomes: list[RunOutcome] = []
        while not self._stopped.is_set():
            outcome = self.process_next()
            if outcome is None:
                break
            outcomes.append(outcome)
            if self.queue.is_empty():
                break
            sleep(self.settings.load().delay_seconds)
        return outcomes

    def run_forever(self, between_cycles: Callable[[], None] | None = None) -> None:
        """Loop until :meth:`stop`. Errors in a cycle are logged, never raised."""
        log.info("Submission loop started")
        while not self._stopped.is_set():
            self._wake.clear()
            outcome = None
            try:
                outcome = self.process_next()
            except Exception as exc:
                log.error("Error processing job queue: %s", exc)

            if between_cycles is not None:
                try:
                    between_cycles()
                except Exception as exc:
                    log.error("Between-cycle hook failed: %s", exc)

            if outcome is not None:
                self._stopped.wait(self._delay())
            else:
                self._wake.wait(self.idle_poll_interval)
        log.info("Submission loop stopped")

    def _delay(self) -> float:
        try:
            return self.settings.load().delay_seconds
        except Exception as exc:
            log.error("Could not read inter-job delay: %s", exc)
            return Settings().delay_seconds

    def _retire(self, job: Job) -> None:
        head = self.queue.peek_head()
        if head is not None and head.job_url == job.job_url:
            self.queue.remove_head()
        else:
            # the head changed while the job ran
            self.queue.remove(job.job_url)
        if self.on_removed is not None:
            self.on_removed(job)


@dataclass
class Submitter:
    """Everything wired together for one data directory."""

    orchestrator: Orchestrator
    intake: ProposalIntake
    proposals: ProposalStore
    queue: SubmissionQueue
    settings: SettingsStore


def build_submitter(
    config: SubmitterConfig,
    store: KeyValueStore,
    driver: PageDriver,
    *,
    client: ProposalServiceClient | None = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> Submitter:
    client = client or ProposalServiceClient(timeout=config.request_timeout, sleep=sleep)
    proposals = ProposalStore(store)
    queue = SubmissionQueue(store)
    settings = SettingsStore(store)

    intake = ProposalIntake(
        client=client,
        proposals=proposals,
        queue=queue,
        sources=config.enabled_sources,
    )
    matcher = ProposalMatcher(proposals, refresh=intake.refresh)
    channel = MessageChannel(lambda ctx: ProposalAgent(ctx, sleep=sleep))
    machine = JobStateMachine(
        driver=driver,
        channel=channel,
        matcher=matcher,
        proposals=proposals,
        timing=config.timing,
        apply_url_template=config.apply_url_template,
        sleep=sleep,
        clock=clock,
    )

    on_removed = None
    if config.delete_webhook_url:
        on_removed = lambda job: client.notify_job_removed(config.delete_webhook_url, job)  # noqa: E731

    orchestrator = Orchestrator(
        queue=queue,
        machine=machine,
        settings=settings,
        on_removed=on_removed,
        idle_poll_interval=config.timing.idle_poll_interval,
    )
    intake.on_enqueued = orchestrator.trigger
    return Submitter(orchestrator, intake, proposals, queue, settings)
