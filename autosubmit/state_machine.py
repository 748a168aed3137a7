"""
Drive one queued job to a terminal state.

  queued -> opening -> awaiting_ready -> agent_handshake -> dispatched
         -> submitted | filled | failed
  (any step before opening) -> skipped

Every per-job error is converted into a ``failed`` outcome here. The only
exception that escapes :meth:`JobStateMachine.run` is a store failure
while recording the final status.
"""
from __future__ import annotations

import time
from typing import Callable

from autosubmit.config import Settings, Timing
from autosubmit.driver import PageContext, PageDriver
from autosubmit.errors import (
    AgentUnreachable,
    MessageDeliveryError,
    PageLoadTimeout,
    ProposalNotFound,
    SubmitterError,
    describe,
)
from autosubmit.log import get_logger
from autosubmit.matcher import ProposalMatcher
from autosubmit.models import (
    Job,
    JobState,
    Proposal,
    ProposalStatus,
    RunOutcome,
    SubmissionMode,
)
from autosubmit.polling import wait_until
from autosubmit.proposals import ProposalStore
from autosubmit.protocol import AgentRequest, AgentResponse, MessageChannel, deliver
from autosubmit.urls import build_apply_url, site_marker

log = get_logger(__name__)


class JobStateMachine:
    def __init__(
        self,
        *,
        driver: PageDriver,
        channel: MessageChannel,
        matcher: ProposalMatcher,
        proposals: ProposalStore,
        timing: Timing | None = None,
        apply_url_template: str = "",
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.driver = driver
        self.channel = channel
        self.matcher = matcher
        self.proposals = proposals
        self.timing = timing or Timing()
        self.apply_url_template = apply_url_template
        self._sleep = sleep
        self._clock = clock

    def run(self, job: Job, settings: Settings) -> RunOutcome:
        outcome = RunOutcome(job=job, state=JobState.QUEUED, history=[JobState.QUEUED])
        proposal: Proposal | None = None
        context: PageContext | None = None
        try:
            proposal = self.matcher.match(job)
            if proposal is None:
                return self._skip(outcome, ProposalNotFound(f"No proposal for {job.job_url}"))
            if proposal.status == ProposalStatus.SUBMITTED:
                return self._skip(outcome, None, "proposal already submitted")

            self._enter(outcome, JobState.OPENING)
            context = self.driver.open(self.target_url(job, proposal))

            self._enter(outcome, JobState.AWAITING_READY)
            self._await_ready(context)

            self._enter(outcome, JobState.AGENT_HANDSHAKE)
            self._handshake(context)

            self._enter(outcome, JobState.DISPATCHED)
            response = self._dispatch(context, job, proposal, settings)
            self._acknowledge(outcome, response, settings)
        except SubmitterError as exc:
            self._fail(outcome, exc)
        except Exception as exc:
            log.exception("Unexpected error processing %s", job.job_url)
            self._fail(outcome, exc)
        finally:
            if context is not None:
                self._release(context, outcome)

        if outcome.status is not None and proposal is not None:
            self.proposals.update_status(proposal.job_url, outcome.status, outcome.error)
        return outcome

    def target_url(self, job: Job, proposal: Proposal) -> str:
        """Apply page when a site identifier is known, else the job page."""
        site_id = (
            job.job_id
            or proposal.job_id
            or site_marker(job.job_url)
            or site_marker(proposal.job_url)
        )
        if site_id and self.apply_url_template:
            return build_apply_url(self.apply_url_template, site_id)
        return job.job_url

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _await_ready(self, context: PageContext) -> None:
        t = self.timing
        ready = wait_until(
            context.is_ready,
            timeout=t.ready_timeout,
            interval=t.ready_interval,
            clock=self._clock,
            sleep=self._sleep,
        )
        if not ready:
            raise PageLoadTimeout(f"Page not ready after {t.ready_timeout:.0f}s")

    def _handshake(self, context: PageContext) -> None:
        t = self.timing
        self._sleep(t.agent_grace)
        self.channel.attach(context)
        present = wait_until(
            lambda: self.channel.probe(context),
            timeout=t.handshake_timeout,
            interval=t.handshake_interval,
            clock=self._clock,
            sleep=self._sleep,
        )
        if not present:
            log.warning("%s", describe(AgentUnreachable("agent probe inconclusive, continuing")))

    def _dispatch(
        self, context: PageContext, job: Job, proposal: Proposal, settings: Settings
    ) -> AgentResponse:
        request = AgentRequest(
            job_url=job.job_url,
            proposal=proposal,
            auto_submit=settings.mode is SubmissionMode.SUBMIT,
        )
        delivery = deliver(
            self.channel,
            context,
            request,
            retry_delay=self.timing.delivery_retry_delay,
            sleep=self._sleep,
        )
        if not delivery.delivered:
            raise MessageDeliveryError(delivery.error or "message not delivered")
        log.info("Auto-submission started for job: %s", job.job_url)
        return delivery.response

    def _acknowledge(self, outcome: RunOutcome, response: AgentResponse, settings: Settings) -> None:
        if not response.success:
            outcome.error = response.error or "agent reported failure"
            outcome.error_kind = outcome.error.split(":", 1)[0] if ":" in outcome.error else None
            outcome.status = ProposalStatus.FAILED
            self._enter(outcome, JobState.FAILED)
            log.warning("Submission failed for %s: %s", outcome.job.job_url, outcome.error)
            return

        submitted = response.submitted
        if submitted is None:
            submitted = settings.mode is SubmissionMode.SUBMIT
        if submitted:
            outcome.status = ProposalStatus.SUBMITTED
            self._enter(outcome, JobState.SUBMITTED)
        else:
            outcome.status = ProposalStatus.FILLED
            self._enter(outcome, JobState.FILLED)
        log.info("  ✓ %s → %s", outcome.job.job_url, outcome.state.value)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _enter(self, outcome: RunOutcome, state: JobState) -> None:
        log.debug("%s: %s → %s", outcome.job.job_url, outcome.state.value, state.value)
        outcome.state = state
        outcome.history.append(state)

    def _skip(self, outcome: RunOutcome, exc: SubmitterError | None, reason: str = "") -> RunOutcome:
        outcome.error_kind = exc.kind if exc else None
        outcome.error = str(exc) if exc else reason
        self._enter(outcome, JobState.SKIPPED)
        log.info("Skipping %s: %s", outcome.job.job_url, outcome.error)
        return outcome

    def _fail(self, outcome: RunOutcome, exc: BaseException) -> None:
        outcome.error = describe(exc)
        outcome.error_kind = getattr(exc, "kind", exc.__class__.__name__)
        outcome.status = ProposalStatus.FAILED
        self._enter(outcome, JobState.FAILED)
        log.warning("  ✗ %s: %s", outcome.job.job_url, outcome.error)

    def _release(self, context: PageContext, outcome: RunOutcome) -> None:
        self.channel.detach(context)
        if outcome.state is JobState.FILLED:
            # leave the filled form open for review
            return
        try:
            context.close()
        except Exception as exc:
            log.debug("Page close failed: %s", str(exc)[:80])
