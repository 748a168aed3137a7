"""In-page automation agent: fills (and optionally submits) one proposal form.

The agent answers a single ``startAutoSubmission`` message per page. All of
its element waits are bounded, so it always answers; failures are reported
in the response's ``error`` field rather than raised.
"""
from __future__ import annotations

import time
from typing import Any, Callable

from autosubmit.driver import Control, PageContext
from autosubmit.errors import FormFieldNotFound, SubmitterError, describe
from autosubmit.log import get_logger
from autosubmit.models import Proposal
from autosubmit.protocol import START_SUBMISSION, AgentResponse

log = get_logger(__name__)

_COVER_LETTER_LIMIT = 5000


class ProposalAgent:
    def __init__(
        self,
        context: PageContext,
        *,
        job_path: str = "/jobs/",
        proposal_path: str = "/proposals/",
        field_timeout: float = 3.0,
        settle: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.context = context
        self.job_path = job_path
        self.proposal_path = proposal_path
        self.field_timeout = field_timeout
        self.settle = settle
        self._sleep = sleep

    def handle(self, message: dict[str, Any]) -> dict[str, Any]:
        if message.get("type") != START_SUBMISSION:
            return AgentResponse(False, error=f"Unknown message type: {message.get('type')!r}").to_message()

        proposal = Proposal.from_dict(message.get("proposal") or {})
        auto_submit = bool(message.get("autoSubmit", True))
        try:
            submitted = self.run(proposal, auto_submit=auto_submit)
        except SubmitterError as exc:
            log.warning("Agent failed for %s: %s", proposal.job_url, exc)
            return AgentResponse(False, error=describe(exc)).to_message()
        except Exception as exc:
            # driver errors (timeouts, detached elements) end up here
            log.error("Agent error for %s: %s", proposal.job_url, str(exc)[:150].split("\n")[0])
            return AgentResponse(False, error=describe(exc)).to_message()
        return AgentResponse(True, submitted=submitted).to_message()

    def run(self, proposal: Proposal, *, auto_submit: bool = True) -> bool:
        """Drive the page to a filled (and maybe submitted) form.

        Returns True if the submit control was clicked.
        """
        url = self.context.url
        if self.proposal_path in url:
            log.info("Already on proposal page")
        elif self.job_path in url:
            log.info("On job page, clicking apply")
            if not self.context.click(Control.APPLY_BUTTON, timeout=self.field_timeout + 2):
                raise FormFieldNotFound(Control.APPLY_BUTTON.value)
            self._sleep(self.settle + 1)
        else:
            raise SubmitterError(f"Not on a job or proposal page: {url}")

        filled = self.fill(proposal)
        log.info("Filled %d field(s) for %s", filled, proposal.job_url)
        if not auto_submit:
            return False

        self._sleep(self.settle)
        return self.submit()

    def fill(self, proposal: Proposal) -> int:
        self._sleep(self.settle)
        filled = 0
        if proposal.proposal_text:
            text = proposal.proposal_text[:_COVER_LETTER_LIMIT]
            if not self.context.fill(Control.COVER_LETTER, text, timeout=self.field_timeout):
                raise FormFieldNotFound(Control.COVER_LETTER.value)
            filled += 1

        if proposal.bid_amount not in (None, ""):
            if self.context.fill(Control.HOURLY_RATE, str(proposal.bid_amount), timeout=self.field_timeout):
                filled += 1
            else:
                log.warning("Rate field not found; leaving the default bid")

        if proposal.estimated_hours not in (None, ""):
            if self.context.fill(Control.DURATION, str(proposal.estimated_hours), timeout=self.field_timeout):
                filled += 1

        answers = _answers(proposal.screening_answers)
        if answers:
            slots = self.context.count(Control.SCREENING_ANSWER)
            for i, answer in enumerate(answers[:slots]):
                if self.context.fill(Control.SCREENING_ANSWER, answer, index=i, timeout=self.field_timeout):
                    filled += 1
            if slots < len(answers):
                log.warning("Only %d of %d screening answers had a field", slots, len(answers))

        attachments = proposal.attachments or []
        if isinstance(attachments, str):
            attachments = [attachments]
        for path in attachments:
            if self.context.attach_file(Control.ATTACHMENT, str(path), timeout=self.field_timeout):
                filled += 1
            else:
                log.warning("No upload field for attachment %s", path)
        return filled

    def submit(self) -> bool:
        if not self.context.click(Control.SUBMIT_BUTTON, timeout=self.field_timeout):
            raise FormFieldNotFound(Control.SUBMIT_BUTTON.value)
        self._sleep(self.settle + 1)
        if self.context.exists(Control.SUCCESS_INDICATOR, timeout=1.0) or "success" in self.context.url:
            log.info("Proposal submitted successfully")
        else:
            # no confirmation shown is not an error on this site
            log.info("Proposal submission attempted (no confirmation seen)")
        return True


def _answers(raw: Any) -> list[str]:
    if not raw:
        return []
    if isinstance(raw, dict):
        return [str(v) for v in raw.values() if v not in (None, "")]
    if isinstance(raw, (list, tuple)):
        out = []
        for item in raw:
            if isinstance(item, dict):
                item = item.get("answer", "")
            if item not in (None, ""):
                out.append(str(item))
        return out
    return [str(raw)]
