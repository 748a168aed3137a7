"""Tests for the in-page automation agent."""

from conftest import FULL_FORM, FakePage

from autosubmit.agent import ProposalAgent
from autosubmit.driver import Control
from autosubmit.models import Proposal
from autosubmit.protocol import AgentRequest


def _message(auto_submit=True, **fields):
    proposal = Proposal(job_url="https://x/jobs/~1", proposal_text="Dear client", **fields)
    return AgentRequest(job_url=proposal.job_url, proposal=proposal, auto_submit=auto_submit).to_message()


def _agent(page, clock):
    return ProposalAgent(page, sleep=clock.sleep)


def test_job_page_clicks_apply_then_fills_and_submits(clock):
    page = FakePage("https://x/jobs/~1", clock=clock, controls=FULL_FORM)
    response = _agent(page, clock).handle(_message(bid_amount=45))

    assert response == {"success": True, "submitted": True}
    assert page.clicked == [Control.APPLY_BUTTON, Control.SUBMIT_BUTTON]
    assert (Control.COVER_LETTER, "Dear client", 0) in page.filled
    assert (Control.HOURLY_RATE, "45", 0) in page.filled


def test_fill_only_does_not_click_submit(clock):
    page = FakePage("https://x/proposals/job/~1/apply/", clock=clock, controls=FULL_FORM)
    response = _agent(page, clock).handle(_message(auto_submit=False))

    assert response == {"success": True, "submitted": False}
    assert Control.SUBMIT_BUTTON not in page.clicked
    assert Control.APPLY_BUTTON not in page.clicked


def test_missing_cover_letter_field_reports_failure(clock):
    controls = {Control.SUBMIT_BUTTON: 1}
    page = FakePage("https://x/proposals/job/~1/apply/", clock=clock, controls=controls)
    response = _agent(page, clock).handle(_message())

    assert response["success"] is False
    assert response["error"].startswith("FormFieldNotFound")
    assert page.clicked == []


def test_missing_submit_button_reports_failure(clock):
    controls = {Control.COVER_LETTER: 1}
    page = FakePage("https://x/proposals/job/~1/apply/", clock=clock, controls=controls)
    response = _agent(page, clock).handle(_message())
    assert response["success"] is False
    assert "submit button" in response["error"]


def test_missing_rate_field_is_not_fatal(clock):
    controls = {Control.COVER_LETTER: 1, Control.SUBMIT_BUTTON: 1}
    page = FakePage("https://x/proposals/job/~1/apply/", clock=clock, controls=controls)
    response = _agent(page, clock).handle(_message(bid_amount=50))
    assert response["success"] is True


def test_screening_answers_fill_available_slots(clock):
    controls = {Control.COVER_LETTER: 1, Control.SCREENING_ANSWER: 2, Control.SUBMIT_BUTTON: 1}
    page = FakePage("https://x/proposals/job/~1/apply/", clock=clock, controls=controls)
    answers = [{"question": "Q1", "answer": "A1"}, "A2", "A3"]
    _agent(page, clock).handle(_message(screening_answers=answers))

    filled = [(v, i) for c, v, i in page.filled if c is Control.SCREENING_ANSWER]
    assert filled == [("A1", 0), ("A2", 1)]


def test_unknown_page_reports_failure(clock):
    page = FakePage("https://x/messages/", clock=clock, controls=FULL_FORM)
    response = _agent(page, clock).handle(_message())
    assert response["success"] is False


def test_unknown_message_type(clock):
    page = FakePage("https://x/jobs/~1", clock=clock)
    response = _agent(page, clock).handle({"type": "ping"})
    assert response["success"] is False


def test_attachments_are_uploaded_when_field_present(clock):
    controls = {Control.COVER_LETTER: 1, Control.ATTACHMENT: 1, Control.SUBMIT_BUTTON: 1}
    page = FakePage("https://x/proposals/job/~1/apply/", clock=clock, controls=controls)
    response = _agent(page, clock).handle(_message(attachments=["/tmp/portfolio.pdf"]))
    assert response["success"] is True
    assert page.attached == ["/tmp/portfolio.pdf"]


def test_missing_upload_field_is_not_fatal(clock):
    controls = {Control.COVER_LETTER: 1, Control.SUBMIT_BUTTON: 1}
    page = FakePage("https://x/proposals/job/~1/apply/", clock=clock, controls=controls)
    response = _agent(page, clock).handle(_message(attachments=["/tmp/portfolio.pdf"]))
    assert response["success"] is True
    assert page.attached == []
