"""Tests for model parsing helpers."""

from datetime import datetime, timezone

from autosubmit.models import JobState, Proposal, ProposalStatus, parse_ts
from autosubmit.urls import normalize_url, site_marker


def test_proposal_from_camel_case_payload():
    p = Proposal.from_dict({
        "jobUrl": "https://x/jobs/~1",
        "proposalText": "hi",
        "bidAmount": 40,
        "screeningAnswers": ["a"],
        "status": "bogus",
    })
    assert p.job_url == "https://x/jobs/~1"
    assert p.bid_amount == 40
    assert p.status is ProposalStatus.PENDING


def test_payload_drops_empty_fields():
    payload = Proposal(job_url="u", proposal_text="t").to_payload()
    assert payload == {"jobUrl": "u", "proposalText": "t", "jobTitle": "", "status": "pending"}


def test_parse_ts_accepts_iso_and_epoch_ms():
    assert parse_ts("2024-05-01T10:00:00Z") == datetime(2024, 5, 1, 10, tzinfo=timezone.utc)
    assert parse_ts(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)
    assert parse_ts("not a date") is None
    assert parse_ts(None) is None


def test_touched_at_prefers_latest_stamp():
    p = Proposal(job_url="u", proposal_text="t",
                 stored_at="2024-01-01T00:00:00+00:00", updated_at="2024-02-01T00:00:00+00:00")
    assert p.touched_at.month == 2


def test_terminal_states():
    assert JobState.SKIPPED.terminal
    assert not JobState.DISPATCHED.terminal


def test_normalize_url():
    assert normalize_url("https://WWW.Upwork.com/jobs/~1/?ref=feed#top") == "https://upwork.com/jobs/~1/"
    assert normalize_url("/jobs/~1?x=1") == "/jobs/~1"


def test_site_marker():
    assert site_marker("https://www.upwork.com/jobs/Dev-needed_~01abc/") == "~01"
    assert site_marker("https://www.upwork.com/nx/proposals/job/~0123/apply/") == "~0123"
    assert site_marker("https://example.com/jobs/plain") == ""
