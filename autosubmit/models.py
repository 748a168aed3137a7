"""Data models for queued jobs, proposals and submission outcomes."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def iso(ts: datetime) -> str:
    return ts.astimezone(timezone.utc).isoformat()


def parse_ts(value: Any) -> datetime | None:
    """Parse a stored timestamp (ISO string or epoch milliseconds)."""
    if value in (None, ""):
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    try:
        ts = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


class ProposalStatus(str, Enum):
    PENDING = "pending"
    FILLED = "filled"
    SUBMITTED = "submitted"
    FAILED = "failed"


class SubmissionMode(str, Enum):
    SUBMIT = "submit"
    FILL_ONLY = "fill_only"


class JobState(str, Enum):
    QUEUED = "queued"
    OPENING = "opening"
    AWAITING_READY = "awaiting_ready"
    AGENT_HANDSHAKE = "agent_handshake"
    DISPATCHED = "dispatched"
    SUBMITTED = "submitted"
    FILLED = "filled"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def terminal(self) -> bool:
        return self in (JobState.SUBMITTED, JobState.FILLED, JobState.FAILED, JobState.SKIPPED)


# camelCase keys used by the proposal service and the message payloads
_CAMEL = {
    "job_url": "jobUrl",
    "job_id": "jobId",
    "job_title": "jobTitle",
    "proposal_text": "proposalText",
    "bid_amount": "bidAmount",
    "estimated_hours": "estimatedHours",
    "screening_answers": "screeningAnswers",
    "stored_at": "storedAt",
    "updated_at": "updatedAt",
    "status_updated_at": "statusUpdatedAt",
    "error_message": "errorMessage",
    "added_at": "addedAt",
}


def _pick(raw: dict, key: str, default: Any = None) -> Any:
    if key in raw:
        return raw[key]
    return raw.get(_CAMEL.get(key, key), default)


@dataclass
class Job:
    job_url: str
    job_id: str | None = None
    job_title: str = ""
    added_at: str = field(default_factory=lambda: iso(utc_now()))

    @classmethod
    def from_dict(cls, raw: dict) -> "Job":
        return cls(
            job_url=_pick(raw, "job_url", ""),
            job_id=_pick(raw, "job_id"),
            job_title=_pick(raw, "job_title", "") or "",
            added_at=_pick(raw, "added_at") or iso(utc_now()),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Proposal:
    job_url: str
    proposal_text: str
    job_id: str | None = None
    job_title: str = ""
    bid_amount: float | str | None = None
    estimated_hours: float | str | None = None
    screening_answers: list[Any] | dict[str, Any] | None = None
    attachments: list[str] | None = None
    status: ProposalStatus = ProposalStatus.PENDING
    stored_at: str | None = None
    updated_at: str | None = None
    status_updated_at: str | None = None
    error_message: str | None = None

    @classmethod
    def from_dict(cls, raw: dict) -> "Proposal":
        """Build from a stored record or a service payload (either key style)."""
        status = _pick(raw, "status") or ProposalStatus.PENDING.value
        try:
            status = ProposalStatus(status)
        except ValueError:
            status = ProposalStatus.PENDING
        return cls(
            job_url=_pick(raw, "job_url", "") or "",
            proposal_text=_pick(raw, "proposal_text", "") or "",
            job_id=_pick(raw, "job_id"),
            job_title=_pick(raw, "job_title", "") or "",
            bid_amount=_pick(raw, "bid_amount"),
            estimated_hours=_pick(raw, "estimated_hours"),
            screening_answers=_pick(raw, "screening_answers"),
            attachments=_pick(raw, "attachments"),
            status=status,
            stored_at=_pick(raw, "stored_at"),
            updated_at=_pick(raw, "updated_at"),
            status_updated_at=_pick(raw, "status_updated_at"),
            error_message=_pick(raw, "error_message"),
        )

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["status"] = self.status.value
        return d

    def to_payload(self) -> dict[str, Any]:
        """camelCase view sent to the automation agent."""
        return {_CAMEL.get(k, k): v for k, v in self.to_dict().items() if v is not None}

    @property
    def touched_at(self) -> datetime:
        stamps = [t for t in (parse_ts(self.stored_at), parse_ts(self.updated_at)) if t]
        return max(stamps) if stamps else datetime.min.replace(tzinfo=timezone.utc)


@dataclass
class RunOutcome:
    """Terminal result of driving one job through the state machine."""

    job: Job
    state: JobState
    status: ProposalStatus | None = None
    error: str | None = None
    error_kind: str | None = None
    history: list[JobState] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.state in (JobState.SUBMITTED, JobState.FILLED)
