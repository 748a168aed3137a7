"""Proposal store adapter: typed read/merge/update over the key/value store."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Iterable

from autosubmit.log import get_logger
from autosubmit.models import Proposal, ProposalStatus, iso, utc_now
from autosubmit.store import KeyValueStore, StoreReadError

log = get_logger(__name__)

PROPOSALS_KEY = "stored_proposals"
MAX_PROPOSALS = 200


@dataclass
class PutResult:
    new_count: int
    total_count: int


class ProposalStore:
    def __init__(
        self,
        store: KeyValueStore,
        *,
        limit: int = MAX_PROPOSALS,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.limit = limit
        self._clock = clock

    def get_all(self) -> list[Proposal]:
        """All stored proposals; a read failure is logged and yields []."""
        try:
            return self._read()
        except (StoreReadError, OSError) as exc:
            log.error("Error reading stored proposals: %s", exc)
            return []

    def get_for_job(self, job_url: str) -> Proposal | None:
        for p in self.get_all():
            if p.job_url == job_url:
                return p
        return None

    def put(self, proposals: Iterable[dict[str, Any] | Proposal]) -> PutResult:
        """Merge incoming records by job URL, then keep the newest ``limit``."""
        existing = self._read()
        by_url: dict[str, Proposal] = {p.job_url: p for p in existing}
        order: list[str] = [p.job_url for p in existing]
        now = iso(self._clock())
        new_count = 0

        for item in proposals:
            raw = _as_raw(item)
            incoming = Proposal.from_dict(raw)
            if not incoming.job_url or not incoming.proposal_text:
                log.warning("Skipping invalid proposal record: %s", str(raw)[:120])
                continue

            current = by_url.get(incoming.job_url)
            if current is None:
                incoming.stored_at = now
                incoming.updated_at = None
                incoming.status = ProposalStatus.PENDING
                by_url[incoming.job_url] = incoming
                order.append(incoming.job_url)
                new_count += 1
            else:
                by_url[incoming.job_url] = _merge(current, incoming, raw, now)

        merged = [by_url[u] for u in order]
        merged.sort(key=lambda p: p.touched_at, reverse=True)
        kept = merged[: self.limit]
        self._write(kept)

        if new_count:
            log.info("Stored %d new proposal(s). Total: %d", new_count, len(kept))
        return PutResult(new_count=new_count, total_count=len(kept))

    def update_status(
        self,
        job_url: str,
        status: ProposalStatus,
        error_message: str | None = None,
    ) -> bool:
        """Set the status of one proposal. Returns False if no record matches."""
        proposals = self._read()
        for p in proposals:
            if p.job_url == job_url:
                now = iso(self._clock())
                p.status = ProposalStatus(status)
                p.status_updated_at = now
                p.updated_at = now
                if error_message:
                    p.error_message = error_message
                self._write(proposals)
                log.info("Updated proposal status for %s to %s", job_url, p.status.value)
                return True
        log.warning("No stored proposal for %s; status %s not recorded", job_url, status)
        return False

    def _read(self) -> list[Proposal]:
        # no fallback: put and update_status write back what they read
        raw = self.store.get(PROPOSALS_KEY, []) or []
        return [Proposal.from_dict(r) for r in raw if isinstance(r, dict)]

    def _write(self, proposals: list[Proposal]) -> None:
        self.store.set(PROPOSALS_KEY, [p.to_dict() for p in proposals])


def _as_raw(item: dict[str, Any] | Proposal) -> dict[str, Any]:
    if isinstance(item, Proposal):
        # bookkeeping fields belong to the store, not the caller
        skip = {"status", "stored_at", "updated_at", "status_updated_at", "error_message"}
        return {k: v for k, v in item.to_dict().items() if k not in skip and v is not None}
    return dict(item)


def _merge(current: Proposal, incoming: Proposal, raw: dict[str, Any], now: str) -> Proposal:
    """Overlay fields present in ``raw`` onto ``current``."""
    merged = Proposal.from_dict(current.to_dict())
    for name in ("proposal_text", "job_id", "job_title", "bid_amount",
                 "estimated_hours", "screening_answers", "attachments"):
        value = getattr(incoming, name)
        if value not in (None, ""):
            setattr(merged, name, value)
    if "status" in raw:
        merged.status = incoming.status
    merged.updated_at = now
    return merged
