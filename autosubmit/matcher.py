"""Resolve a queued job to its stored proposal.

Lookup is tiered and stops at the first tier that finds something:

1. normalized URL (``www.``, query and fragment ignored), then raw equality
2. site-assigned job id carried by the queue entry
3. ``~<digits>`` marker found in the URL path of both job and proposal

When every tier misses, the matcher asks for one refresh from the proposal
service and retries tier 1 before giving up.
"""
from __future__ import annotations

from typing import Any, Callable

from autosubmit.log import get_logger
from autosubmit.models import Job, Proposal
from autosubmit.proposals import ProposalStore
from autosubmit.urls import normalize_url, site_marker

log = get_logger(__name__)


def match_by_url(job: Job, proposals: list[Proposal]) -> Proposal | None:
    target = normalize_url(job.job_url)
    for p in proposals:
        if normalize_url(p.job_url) == target:
            return p
    for p in proposals:
        if p.job_url == job.job_url:
            return p
    return None


def match_by_job_id(job: Job, proposals: list[Proposal]) -> Proposal | None:
    if not job.job_id:
        return None
    for p in proposals:
        if p.job_id and p.job_id == job.job_id:
            return p
    return None


def match_by_marker(job: Job, proposals: list[Proposal]) -> Proposal | None:
    marker = site_marker(job.job_url)
    if not marker:
        return None
    for p in proposals:
        if site_marker(p.job_url) == marker:
            return p
    return None


class ProposalMatcher:
    tiers = (match_by_url, match_by_job_id, match_by_marker)

    def __init__(self, store: ProposalStore, refresh: Callable[[], Any] | None = None) -> None:
        self.store = store
        self.refresh = refresh

    def match(self, job: Job) -> Proposal | None:
        proposals = self.store.get_all()
        for tier in self.tiers:
            found = tier(job, proposals)
            if found is not None:
                log.debug("Matched %s via %s", job.job_url, tier.__name__)
                return found

        if self.refresh is None:
            return None

        log.info("No proposal for %s, refreshing from service", job.job_url)
        self.refresh()
        found = match_by_url(job, self.store.get_all())
        if found is None:
            log.info("Still no proposal for %s after refresh", job.job_url)
        return found
