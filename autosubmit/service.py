"""HTTP client for the proposal source service and the job-removal webhook."""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable

import requests

from autosubmit.errors import ExternalServiceError
from autosubmit.log import get_logger
from autosubmit.models import Job
from autosubmit.retry import RetryPolicy, call_with_retry, retry

log = get_logger(__name__)

_TRANSIENT = (requests.ConnectionError, requests.Timeout)
_HEADERS = {"Content-Type": "application/json"}


@dataclass
class NotifyResult:
    ok: bool
    message: str = ""


class ProposalServiceClient:
    def __init__(
        self,
        *,
        timeout: float = 15.0,
        policy: RetryPolicy = RetryPolicy(max_attempts=2, base_delay=1.5),
        sleep: Callable[[float], None] = time.sleep,
        session: requests.Session | None = None,
    ) -> None:
        self.timeout = timeout
        self.policy = policy
        self._sleep = sleep
        self.session = session or requests.Session()

    def fetch_proposals(self, url: str) -> list[dict[str, Any]]:
        """GET the proposal list. Non-2xx raises ExternalServiceError."""
        if not url or not url.startswith(("http://", "https://")):
            raise ExternalServiceError(f"Invalid proposal service URL: {url!r}")
        try:
            r = call_with_retry(
                self.session.get,
                url,
                headers=_HEADERS,
                timeout=self.timeout,
                policy=self.policy,
                retryable=_TRANSIENT,
                sleep=self._sleep,
            )
        except requests.RequestException as exc:
            raise ExternalServiceError(f"Failed to fetch proposals: {exc}") from exc

        if not r.ok:
            msg = f"Failed to fetch proposals: HTTP {r.status_code} - {r.reason}"
            if r.status_code == 404:
                msg += " (is the remote workflow active and the URL correct?)"
            raise ExternalServiceError(msg, status_code=r.status_code)

        try:
            data = r.json()
        except ValueError as exc:
            raise ExternalServiceError(f"Proposal service returned invalid JSON: {exc}") from exc

        proposals = data.get("proposals", []) if isinstance(data, dict) else data
        if not isinstance(proposals, list):
            raise ExternalServiceError("Proposal service payload has no proposal list")
        log.info("Fetched %d proposals from %s", len(proposals), url)
        return proposals

    def notify_job_removed(self, webhook_url: str, job: Job) -> NotifyResult:
        """Best-effort POST of ``{jobUrl, jobId}``; failures are logged, never raised."""
        if not webhook_url:
            return NotifyResult(False, "No delete webhook configured")
        try:
            self._post_removal(webhook_url, {"jobUrl": job.job_url, "jobId": job.job_id})
        except requests.RequestException as exc:
            msg = str(exc)[:150].split("\n")[0]
            log.warning("Delete webhook failed for %s: %s", job.job_url, msg)
            return NotifyResult(False, msg)
        log.debug("Delete webhook notified for %s", job.job_url)
        return NotifyResult(True)

    @retry(max_attempts=2, base_delay=1.5, retryable=_TRANSIENT)
    def _post_removal(self, webhook_url: str, body: dict[str, Any]) -> None:
        r = self.session.post(webhook_url, json=body, timeout=self.timeout)
        r.raise_for_status()
