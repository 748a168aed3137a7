"""Request/acknowledge exchange between the orchestrator and the page agent.

The orchestrator attaches an agent to a page, then sends it a
``startAutoSubmission`` request and blocks until the agent answers with
``{success, error?}``. Delivery is unreliable: a page that navigated or
reloaded loses its agent, so :func:`deliver` re-attaches and retries once
after a fixed delay before reporting the request undeliverable.

Listener registration is idempotent. Each attached agent is keyed by a
random token written into the page under :data:`AGENT_MARKER`; attaching
again while that token is live is a no-op.
"""
from __future__ import annotations

import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Protocol

from autosubmit.driver import PageContext
from autosubmit.errors import ContextGone, MessageDeliveryError
from autosubmit.log import get_logger
from autosubmit.models import Proposal
from autosubmit.retry import RetryPolicy, call_with_retry

log = get_logger(__name__)

AGENT_MARKER = "__proposalAgentToken"
START_SUBMISSION = "startAutoSubmission"


@dataclass
class AgentRequest:
    job_url: str
    proposal: Proposal
    auto_submit: bool = True
    type: str = START_SUBMISSION

    def to_message(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "jobUrl": self.job_url,
            "proposal": self.proposal.to_payload(),
            "autoSubmit": self.auto_submit,
        }


@dataclass
class AgentResponse:
    success: bool
    error: str | None = None
    submitted: bool | None = None

    @classmethod
    def from_message(cls, message: Any) -> "AgentResponse":
        if not isinstance(message, dict):
            return cls(False, error=f"Malformed agent response: {message!r}"[:150])
        return cls(
            success=bool(message.get("success")),
            error=message.get("error"),
            submitted=message.get("submitted"),
        )

    def to_message(self) -> dict[str, Any]:
        msg: dict[str, Any] = {"success": self.success}
        if self.error:
            msg["error"] = self.error
        if self.submitted is not None:
            msg["submitted"] = self.submitted
        return msg


class Listener(Protocol):
    def handle(self, message: dict[str, Any]) -> dict[str, Any]: ...


class MessageChannel:
    def __init__(self, agent_factory: Callable[[PageContext], Listener]) -> None:
        self.agent_factory = agent_factory
        self._listeners: dict[str, Listener] = {}

    def attach(self, context: PageContext) -> bool:
        """Register an agent for ``context``. Returns False if one is already live."""
        token = context.get_marker(AGENT_MARKER)
        if token and token in self._listeners:
            return False
        token = uuid.uuid4().hex
        context.set_marker(AGENT_MARKER, token)
        self._listeners[token] = self.agent_factory(context)
        log.debug("Agent attached (%s)", token[:8])
        return True

    def probe(self, context: PageContext) -> bool:
        try:
            token = context.get_marker(AGENT_MARKER)
        except ContextGone:
            return False
        return bool(token) and token in self._listeners

    def detach(self, context: PageContext) -> None:
        try:
            token = context.get_marker(AGENT_MARKER)
        except ContextGone:
            return
        if token:
            self._listeners.pop(token, None)

    def send(self, context: PageContext, request: AgentRequest) -> AgentResponse:
        """Deliver ``request`` and wait for the agent's answer.

        Raises MessageDeliveryError when no agent is listening in the page.
        """
        try:
            token = context.get_marker(AGENT_MARKER)
        except ContextGone as exc:
            raise MessageDeliveryError(f"Page is gone: {exc}") from exc
        listener = self._listeners.get(token or "")
        if listener is None:
            raise MessageDeliveryError("Receiving end does not exist")
        return AgentResponse.from_message(listener.handle(request.to_message()))


class DeliveryStatus(str, Enum):
    DELIVERED = "delivered"
    UNDELIVERABLE = "undeliverable"


@dataclass
class Delivery:
    status: DeliveryStatus
    response: AgentResponse | None = None
    error: str | None = None

    @property
    def delivered(self) -> bool:
        return self.status is DeliveryStatus.DELIVERED


def deliver(
    channel: MessageChannel,
    context: PageContext,
    request: AgentRequest,
    *,
    retry_delay: float = 3.0,
    sleep: Callable[[float], None] = time.sleep,
) -> Delivery:
    """Send with at most one retry; never raises for delivery problems."""

    def attempt() -> AgentResponse:
        try:
            channel.attach(context)
        except ContextGone as exc:
            raise MessageDeliveryError(f"Page is gone: {exc}") from exc
        return channel.send(context, request)

    policy = RetryPolicy(max_attempts=2, base_delay=retry_delay, backoff_factor=1.0, jitter=False)
    try:
        response = call_with_retry(attempt, policy=policy, retryable=(MessageDeliveryError,), sleep=sleep)
    except MessageDeliveryError as exc:
        return Delivery(DeliveryStatus.UNDELIVERABLE, error=str(exc))
    return Delivery(DeliveryStatus.DELIVERED, response=response)
