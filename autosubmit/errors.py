"""Error taxonomy for the submission pipeline."""
from __future__ import annotations


class SubmitterError(Exception):
    """Base class for every error raised by the submitter."""

    kind = "SubmitterError"


class ProposalNotFound(SubmitterError):
    """No stored proposal matches a queued job, even after a refresh."""

    kind = "ProposalNotFound"


class PageLoadTimeout(SubmitterError):
    kind = "PageLoadTimeout"


class ContextGone(SubmitterError):
    """The page (execution context) was closed or crashed."""

    kind = "ContextGone"


class AgentUnreachable(SubmitterError):
    """Handshake probe was inconclusive. Logged, never fatal."""

    kind = "AgentUnreachable"


class MessageDeliveryError(SubmitterError):
    kind = "MessageDeliveryFailure"


class FormFieldNotFound(SubmitterError):
    """Raised inside the agent when a required control is missing."""

    kind = "FormFieldNotFound"

    def __init__(self, control: str, detail: str = "") -> None:
        self.control = control
        msg = f"Could not find {control.replace('_', ' ')}"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class ExternalServiceError(SubmitterError):
    """Proposal fetch or delete-webhook failure."""

    kind = "ExternalServiceError"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def describe(exc: BaseException) -> str:
    """Short one-line diagnostic suitable for ``error_message``."""
    kind = getattr(exc, "kind", exc.__class__.__name__)
    text = str(exc)[:150].split("\n")[0]
    return f"{kind}: {text}" if text else kind
