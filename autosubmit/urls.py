"""URL canonicalization and site identifier extraction."""
from __future__ import annotations

import re
from urllib.parse import urlsplit, urlunsplit

_MARKER_RE = re.compile(r"~\d+")


def normalize_url(url: str) -> str:
    """Strip a leading ``www.`` from the host and drop query and fragment."""
    url = (url or "").strip()
    try:
        parts = urlsplit(url)
    except ValueError:
        return url.split("?")[0].split("#")[0]
    if not parts.scheme or not parts.netloc:
        return url.split("?")[0].split("#")[0]
    netloc = parts.netloc.lower()
    if netloc.startswith("www."):
        netloc = netloc[4:]
    return urlunsplit((parts.scheme.lower(), netloc, parts.path, "", ""))


def site_marker(url: str) -> str:
    """Return the ``~<digits>`` marker from the URL path, or ``""``.

    Job pages look like ``/jobs/Some-Title_~0123/`` and apply pages like
    ``/proposals/job/~0123/apply/``; the marker is the same on both.
    """
    try:
        path = urlsplit(url or "").path
    except ValueError:
        path = (url or "").split("?")[0]
    for segment in path.split("/"):
        m = _MARKER_RE.search(segment)
        if m:
            return m.group(0)
    return ""


def build_apply_url(template: str, job_id: str) -> str:
    return template.format(job_id=job_id)
