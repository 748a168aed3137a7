"""Load submitter configuration (YAML + env) and persisted runtime settings."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from autosubmit.log import get_logger
from autosubmit.models import SubmissionMode
from autosubmit.store import KeyValueStore

log = get_logger(__name__)

load_dotenv()

ROOT_DIR: Path = Path(__file__).resolve().parent.parent
CONFIG_DIR: Path = ROOT_DIR / "config"
SETTINGS_PATH: Path = CONFIG_DIR / "settings.yaml"
DATA_DIR: Path = ROOT_DIR / "data"

DEFAULT_APPLY_URL = "https://www.upwork.com/nx/proposals/job/{job_id}/apply/"


@dataclass
class ProposalSource:
    name: str
    url: str
    enabled: bool = True


@dataclass
class Timing:
    """Wait bounds for the job state machine, in seconds."""

    ready_timeout: float = 15.0
    ready_interval: float = 0.5
    agent_grace: float = 1.0
    handshake_timeout: float = 7.0
    handshake_interval: float = 0.5
    delivery_retry_delay: float = 3.0
    idle_poll_interval: float = 30.0


@dataclass
class SubmitterConfig:
    proposal_sources: list[ProposalSource] = field(default_factory=list)
    delete_webhook_url: str = ""
    data_dir: str = str(DATA_DIR)
    headless: bool = False
    browser_profile_dir: str = ""
    apply_url_template: str = DEFAULT_APPLY_URL
    request_timeout: float = 15.0
    intake_interval: float = 300.0
    timing: Timing = field(default_factory=Timing)

    @property
    def enabled_sources(self) -> list[ProposalSource]:
        return [s for s in self.proposal_sources if s.enabled and s.url.strip()]

    @property
    def store_path(self) -> Path:
        return Path(self.data_dir) / "submitter_state.json"


def get_env(key: str, default: str = "") -> str:
    return os.environ.get(key, default).strip()


def _env_flag(key: str, default: bool) -> bool:
    raw = get_env(key)
    if not raw:
        return default
    return raw.lower() in ("1", "true", "yes")


def _resolve_dir(value: str) -> str:
    p = Path(value).expanduser()
    return str(p if p.is_absolute() else ROOT_DIR / p)


def load_config(path: Path | str | None = None) -> SubmitterConfig:
    """Read settings.yaml, then apply environment overrides."""
    config_path = Path(path) if path else SETTINGS_PATH
    raw: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path, "r") as f:
            raw = yaml.safe_load(f) or {}
    else:
        log.warning("Config file not found at %s, using defaults", config_path)

    sources = [
        ProposalSource(
            name=s.get("name") or s.get("url", ""),
            url=s.get("url", ""),
            enabled=s.get("enabled", True),
        )
        for s in raw.get("proposal_sources", []) or []
    ]
    env_url = get_env("PROPOSAL_SERVICE_URL")
    if env_url and env_url not in {s.url for s in sources}:
        sources.append(ProposalSource(name="env", url=env_url))

    timing_raw = raw.get("timing", {}) or {}
    timing = Timing(**{k: float(v) for k, v in timing_raw.items() if k in Timing.__dataclass_fields__})

    return SubmitterConfig(
        proposal_sources=sources,
        delete_webhook_url=get_env("DELETE_WEBHOOK_URL") or raw.get("delete_webhook_url", ""),
        data_dir=_resolve_dir(get_env("AUTOSUBMIT_DATA_DIR") or raw.get("data_dir") or str(DATA_DIR)),
        headless=_env_flag("RUN_HEADLESS", bool(raw.get("headless", False))),
        browser_profile_dir=get_env("BROWSER_PROFILE_DIR") or raw.get("browser_profile_dir", ""),
        apply_url_template=raw.get("apply_url_template", DEFAULT_APPLY_URL),
        request_timeout=float(raw.get("request_timeout", 15.0)),
        intake_interval=float(raw.get("intake_interval", 300.0)),
        timing=timing,
    )


# ---------------------------------------------------------------------------
# Persisted runtime settings
# ---------------------------------------------------------------------------

ENABLED_KEY = "auto_submission_enabled"
DELAY_KEY = "auto_submission_delay_ms"
MODE_KEY = "submission_mode"

DEFAULT_DELAY_MS = 5000


@dataclass
class Settings:
    enabled: bool = True
    delay_ms: int = DEFAULT_DELAY_MS
    mode: SubmissionMode = SubmissionMode.SUBMIT

    @property
    def delay_seconds(self) -> float:
        return self.delay_ms / 1000.0


class SettingsStore:
    """Typed view over the settings keys in the key/value store.

    Read failures propagate to the caller.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def load(self) -> Settings:
        enabled = self.store.get(ENABLED_KEY)
        delay = self.store.get(DELAY_KEY)
        mode = self.store.get(MODE_KEY)
        try:
            mode = SubmissionMode(mode) if mode else SubmissionMode.SUBMIT
        except ValueError:
            log.warning("Unknown submission mode %r, using submit", mode)
            mode = SubmissionMode.SUBMIT
        return Settings(
            enabled=enabled is not False,
            delay_ms=int(delay) if delay is not None else DEFAULT_DELAY_MS,
            mode=mode,
        )

    def save(self, settings: Settings) -> None:
        self.store.set(ENABLED_KEY, settings.enabled)
        self.store.set(DELAY_KEY, int(settings.delay_ms))
        self.store.set(MODE_KEY, settings.mode.value)

    def set_enabled(self, enabled: bool) -> None:
        self.store.set(ENABLED_KEY, bool(enabled))
