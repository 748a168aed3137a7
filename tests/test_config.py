"""Tests for YAML/env configuration and persisted runtime settings."""

from pathlib import Path

import pytest

from autosubmit.config import (
    DEFAULT_APPLY_URL,
    DELAY_KEY,
    MODE_KEY,
    ROOT_DIR,
    Settings,
    SettingsStore,
    load_config,
)
from autosubmit.models import SubmissionMode

_ENV_KEYS = (
    "PROPOSAL_SERVICE_URL",
    "DELETE_WEBHOOK_URL",
    "AUTOSUBMIT_DATA_DIR",
    "RUN_HEADLESS",
    "BROWSER_PROFILE_DIR",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def _write(tmp_path, text):
    path = tmp_path / "settings.yaml"
    path.write_text(text)
    return path


def test_loads_yaml(tmp_path):
    path = _write(tmp_path, """
proposal_sources:
  - name: main
    url: https://hooks.example.com/a
  - name: old
    url: https://hooks.example.com/b
    enabled: false
delete_webhook_url: https://hooks.example.com/delete
data_dir: /var/lib/autosubmit
headless: true
timing:
  ready_timeout: 20
  delivery_retry_delay: 1
""")
    config = load_config(path)

    assert [s.name for s in config.proposal_sources] == ["main", "old"]
    assert [s.name for s in config.enabled_sources] == ["main"]
    assert config.delete_webhook_url == "https://hooks.example.com/delete"
    assert config.store_path == Path("/var/lib/autosubmit/submitter_state.json")
    assert config.headless is True
    assert config.timing.ready_timeout == 20.0
    assert config.timing.delivery_retry_delay == 1.0
    assert config.timing.handshake_timeout == 7.0


def test_missing_file_uses_defaults(tmp_path):
    config = load_config(tmp_path / "nope.yaml")
    assert config.proposal_sources == []
    assert config.apply_url_template == DEFAULT_APPLY_URL
    assert config.timing.ready_timeout == 15.0


def test_env_overrides(tmp_path, monkeypatch):
    path = _write(tmp_path, "delete_webhook_url: https://yaml/delete\nheadless: false\n")
    monkeypatch.setenv("PROPOSAL_SERVICE_URL", "https://env/proposals")
    monkeypatch.setenv("DELETE_WEBHOOK_URL", "https://env/delete")
    monkeypatch.setenv("RUN_HEADLESS", "true")
    monkeypatch.setenv("AUTOSUBMIT_DATA_DIR", "state")

    config = load_config(path)
    assert [s.url for s in config.proposal_sources] == ["https://env/proposals"]
    assert config.delete_webhook_url == "https://env/delete"
    assert config.headless is True
    assert config.data_dir == str(ROOT_DIR / "state")


def test_env_source_not_duplicated(tmp_path, monkeypatch):
    path = _write(tmp_path, "proposal_sources:\n  - url: https://same/url\n")
    monkeypatch.setenv("PROPOSAL_SERVICE_URL", "https://same/url")
    assert len(load_config(path).proposal_sources) == 1


def test_settings_defaults(store):
    settings = SettingsStore(store).load()
    assert settings == Settings(enabled=True, delay_ms=5000, mode=SubmissionMode.SUBMIT)
    assert settings.delay_seconds == 5.0


def test_settings_round_trip(store):
    settings_store = SettingsStore(store)
    settings_store.save(Settings(enabled=False, delay_ms=0, mode=SubmissionMode.FILL_ONLY))
    loaded = settings_store.load()
    assert loaded.enabled is False
    assert loaded.delay_ms == 0
    assert loaded.mode is SubmissionMode.FILL_ONLY
    assert store.get(DELAY_KEY) == 0


def test_unknown_mode_falls_back_to_submit(store):
    store.set(MODE_KEY, "yolo")
    assert SettingsStore(store).load().mode is SubmissionMode.SUBMIT
