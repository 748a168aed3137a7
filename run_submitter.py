#!/usr/bin/env python3
"""
Entry point for the proposal auto-submitter.

Usage:
  python run_submitter.py               # poll proposals + submit queue forever
  python run_submitter.py --once        # fetch, work the queue until empty, exit
  python run_submitter.py --fetch-only  # fetch + enqueue, no browser
  python run_submitter.py --disable     # pause (persisted); --enable resumes
  python run_submitter.py --mode fill_only
"""
from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent))

from autosubmit.config import load_config
from autosubmit.log import get_logger
from autosubmit.models import SubmissionMode
from autosubmit.store import JsonFileStore

log = get_logger(__name__)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Submit stored proposals against queued jobs, one at a time.")
    parser.add_argument("--config", default=None, help="Path to settings.yaml")
    parser.add_argument("--once", action="store_true", help="Work the queue until empty, then exit")
    parser.add_argument("--fetch-only", action="store_true", help="Fetch and enqueue proposals only")
    toggle = parser.add_mutually_exclusive_group()
    toggle.add_argument("--enable", action="store_true", help="Turn auto-submission on")
    toggle.add_argument("--disable", action="store_true", help="Turn auto-submission off")
    parser.add_argument("--mode", choices=[m.value for m in SubmissionMode], default=None,
                        help="submit (default) or fill_only")
    parser.add_argument("--delay-ms", type=int, default=None, help="Delay between jobs in milliseconds")
    return parser.parse_args()


def _apply_setting_flags(args: argparse.Namespace, settings_store) -> bool:
    """Persist any settings given on the command line. True if something changed."""
    if not (args.enable or args.disable or args.mode or args.delay_ms is not None):
        return False
    settings = settings_store.load()
    if args.enable or args.disable:
        settings.enabled = bool(args.enable)
    if args.mode:
        settings.mode = SubmissionMode(args.mode)
    if args.delay_ms is not None:
        settings.delay_ms = max(0, args.delay_ms)
    settings_store.save(settings)
    log.info(
        "Settings: enabled=%s, mode=%s, delay=%dms",
        settings.enabled, settings.mode.value, settings.delay_ms,
    )
    return True


def main() -> int:
    args = parse_args()
    config = load_config(args.config)
    store = JsonFileStore(config.store_path)

    from autosubmit.browser import PlaywrightDriver
    from autosubmit.orchestrator import build_submitter

    driver = PlaywrightDriver(
        headless=config.headless,
        user_data_dir=config.browser_profile_dir or None,
        navigation_timeout=config.timing.ready_timeout,
    )
    submitter = build_submitter(config, store, driver)

    changed = _apply_setting_flags(args, submitter.settings)
    if changed and not (args.once or args.fetch_only):
        return 0

    result = submitter.intake.check_for_new_proposals()
    log.info("Proposals: %d new, %d stored", result.new_count, result.total_count)
    submitter.intake.enqueue_pending()
    log.info("Jobs in submission queue: %d", len(submitter.queue))
    if args.fetch_only:
        return 0

    with driver:
        if args.once:
            outcomes = submitter.orchestrator.run_until_empty()
            for o in outcomes:
                log.info("  %-10s %s %s", o.state.value, o.job.job_url, o.error or "")
            log.info("Run complete: processed=%d, ok=%d", len(outcomes), sum(o.ok for o in outcomes))
            return 0

        last_check = time.monotonic()

        def check_between_cycles() -> None:
            # runs on the loop thread so the queue keeps a single writer
            nonlocal last_check
            if time.monotonic() - last_check < config.intake_interval:
                return
            last_check = time.monotonic()
            submitter.intake.check_for_new_proposals()

        try:
            submitter.orchestrator.run_forever(between_cycles=check_between_cycles)
        except KeyboardInterrupt:
            log.info("Interrupted, stopping")
        finally:
            submitter.orchestrator.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
