#!/usr/bin/env python3
"""
Official gazette monitor - command line entry point.

Runs one check (default) or keeps running and checks at the configured
wall-clock times (--watch). The URL of the newest edition already reported is
kept in a small JSON state file so new editions can be flagged.

Usage:
  python gazette_monitor.py
  python gazette_monitor.py --watch --config .streamlit/secrets.toml
"""

import argparse
import json
import logging
import threading
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from gazette_config import load_settings
from gazette_errors import TerminalFailure
from gazette_models import GazetteRecord
from gazette_pipeline import build_pipeline


logger = logging.getLogger(__name__)


def _empty_state() -> Dict[str, Any]:
    return {"last_checked_url": None, "last_checked_at": ""}


def load_state(state_path: Path) -> Dict[str, Any]:
    if not state_path.exists():
        return _empty_state()
    try:
        with open(state_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Could not read state file %s, starting fresh: %s", state_path, e)
        return _empty_state()
    if not isinstance(data, dict):
        logger.warning("State file %s does not hold an object, starting fresh", state_path)
        return _empty_state()
    return data


def save_state(state_path: Path, data: Dict[str, Any]) -> None:
    state_path.parent.mkdir(parents=True, exist_ok=True)
    with open(state_path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)


class CheckRunner:
    """Runs checks one at a time; a trigger during a running check is ignored."""

    def __init__(self, pipeline, state_path: Path, clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self.pipeline = pipeline
        self.state_path = Path(state_path)
        self._clock = clock
        self._lock = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def trigger(self) -> Optional[List[GazetteRecord]]:
        if not self._lock.acquire(blocking=False):
            logger.info("Check already in progress; ignoring trigger")
            return None
        try:
            state = load_state(self.state_path)
            records = self.pipeline.check(last_seen_url=state.get("last_checked_url"))
            if records and records[0].is_new_since_last_check:
                state["last_checked_url"] = records[0].source_url
            state["last_checked_at"] = self._clock().isoformat()
            save_state(self.state_path, state)
            return records
        finally:
            self._lock.release()


def due_check_time(now: datetime, check_times: Tuple[str, ...], last_run_key: str) -> str:
    """Return a run key (date + HH:MM) when ``now`` hits a check time not yet run."""
    hhmm = now.strftime("%H:%M")
    if hhmm not in check_times:
        return ""
    key = f"{now.strftime('%Y-%m-%d')} {hhmm}"
    return "" if key == last_run_key else key


def _print_records(records: List[GazetteRecord]) -> None:
    if not records:
        print("Nenhuma informação nova encontrada.")
        return
    newest = records[0]
    if newest.is_new_since_last_check:
        print(f"NOVA EDIÇÃO ENCONTRADA: {newest.title}")
    for record in records:
        flag = "*" if record.is_new_since_last_check else " "
        print(f"{flag} [{record.id or '-'}] {record.publication_date or 's/ data':>10}  {record.title}")
        print(f"    {record.source_url}")
    if newest.content_summary:
        print(f"\n{newest.content_summary}")


def _run_once(runner: CheckRunner, as_json: bool) -> int:
    try:
        records = runner.trigger()
    except TerminalFailure as e:
        print(f"Falha na verificação: {e}")
        return 1
    records = records or []
    if as_json:
        print(json.dumps([r.to_dict() for r in records], indent=2, ensure_ascii=False))
    else:
        _print_records(records)
    return 0


def _scheduled_check(runner: CheckRunner) -> int:
    try:
        return _run_once(runner, as_json=False)
    except Exception:
        logger.exception("Scheduled check failed; waiting for the next slot")
        return 1


def watch(runner: CheckRunner, check_times: Tuple[str, ...], poll_seconds: float = 60.0) -> None:
    print(f"Watching for new gazette editions at {', '.join(check_times)} (Ctrl+C to stop)")
    last_run_key = ""
    while True:
        key = due_check_time(datetime.now(), check_times, last_run_key)
        if key:
            last_run_key = key
            logger.info("Scheduled check at %s", key)
            _scheduled_check(runner)
        time.sleep(poll_seconds)


def main() -> int:
    parser = argparse.ArgumentParser(description="Monitor the municipal official gazette for new editions.")
    parser.add_argument(
        "--config",
        default=".streamlit/secrets.toml",
        help="Path to the TOML secrets/config file.",
    )
    parser.add_argument(
        "--state",
        default=None,
        help="Path to the JSON file holding the last reported edition URL.",
    )
    parser.add_argument(
        "--watch",
        action="store_true",
        help="Keep running and check at the configured times.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print records as JSON.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Show strategy and extraction logs.",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    settings = load_settings(Path(args.config))
    state_path = Path(args.state or settings.state_path)
    runner = CheckRunner(build_pipeline(settings), state_path)

    if args.watch:
        try:
            watch(runner, settings.check_times)
        except KeyboardInterrupt:
            print("\nStopped.")
        return 0
    return _run_once(runner, as_json=args.json)


if __name__ == "__main__":
    raise SystemExit(main())
