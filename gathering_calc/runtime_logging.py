"""Runtime event log for the calculator session (JSON Lines on local disk)."""

from __future__ import annotations

import json
import os
import sys
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from streamlit.runtime.scriptrunner import get_script_run_ctx


LOG_DIR = Path(".local_store")
RUNTIME_EVENTS_LOG_FILE = LOG_DIR / "runtime_events.jsonl"

_DEFAULT_LOG_DIR = Path(".local_store")
_STORAGE_ENV_VAR = "GATHERING_STORAGE_ROOT"
_LOG_FILE_NAME = "runtime_events.jsonl"

_EXCEPTION_HOOK_INSTALLED = False

# Events the calculator writes, grouped for the diagnostics sidebar.
EVENT_GROUPS: dict[str, tuple[str, ...]] = {
    "Calculation": ("calculation_validation_failed",),
    "History": ("history_entry_saved", "history_entry_deleted", "history_save_failed"),
    "Stored data": ("history_load_malformed", "history_entry_skipped"),
    "Errors": ("uncaught_exception", "runtime_log_clear_failed", "log_parse_error"),
}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _json_default(value: Any):
    if isinstance(value, (set, tuple)):
        return list(value)
    return str(value)


def configure_log_root(path_value: str | Path | None) -> Path:
    global LOG_DIR, RUNTIME_EVENTS_LOG_FILE
    text = "" if path_value is None else str(path_value).strip()
    LOG_DIR = Path(os.path.expandvars(os.path.expanduser(text))) if text else _DEFAULT_LOG_DIR
    RUNTIME_EVENTS_LOG_FILE = LOG_DIR / _LOG_FILE_NAME
    return LOG_DIR


def runtime_log_path() -> str:
    return str(RUNTIME_EVENTS_LOG_FILE.resolve())


def append_runtime_event(
    level: str,
    event: str,
    message: str,
    context: dict[str, Any] | None = None,
    exc: BaseException | None = None,
) -> None:
    """Append one structured event; failures to write are ignored."""
    record: dict[str, Any] = {
        "timestamp_utc": _now_iso(),
        "level": str(level).upper(),
        "event": str(event),
        "message": str(message),
        "context": context or {},
    }
    if exc is not None:
        record["exception_type"] = type(exc).__name__
        record["exception_message"] = str(exc)
        record["traceback"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    try:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        with RUNTIME_EVENTS_LOG_FILE.open("a", encoding="utf-8") as f:
            f.write(json.dumps(record, default=_json_default, ensure_ascii=False) + "\n")
    except OSError:
        # The log is diagnostics only; a read-only disk must not break a calculation.
        pass


def read_runtime_events(limit: int = 100, group: str | None = None) -> list[dict[str, Any]]:
    """Return up to `limit` most recent events, oldest first.

    With `group` set to a key of EVENT_GROUPS, only that group's events count
    towards the limit.
    """
    if group is not None and group not in EVENT_GROUPS:
        raise ValueError(f"Unknown runtime event group: {group}")
    if limit <= 0 or not RUNTIME_EVENTS_LOG_FILE.exists():
        return []
    try:
        lines = RUNTIME_EVENTS_LOG_FILE.read_text(encoding="utf-8").splitlines()
    except OSError:
        return []
    if group is None:
        lines = lines[-int(limit) :]
    events: list[dict[str, Any]] = []
    for line in lines:
        if not line.strip():
            continue
        try:
            record = json.loads(line)
        except json.JSONDecodeError:
            record = None
        if isinstance(record, dict):
            events.append(record)
        else:
            events.append(
                {
                    "timestamp_utc": _now_iso(),
                    "level": "ERROR",
                    "event": "log_parse_error",
                    "message": "Malformed log line encountered.",
                    "context": {"line": line},
                }
            )
    if group is not None:
        names = EVENT_GROUPS[group]
        events = [e for e in events if e.get("event") in names][-int(limit) :]
    return events


def event_group_counts(events: list[dict[str, Any]]) -> dict[str, int]:
    """Count events per EVENT_GROUPS key; unlisted events are not counted."""
    counts = {name: 0 for name in EVENT_GROUPS}
    for record in events:
        for name, members in EVENT_GROUPS.items():
            if record.get("event") in members:
                counts[name] += 1
    return counts


def clear_runtime_events() -> bool:
    try:
        RUNTIME_EVENTS_LOG_FILE.unlink()
    except FileNotFoundError:
        return False
    return True


def install_global_exception_logging() -> None:
    """Record uncaught exceptions raised during a Streamlit script run."""
    global _EXCEPTION_HOOK_INSTALLED
    if _EXCEPTION_HOOK_INSTALLED:
        return
    previous_hook = sys.excepthook

    def _hook(exc_type, exc, exc_tb):
        if get_script_run_ctx() is not None:
            append_runtime_event(
                level="ERROR",
                event="uncaught_exception",
                message=str(exc),
                exc=exc,
            )
        previous_hook(exc_type, exc, exc_tb)

    sys.excepthook = _hook
    _EXCEPTION_HOOK_INSTALLED = True


configure_log_root(os.getenv(_STORAGE_ENV_VAR, ""))
