"""Local key-value persistence for the calculation history."""

from __future__ import annotations

import json
import os
from pathlib import Path

from gathering_calc.runtime_logging import append_runtime_event
from gathering_calc.schema import HISTORY_STORAGE_KEY, HistoryEntry, history_from_payload, history_to_payload


STORE_DIR = Path(".local_store")

_DEFAULT_STORE_DIR = Path(".local_store")
_STORAGE_ENV_VAR = "GATHERING_STORAGE_ROOT"


def _expand_storage_root(path_value: str | Path | None) -> Path:
    if path_value is None:
        return _DEFAULT_STORE_DIR
    text = str(path_value).strip()
    if not text:
        return _DEFAULT_STORE_DIR
    return Path(os.path.expandvars(os.path.expanduser(text)))


def configure_storage_root(path_value: str | Path | None) -> Path:
    """Point file-backed repositories created afterwards at a new directory."""
    global STORE_DIR
    STORE_DIR = _expand_storage_root(path_value)
    return STORE_DIR


def storage_root_path() -> str:
    return str(STORE_DIR.resolve())


def storage_root_from_env() -> Path:
    return _expand_storage_root(os.getenv(_STORAGE_ENV_VAR, ""))


def decode_history(raw_json: str | None, source: str = "") -> list[HistoryEntry]:
    """Deserialize a stored history document; malformed content yields an empty list."""
    if raw_json is None or not raw_json.strip():
        return []
    try:
        payload = json.loads(raw_json)
    except (ValueError, RecursionError) as exc:
        # ValueError covers JSONDecodeError and integers past the digit limit.
        append_runtime_event(
            level="WARNING",
            event="history_load_malformed",
            message="Stored history is not valid JSON; starting with an empty history.",
            context={"source": source},
            exc=exc,
        )
        return []
    entries, warnings, unknown = history_from_payload(payload)
    if not isinstance(payload, list):
        append_runtime_event(
            level="WARNING",
            event="history_load_malformed",
            message="Stored history is not a JSON array; starting with an empty history.",
            context={"source": source, "type": type(payload).__name__},
        )
    elif warnings or unknown:
        append_runtime_event(
            level="WARNING",
            event="history_entry_skipped",
            message=f"Loaded {len(entries)} of {len(payload)} history entries.",
            context={"source": source, "warnings": warnings, "unknown_keys": unknown},
        )
    return entries


def encode_history(entries: list[HistoryEntry]) -> str:
    return json.dumps(history_to_payload(entries), ensure_ascii=False, indent=2)


class HistoryRepository:
    """Load/save contract for the whole history list."""

    key = HISTORY_STORAGE_KEY

    def load(self) -> list[HistoryEntry]:
        raise NotImplementedError

    def save(self, entries: list[HistoryEntry]) -> None:
        raise NotImplementedError


class JsonFileHistoryRepository(HistoryRepository):
    """Stores each key as `<root>/<key>.json`, overwritten atomically."""

    def __init__(self, root: str | Path | None = None, key: str = HISTORY_STORAGE_KEY):
        self.root = Path(root) if root is not None else STORE_DIR
        self.key = key

    @property
    def path(self) -> Path:
        return self.root / f"{self.key}.json"

    def load(self) -> list[HistoryEntry]:
        if not self.path.exists():
            return []
        try:
            raw = self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            append_runtime_event(
                level="WARNING",
                event="history_load_malformed",
                message="Stored history could not be read; starting with an empty history.",
                context={"source": str(self.path)},
                exc=exc,
            )
            return []
        return decode_history(raw, source=str(self.path))

    def save(self, entries: list[HistoryEntry]) -> None:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(".json.tmp")
            tmp.write_text(encode_history(entries), encoding="utf-8")
            tmp.replace(self.path)
        except OSError as exc:
            append_runtime_event(
                level="ERROR",
                event="history_save_failed",
                message="Failed to write calculation history.",
                context={"path": str(self.path), "entries": len(entries)},
                exc=exc,
            )
            raise


class InMemoryHistoryRepository(HistoryRepository):
    def __init__(self, raw_json: str | None = None, key: str = HISTORY_STORAGE_KEY):
        self.raw_json = raw_json
        self.key = key

    def load(self) -> list[HistoryEntry]:
        return decode_history(self.raw_json, source=f"memory:{self.key}")

    def save(self, entries: list[HistoryEntry]) -> None:
        self.raw_json = encode_history(entries)


configure_storage_root(storage_root_from_env())
