"""History entry schema, JSON mapping, and legacy key migration."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any

import pandas as pd

from gathering_calc.calculation import CalculationResult
from gathering_calc.form_state import GatheringForm, coerce_number, coerce_or_zero


HISTORY_STORAGE_KEY = "calculationHistory"

# Attribute name -> persisted JSON key.
ENTRY_KEYS = {
    "title": "title",
    "date": "date",
    "location": "location",
    "participant_count": "participantCount",
    "fee_per_person": "feePerPerson",
    "materials": "materials",
    "venue_fee": "venueFee",
    "platform_fee_percent": "platformFeePercent",
    "target_profit": "targetProfit",
    "total_revenue": "totalRevenue",
    "materials_cost": "materialsCost",
    "platform_fee_amount": "platformFeeAmount",
    "net_profit": "netProfit",
    "suggested_fee_per_person": "suggestedFeePerPerson",
    "timestamp": "timestamp",
}
RESULT_KEYS = ("totalRevenue", "materialsCost", "platformFeeAmount", "venueFee", "netProfit")

# Keys written by the earlier browser build of the calculator.
LEGACY_ENTRY_KEYS = {
    "participants": "participantCount",
    "platformFee": "platformFeePercent",
    "suggestedFee": "suggestedFeePerPerson",
}
LEGACY_MATERIAL_KEYS = {"price": "unitPrice"}
# Zone the browser build ran in; its date values are midnight there.
LEGACY_DATE_TIMEZONE = "Asia/Seoul"


@dataclass(frozen=True)
class SavedMaterial:
    name: str = ""
    unit_price: int | float | None = None
    quantity: int | float | None = None

    @property
    def cost(self) -> int | float:
        if self.unit_price is None or self.quantity is None:
            return 0
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class HistoryEntry:
    title: str
    date: date | None
    location: str
    participant_count: int | float | None
    fee_per_person: int | float | None
    materials: tuple[SavedMaterial, ...] = field(default_factory=tuple)
    venue_fee: int | float = 0
    platform_fee_percent: int | float | None = None
    target_profit: int | float | None = None
    total_revenue: int | float = 0
    materials_cost: int | float = 0
    platform_fee_amount: int | float = 0
    net_profit: int | float = 0
    suggested_fee_per_person: int | float | None = None
    timestamp: str = ""


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def build_history_entry(form: GatheringForm, result: CalculationResult, timestamp: str | None = None) -> HistoryEntry:
    """Snapshot form + result into an immutable history entry."""
    return HistoryEntry(
        title=form.title.strip(),
        date=form.date,
        location=form.location.strip(),
        participant_count=coerce_number(form.participant_count),
        fee_per_person=coerce_number(form.fee_per_person),
        materials=tuple(
            SavedMaterial(
                name=line.name,
                unit_price=coerce_number(line.unit_price),
                quantity=coerce_number(line.quantity),
            )
            for line in form.materials
        ),
        venue_fee=result.venue_fee,
        platform_fee_percent=coerce_number(form.platform_fee_percent),
        target_profit=coerce_number(form.target_profit),
        total_revenue=result.total_revenue,
        materials_cost=result.materials_cost,
        platform_fee_amount=result.platform_fee_amount,
        net_profit=result.net_profit,
        suggested_fee_per_person=result.suggested_fee_per_person,
        timestamp=timestamp or now_iso(),
    )


def entry_to_dict(entry: HistoryEntry) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for attr, key in ENTRY_KEYS.items():
        value = getattr(entry, attr)
        if attr == "date":
            value = value.isoformat() if value is not None else None
        elif attr == "materials":
            value = [{"name": m.name, "unitPrice": m.unit_price, "quantity": m.quantity} for m in value]
        elif attr == "suggested_fee_per_person" and value is None:
            continue
        out[key] = value
    return out


def _parse_date(value: Any, warnings: list[str]) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    ts = _to_timestamp(value)
    if ts is None:
        warnings.append(f"date ignored because {value!r} is not a recognizable date.")
        return None
    if ts.tzinfo is not None:
        # Browser builds serialized the picked local midnight as UTC.
        ts = ts.tz_convert(LEGACY_DATE_TIMEZONE)
    return ts.date()


def _parse_timestamp(value: Any, warnings: list[str]) -> str:
    if value is None or value == "":
        return ""
    ts = _to_timestamp(value)
    if ts is None:
        warnings.append(f"timestamp ignored because {value!r} is not a recognizable timestamp.")
        return ""
    return ts.isoformat()


def _to_timestamp(value: Any) -> pd.Timestamp | None:
    """Parse with pandas; "NaT"/"nan" and out-of-range values count as unparseable."""
    try:
        ts = pd.Timestamp(str(value))
    except (TypeError, ValueError, OverflowError):
        return None
    if pd.isna(ts):
        return None
    return ts


def _migrate_legacy_keys(payload: dict, mapping: dict[str, str], warnings: list[str]) -> dict:
    migrated = dict(payload)
    for old_key, new_key in mapping.items():
        if old_key not in migrated:
            continue
        old_value = migrated.pop(old_key)
        if new_key not in migrated:
            migrated[new_key] = old_value
            warnings.append(f"Migrated legacy key {old_key} to {new_key}.")
    return migrated


def _materials_from_payload(raw: Any, warnings: list[str]) -> tuple[SavedMaterial, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        warnings.append("materials ignored because it is not a list.")
        return ()
    materials = []
    for idx, item in enumerate(raw):
        if not isinstance(item, dict):
            warnings.append(f"materials[{idx}] ignored because entry is not an object.")
            continue
        item = _migrate_legacy_keys(item, LEGACY_MATERIAL_KEYS, warnings)
        materials.append(
            SavedMaterial(
                name=str(item.get("name") or ""),
                unit_price=coerce_number(item.get("unitPrice")),
                quantity=coerce_number(item.get("quantity")),
            )
        )
    return tuple(materials)


def entry_from_dict(payload: Any) -> tuple[HistoryEntry | None, list[str], list[str]]:
    """Parse one persisted entry; returns (entry or None, warnings, unknown_keys)."""
    warnings: list[str] = []
    if not isinstance(payload, dict):
        return None, ["History entry ignored because it is not an object."], []

    data = _migrate_legacy_keys(payload, LEGACY_ENTRY_KEYS, warnings)
    known = set(ENTRY_KEYS.values())
    unknown_keys = sorted(k for k in data if k not in known)

    missing = [k for k in RESULT_KEYS if coerce_number(data.get(k)) is None]
    if missing:
        warnings.append(f"History entry ignored because result fields are missing or invalid: {', '.join(missing)}.")
        return None, warnings, unknown_keys

    entry = HistoryEntry(
        title=str(data.get("title") or ""),
        date=_parse_date(data.get("date"), warnings),
        location=str(data.get("location") or ""),
        participant_count=coerce_number(data.get("participantCount")),
        fee_per_person=coerce_number(data.get("feePerPerson")),
        materials=_materials_from_payload(data.get("materials"), warnings),
        venue_fee=coerce_or_zero(data.get("venueFee")),
        platform_fee_percent=coerce_number(data.get("platformFeePercent")),
        target_profit=coerce_number(data.get("targetProfit")),
        total_revenue=coerce_or_zero(data.get("totalRevenue")),
        materials_cost=coerce_or_zero(data.get("materialsCost")),
        platform_fee_amount=coerce_or_zero(data.get("platformFeeAmount")),
        net_profit=coerce_or_zero(data.get("netProfit")),
        suggested_fee_per_person=coerce_number(data.get("suggestedFeePerPerson")),
        timestamp=_parse_timestamp(data.get("timestamp"), warnings),
    )
    return entry, warnings, unknown_keys


def history_from_payload(payload: Any) -> tuple[list[HistoryEntry], list[str], list[str]]:
    """Parse a persisted history document into entries, newest first as stored."""
    if not isinstance(payload, list):
        return [], ["History document is not a JSON array."], []
    entries: list[HistoryEntry] = []
    warnings: list[str] = []
    unknown: set[str] = set()
    for idx, item in enumerate(payload):
        entry, entry_warnings, entry_unknown = entry_from_dict(item)
        warnings.extend(f"history[{idx}]: {w}" for w in entry_warnings)
        unknown.update(entry_unknown)
        if entry is not None:
            entries.append(entry)
    return entries, warnings, sorted(unknown)


def history_to_payload(entries: list[HistoryEntry]) -> list[dict[str, Any]]:
    return [entry_to_dict(e) for e in entries]
