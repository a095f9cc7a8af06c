"""Form field labels, help text, and advisory range checks."""

from __future__ import annotations

from typing import Any

from gathering_calc.form_state import GatheringForm, coerce_number


FIELD_LABELS: dict[str, str] = {
    "title": "Title",
    "date": "Date",
    "location": "Location",
    "participant_count": "Participants",
    "fee_per_person": "Fee per Person",
    "venue_fee": "Venue Fee",
    "platform_fee_percent": "Platform Fee (%)",
    "target_profit": "Target Profit",
}

FIELD_HELP: dict[str, str] = {
    "title": "Name of the gathering. Required.",
    "date": "Day the gathering takes place. Required.",
    "location": "Where the gathering is held.",
    "participant_count": "Expected number of paying participants. Required.",
    "fee_per_person": "Amount each participant pays. Required.",
    "venue_fee": "Flat rental cost for the venue. Blank counts as 0.",
    "platform_fee_percent": "Commission the booking platform takes from revenue. Blank counts as 0.",
    "target_profit": "Net profit you want to reach. When net profit falls short, a per-person fee is suggested.",
}

INPUT_GUIDANCE: dict[str, dict[str, Any]] = {
    "participant_count": {"min": 1, "max": 500, "note": "Small gatherings usually host a few to a few dozen people."},
    "platform_fee_percent": {"min": 0, "max": 30, "note": "Booking platforms typically charge up to about 20%."},
}


def _fmt(v: float) -> str:
    if abs(v - round(v)) < 1e-9:
        return f"{int(round(v))}"
    return f"{v:.3f}".rstrip("0").rstrip(".")


def help_with_guidance(key: str) -> str:
    base_help = FIELD_HELP.get(key, "")
    g = INPUT_GUIDANCE.get(key)
    if not g:
        return base_help
    return f"{base_help} Reasonable range: {_fmt(g['min'])} to {_fmt(g['max'])}. {g['note']}"


def advisory_warnings(form: GatheringForm) -> list[str]:
    """Non-blocking notices for values that are valid but unusual."""
    warnings: list[str] = []
    for key, g in INPUT_GUIDANCE.items():
        v = coerce_number(getattr(form, key, None))
        if v is None:
            continue
        if v < g["min"] or v > g["max"]:
            warnings.append(
                f"{FIELD_LABELS[key]} {_fmt(v)} is outside the usual range [{_fmt(g['min'])}, {_fmt(g['max'])}]."
            )
    for idx, line in enumerate(form.materials):
        has_name = bool(line.name.strip())
        has_cost = coerce_number(line.unit_price) is not None and coerce_number(line.quantity) is not None
        if has_name and not has_cost:
            warnings.append(f"Material {idx + 1} ({line.name.strip()}) has no price or quantity and counts as 0.")
    return warnings
