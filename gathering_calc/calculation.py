"""Profit calculation for a single gathering."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass

from gathering_calc.form_state import (
    GatheringForm,
    coerce_number,
    coerce_or_zero,
    material_line_cost,
    whole_number,
)


REQUIRED_FIELD_LABELS = {
    "title": "Title",
    "date": "Date",
    "participant_count": "Participants",
    "fee_per_person": "Fee per Person",
}
OUT_OF_RANGE_LABEL = "Amounts too large to calculate"


class ValidationError(ValueError):
    """Raised when required inputs are missing or unusable at calculation time."""

    def __init__(self, missing_fields: list[str] | None = None, invalid_fields: list[str] | None = None):
        self.missing_fields = list(missing_fields or [])
        self.invalid_fields = list(invalid_fields or [])
        parts = []
        if self.missing_fields:
            parts.append(f"Required fields missing: {', '.join(self.missing_fields)}.")
        if self.invalid_fields:
            parts.append(f"Invalid values: {', '.join(self.invalid_fields)}.")
        super().__init__(" ".join(parts) or "Form is not valid.")


@dataclass(frozen=True)
class CalculationResult:
    total_revenue: int | float
    materials_cost: int | float
    platform_fee_amount: int
    venue_fee: int | float
    net_profit: int | float
    suggested_fee_per_person: int | None = None

    def to_dict(self) -> dict:
        return asdict(self)


def _missing_required(form: GatheringForm) -> list[str]:
    missing = []
    if not (form.title or "").strip():
        missing.append(REQUIRED_FIELD_LABELS["title"])
    if form.date is None:
        missing.append(REQUIRED_FIELD_LABELS["date"])
    if not (form.participant_count or "").strip():
        missing.append(REQUIRED_FIELD_LABELS["participant_count"])
    if not (form.fee_per_person or "").strip():
        missing.append(REQUIRED_FIELD_LABELS["fee_per_person"])
    return missing


def suggest_fee(fee_per_person: float, participants: float, net_profit: float, target_profit: float | None) -> int | None:
    """Per-person fee needed to reach target_profit with the same head count."""
    if target_profit is None or net_profit >= target_profit:
        return None
    if participants <= 0:
        return None
    return math.ceil(fee_per_person + (target_profit - net_profit) / participants)


def calculate(form: GatheringForm) -> CalculationResult:
    missing = _missing_required(form)
    if missing:
        raise ValidationError(missing_fields=missing)

    participants = coerce_number(form.participant_count)
    fee = coerce_number(form.fee_per_person)
    invalid = []
    if participants is None or participants < 0 or participants != int(participants):
        invalid.append(REQUIRED_FIELD_LABELS["participant_count"])
    if fee is None or fee < 0:
        invalid.append(REQUIRED_FIELD_LABELS["fee_per_person"])
    if invalid:
        raise ValidationError(invalid_fields=invalid)

    try:
        total_revenue = whole_number(participants * fee)
        materials_cost = whole_number(sum(material_line_cost(line) for line in form.materials))
        platform_fee_amount = math.floor(total_revenue * coerce_or_zero(form.platform_fee_percent) / 100)
        venue_fee = coerce_or_zero(form.venue_fee)
        net_profit = whole_number(total_revenue - materials_cost - platform_fee_amount - venue_fee)
        suggested = suggest_fee(fee, participants, net_profit, coerce_number(form.target_profit))
    except (OverflowError, ValueError):
        # inf/nan intermediates, or ints beyond float range mixed with floats
        raise ValidationError(invalid_fields=[OUT_OF_RANGE_LABEL]) from None

    result = CalculationResult(
        total_revenue=total_revenue,
        materials_cost=materials_cost,
        platform_fee_amount=platform_fee_amount,
        venue_fee=venue_fee,
        net_profit=net_profit,
        suggested_fee_per_person=suggested,
    )
    # Every amount must survive a save and reload through coerce_number.
    if any(value is not None and coerce_number(value) is None for value in result.to_dict().values()):
        raise ValidationError(invalid_fields=[OUT_OF_RANGE_LABEL])
    return result
