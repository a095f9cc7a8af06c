"""In-progress gathering form state and digit-grouping display helpers."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import date


NUMERIC_FORM_FIELDS = {
    "participant_count",
    "fee_per_person",
    "venue_fee",
    "platform_fee_percent",
    "target_profit",
}
TEXT_FORM_FIELDS = {"title", "location"}
FORM_FIELDS = NUMERIC_FORM_FIELDS | TEXT_FORM_FIELDS | {"date"}

MATERIAL_NUMERIC_FIELDS = {"unit_price", "quantity"}
MATERIAL_FIELDS = MATERIAL_NUMERIC_FIELDS | {"name"}

_GROUPING_RE = re.compile(r"\B(?=(\d{3})+(?!\d))")


@dataclass
class MaterialLine:
    name: str = ""
    unit_price: str = ""
    quantity: str = ""


@dataclass
class GatheringForm:
    title: str = ""
    date: date | None = None
    location: str = ""
    participant_count: str = ""
    fee_per_person: str = ""
    materials: list[MaterialLine] = field(default_factory=list)
    venue_fee: str = ""
    platform_fee_percent: str = ""
    target_profit: str = ""


def format_number(value) -> str:
    """Render a plain numeric string with thousands separators for display."""
    if value is None:
        return ""
    text = str(value).strip()
    if not text:
        return ""
    sign = ""
    if text[0] in "+-":
        sign, text = text[0], text[1:]
    whole, dot, frac = text.partition(".")
    if not whole.isdigit():
        # exponent or non-numeric text is left as typed
        return f"{sign}{text}"
    return f"{sign}{_GROUPING_RE.sub(',', whole)}{dot}{frac}"


def parse_number(value) -> str:
    """Strip display grouping back to the raw numeric string."""
    if value is None:
        return ""
    return str(value).replace(",", "").strip()


def coerce_number(value) -> int | float | None:
    """Parse a stored numeric string, returning None when it is blank or not a number."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        num = value
    else:
        txt = parse_number(value)
        if not txt:
            return None
        try:
            num = float(txt)
        except ValueError:
            return None
    try:
        if not math.isfinite(num):
            return None
    except OverflowError:
        # int too large to be represented as a float
        return None
    return whole_number(num)


def whole_number(value: float) -> int | float:
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def coerce_or_zero(value) -> int | float:
    num = coerce_number(value)
    return 0 if num is None else num


def set_field(form: GatheringForm, name: str, value) -> GatheringForm:
    if name not in FORM_FIELDS:
        raise ValueError(f"Unsupported form field: {name}")
    if name in NUMERIC_FORM_FIELDS:
        value = parse_number(value)
    elif name in TEXT_FORM_FIELDS:
        value = "" if value is None else str(value)
    setattr(form, name, value)
    return form


def add_material(form: GatheringForm) -> GatheringForm:
    form.materials.append(MaterialLine())
    return form


def remove_material(form: GatheringForm, index: int) -> GatheringForm:
    if 0 <= index < len(form.materials):
        del form.materials[index]
    return form


def update_material(form: GatheringForm, index: int, field_name: str, value) -> GatheringForm:
    if field_name not in MATERIAL_FIELDS:
        raise ValueError(f"Unsupported material field: {field_name}")
    if not 0 <= index < len(form.materials):
        return form
    if field_name in MATERIAL_NUMERIC_FIELDS:
        value = parse_number(value)
    else:
        value = "" if value is None else str(value)
    setattr(form.materials[index], field_name, value)
    return form


def reset_form() -> GatheringForm:
    return GatheringForm()


def material_line_cost(line: MaterialLine) -> int | float:
    price = coerce_number(line.unit_price)
    quantity = coerce_number(line.quantity)
    if price is None or quantity is None:
        return 0
    return whole_number(price * quantity)


def preview_materials_cost(form: GatheringForm) -> int | float:
    return whole_number(sum(material_line_cost(line) for line in form.materials))


def preview_platform_fee(form: GatheringForm) -> int | None:
    """Live platform fee preview; None when the inputs are too large to evaluate."""
    revenue = coerce_or_zero(form.participant_count) * coerce_or_zero(form.fee_per_person)
    try:
        return math.floor(revenue * coerce_or_zero(form.platform_fee_percent) / 100)
    except (OverflowError, ValueError):
        return None
