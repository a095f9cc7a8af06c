"""Newest-first calculation history list maintenance."""

from __future__ import annotations

from gathering_calc.calculation import CalculationResult
from gathering_calc.form_state import GatheringForm, reset_form
from gathering_calc.schema import HistoryEntry, build_history_entry


def save_entry(
    form: GatheringForm,
    result: CalculationResult | None,
    history: list[HistoryEntry],
    timestamp: str | None = None,
) -> tuple[list[HistoryEntry], GatheringForm]:
    """Prepend form + result to history and hand back a fresh form.

    When there is no result the history and form are returned unchanged.
    """
    if result is None:
        return list(history), form
    entry = build_history_entry(form, result, timestamp=timestamp)
    return [entry, *history], reset_form()


def delete_entry(history: list[HistoryEntry], index: int) -> list[HistoryEntry]:
    if not 0 <= index < len(history):
        return list(history)
    return [e for i, e in enumerate(history) if i != index]
