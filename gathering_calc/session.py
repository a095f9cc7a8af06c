"""Per-user calculator session: form, latest result, and persisted history."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field

from gathering_calc import form_state
from gathering_calc.calculation import CalculationResult, ValidationError, calculate
from gathering_calc.form_state import GatheringForm
from gathering_calc.history import delete_entry, save_entry
from gathering_calc.persistence import HistoryRepository
from gathering_calc.runtime_logging import append_runtime_event
from gathering_calc.schema import HistoryEntry


@dataclass
class GatheringSession:
    repository: HistoryRepository
    form: GatheringForm = field(default_factory=GatheringForm)
    result: CalculationResult | None = None
    history: list[HistoryEntry] = field(default_factory=list)

    @classmethod
    def open(cls, repository: HistoryRepository) -> "GatheringSession":
        return cls(repository=repository, history=repository.load())

    def set_field(self, name: str, value) -> None:
        self._edit(form_state.set_field, name, value)

    def add_material(self) -> None:
        self._edit(form_state.add_material)

    def remove_material(self, index: int) -> None:
        self._edit(form_state.remove_material, index)

    def update_material(self, index: int, field_name: str, value) -> None:
        self._edit(form_state.update_material, index, field_name, value)

    def _edit(self, operation, *args) -> None:
        before = copy.deepcopy(self.form)
        operation(self.form, *args)
        if self.form != before:
            # A result only describes the form it was calculated from.
            self.result = None

    def reset(self) -> None:
        self.form = form_state.reset_form()
        self.result = None

    def calculate(self) -> CalculationResult:
        try:
            self.result = calculate(self.form)
        except ValidationError as exc:
            self.result = None
            append_runtime_event(
                level="WARNING",
                event="calculation_validation_failed",
                message=str(exc),
                context={"missing": exc.missing_fields, "invalid": exc.invalid_fields},
            )
            raise
        return self.result

    def save(self, timestamp: str | None = None) -> bool:
        """Persist the current result; returns False when there is nothing to save."""
        if self.result is None:
            return False
        new_history, new_form = save_entry(self.form, self.result, self.history, timestamp=timestamp)
        self.repository.save(new_history)
        self.history = new_history
        self.form = new_form
        self.result = None
        append_runtime_event(
            level="INFO",
            event="history_entry_saved",
            message=f"Saved calculation for {new_history[0].title!r}.",
            context={"entries": len(new_history)},
        )
        return True

    def delete_entry(self, index: int) -> bool:
        if not 0 <= index < len(self.history):
            return False
        new_history = delete_entry(self.history, index)
        self.repository.save(new_history)
        removed = self.history[index]
        self.history = new_history
        append_runtime_event(
            level="INFO",
            event="history_entry_deleted",
            message=f"Deleted calculation for {removed.title!r}.",
            context={"index": index, "entries": len(new_history)},
        )
        return True
