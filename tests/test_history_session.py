from __future__ import annotations

import pytest

from gathering_calc.calculation import ValidationError, calculate
from gathering_calc.form_state import GatheringForm
from gathering_calc.history import delete_entry, save_entry
from gathering_calc.runtime_logging import read_runtime_events
from gathering_calc.session import GatheringSession


def test_save_entry_prepends_and_resets_form(picnic_form):
    first, _ = save_entry(picnic_form, calculate(picnic_form), [], timestamp="2026-05-01T00:00:00+00:00")
    picnic_form.title = "Hike"
    history, new_form = save_entry(picnic_form, calculate(picnic_form), first, timestamp="2026-05-02T00:00:00+00:00")

    assert [e.title for e in history] == ["Hike", "Picnic"]
    assert history[0].net_profit == 40000
    assert history[0].timestamp == "2026-05-02T00:00:00+00:00"
    assert new_form == GatheringForm()


def test_save_entry_without_result_is_noop(picnic_form):
    history, form = save_entry(picnic_form, None, [])
    assert history == []
    assert form is picnic_form


def test_delete_out_of_range_is_noop(picnic_form):
    history, _ = save_entry(picnic_form, calculate(picnic_form), [])
    assert delete_entry(history, 3) == history
    assert delete_entry(history, -1) == history


def test_session_save_then_delete_round_trip(picnic_form, memory_repo):
    session = GatheringSession.open(memory_repo)
    session.form = picnic_form
    session.calculate()
    assert session.save()
    reloaded = GatheringSession.open(memory_repo).history
    assert len(reloaded) == 1

    session.form.title = "Second"
    session.form.date = picnic_form.date
    session.form.participant_count = "4"
    session.form.fee_per_person = "10000"
    before = list(session.history)
    session.calculate()
    session.save()
    assert len(session.history) == 2

    assert session.delete_entry(0)
    assert session.history == before
    assert GatheringSession.open(memory_repo).history == before


def test_session_save_requires_result(memory_repo):
    session = GatheringSession.open(memory_repo)
    assert not session.save()
    assert memory_repo.raw_json is None


def test_session_validation_error_keeps_history_and_logs(picnic_form, memory_repo):
    session = GatheringSession.open(memory_repo)
    picnic_form.title = ""
    session.form = picnic_form
    with pytest.raises(ValidationError):
        session.calculate()
    assert session.result is None
    assert session.history == []

    events = read_runtime_events(limit=10)
    assert events[-1]["event"] == "calculation_validation_failed"
    assert events[-1]["context"]["missing"] == ["Title"]


def test_session_field_operations_route_to_form(memory_repo):
    session = GatheringSession.open(memory_repo)
    session.set_field("participant_count", "1,200")
    session.add_material()
    session.update_material(0, "unit_price", "3,000")
    session.remove_material(4)
    assert session.form.participant_count == "1200"
    assert session.form.materials[0].unit_price == "3000"

    session.reset()
    assert session.form == GatheringForm()
    assert session.result is None


def test_editing_the_form_discards_the_stale_result(picnic_form, memory_repo):
    session = GatheringSession.open(memory_repo)
    session.form = picnic_form
    session.calculate()

    session.set_field("participant_count", "10")
    assert session.result is not None

    session.set_field("participant_count", "20")
    assert session.result is None
    assert not session.save()
    assert session.history == []

    session.calculate()
    assert session.save()
    assert session.history[0].participant_count == 20
    assert session.history[0].total_revenue == 100000


def test_material_edits_discard_the_stale_result(picnic_form, memory_repo):
    session = GatheringSession.open(memory_repo)
    session.form = picnic_form
    session.calculate()
    session.update_material(0, "quantity", "3")
    session.remove_material(5)
    assert session.result is not None

    session.update_material(0, "quantity", "4")
    assert session.result is None
    session.calculate()
    session.add_material()
    assert session.result is None
    session.calculate()
    session.remove_material(1)
    assert session.result is None
