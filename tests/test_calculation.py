from __future__ import annotations

import pytest

from gathering_calc.calculation import OUT_OF_RANGE_LABEL, ValidationError, calculate, suggest_fee
from gathering_calc.form_state import MaterialLine


def test_picnic_example_breakdown(picnic_form):
    result = calculate(picnic_form)
    assert result.total_revenue == 50000
    assert result.materials_cost == 3000
    assert result.platform_fee_amount == 5000
    assert result.venue_fee == 2000
    assert result.net_profit == 40000
    assert result.suggested_fee_per_person is None


def test_target_profit_above_net_suggests_fee(picnic_form):
    picnic_form.target_profit = "45000"
    result = calculate(picnic_form)
    assert result.suggested_fee_per_person == 5500


def test_target_profit_already_met_has_no_suggestion(picnic_form):
    picnic_form.target_profit = "40000"
    assert calculate(picnic_form).suggested_fee_per_person is None


def test_suggested_fee_rounds_up():
    assert suggest_fee(5000, 3, 0, 1000) == 5334


def test_zero_participants_skips_suggestion(picnic_form):
    picnic_form.participant_count = "0"
    picnic_form.target_profit = "45000"
    result = calculate(picnic_form)
    assert result.total_revenue == 0
    assert result.platform_fee_amount == 0
    assert result.net_profit == -5000
    assert result.suggested_fee_per_person is None


def test_missing_title_raises_validation_error(picnic_form):
    picnic_form.title = "   "
    with pytest.raises(ValidationError) as excinfo:
        calculate(picnic_form)
    assert excinfo.value.missing_fields == ["Title"]


def test_all_missing_required_fields_are_reported(picnic_form):
    picnic_form.date = None
    picnic_form.participant_count = ""
    picnic_form.fee_per_person = ""
    with pytest.raises(ValidationError) as excinfo:
        calculate(picnic_form)
    assert excinfo.value.missing_fields == ["Date", "Participants", "Fee per Person"]


def test_unparsable_required_numbers_are_invalid(picnic_form):
    picnic_form.participant_count = "ten"
    picnic_form.fee_per_person = "-5"
    with pytest.raises(ValidationError) as excinfo:
        calculate(picnic_form)
    assert excinfo.value.invalid_fields == ["Participants", "Fee per Person"]


def test_optional_fields_coerce_to_zero(picnic_form):
    picnic_form.venue_fee = "n/a"
    picnic_form.platform_fee_percent = ""
    picnic_form.target_profit = "lots"
    picnic_form.materials = [
        MaterialLine(name="Mats", unit_price="1000", quantity="3"),
        MaterialLine(name="Tape", unit_price="", quantity="2"),
        MaterialLine(name="Glue", unit_price="x", quantity="1"),
    ]
    result = calculate(picnic_form)
    assert result.materials_cost == 3000
    assert result.venue_fee == 0
    assert result.platform_fee_amount == 0
    assert result.net_profit == 47000
    assert result.suggested_fee_per_person is None


def test_platform_fee_is_floored(picnic_form):
    picnic_form.fee_per_person = "3333"
    picnic_form.platform_fee_percent = "3.3"
    result = calculate(picnic_form)
    assert result.total_revenue == 33330
    assert result.platform_fee_amount == 1099


def test_net_profit_can_be_negative(picnic_form):
    picnic_form.venue_fee = "100000"
    result = calculate(picnic_form)
    assert result.net_profit == -58000


def test_amounts_beyond_float_range_raise_validation_error(picnic_form):
    picnic_form.participant_count = "1000"
    picnic_form.fee_per_person = "1e308"
    picnic_form.platform_fee_percent = "100"
    with pytest.raises(ValidationError) as excinfo:
        calculate(picnic_form)
    assert excinfo.value.invalid_fields == [OUT_OF_RANGE_LABEL]


def test_result_that_could_not_be_reloaded_is_rejected(picnic_form):
    picnic_form.participant_count = "1000"
    picnic_form.fee_per_person = "1e308"
    picnic_form.platform_fee_percent = ""
    with pytest.raises(ValidationError) as excinfo:
        calculate(picnic_form)
    assert excinfo.value.invalid_fields == [OUT_OF_RANGE_LABEL]


def test_infinite_material_cost_is_rejected(picnic_form):
    picnic_form.materials = [MaterialLine(name="Gold", unit_price="1.5", quantity="1.7e308")]
    with pytest.raises(ValidationError, match="too large"):
        calculate(picnic_form)
