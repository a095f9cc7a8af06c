from __future__ import annotations

import math

from gathering_calc.calculation import calculate
from gathering_calc.form_state import MaterialLine
from gathering_calc.history import save_entry
from gathering_calc.input_metadata import advisory_warnings, help_with_guidance
from gathering_calc.summary import (
    cost_breakdown_figure,
    display_history_frame,
    format_currency,
    history_frame,
    net_profit_figure,
    summarize_history,
)


def test_help_with_guidance_appends_range():
    assert "Reasonable range: 0 to 30." in help_with_guidance("platform_fee_percent")
    assert help_with_guidance("title") == "Name of the gathering. Required."


def test_advisory_warnings_flag_unusual_values(picnic_form):
    assert advisory_warnings(picnic_form) == []
    picnic_form.platform_fee_percent = "45"
    picnic_form.materials.append(MaterialLine(name="Balloons"))
    warnings = advisory_warnings(picnic_form)
    assert any("Platform Fee (%) 45" in w for w in warnings)
    assert any("Balloons" in w for w in warnings)


def test_format_currency():
    assert format_currency(40000) == "₩40,000"
    assert format_currency(-5000) == "-₩5,000"
    assert format_currency(None) == ""


def _two_entry_history(picnic_form):
    history, _ = save_entry(picnic_form, calculate(picnic_form), [], timestamp="2026-05-01T00:00:00+00:00")
    picnic_form.title = "Rainy picnic"
    picnic_form.participant_count = "0"
    history, _ = save_entry(picnic_form, calculate(picnic_form), history, timestamp="2026-05-02T00:00:00+00:00")
    return history


def test_summarize_history(picnic_form):
    stats = summarize_history(_two_entry_history(picnic_form))
    assert stats["count"] == 2
    assert stats["total_revenue"] == 50000
    assert stats["total_net_profit"] == 35000
    assert stats["loss_count"] == 1
    assert stats["best_title"] == "Picnic"


def test_summarize_empty_history():
    assert summarize_history([])["count"] == 0
    assert history_frame([]).empty


def test_history_frame_margin_guards_zero_revenue(picnic_form):
    history = _two_entry_history(picnic_form)
    df = history_frame(history)
    assert math.isnan(df.loc[0, "Margin %"])
    assert df.loc[1, "Margin %"] == 80.0

    shown = display_history_frame(history)
    assert shown.loc[1, "Net Profit"] == "₩40,000"
    assert shown.loc[0, "Margin %"] == ""


def test_figures_build(picnic_form):
    waterfall = cost_breakdown_figure(calculate(picnic_form))
    assert list(waterfall.data[0].x) == ["Total Revenue", "Materials", "Venue Fee", "Platform Fee", "Net Profit"]
    bars = net_profit_figure(_two_entry_history(picnic_form))
    assert bars.layout.title.text == "Net Profit by Saved Gathering"


def test_format_currency_handles_integers_beyond_float_range():
    assert format_currency(10**400).startswith("₩1,000,")
    assert format_currency(-(10**400)).startswith("-₩1,000,")
