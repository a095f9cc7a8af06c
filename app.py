import json
from pathlib import Path

import pandas as pd
import streamlit as st

from gathering_calc.calculation import ValidationError
from gathering_calc.form_state import NUMERIC_FORM_FIELDS, format_number, material_line_cost, preview_materials_cost, preview_platform_fee
from gathering_calc.input_metadata import FIELD_LABELS, advisory_warnings, help_with_guidance
from gathering_calc.persistence import (
    JsonFileHistoryRepository,
    configure_storage_root,
    storage_root_from_env,
    storage_root_path,
)
from gathering_calc.runtime_logging import (
    EVENT_GROUPS,
    append_runtime_event,
    clear_runtime_events,
    configure_log_root,
    event_group_counts,
    install_global_exception_logging,
    read_runtime_events,
    runtime_log_path,
)
from gathering_calc.session import GatheringSession
from gathering_calc.summary import (
    cost_breakdown_figure,
    display_history_frame,
    format_currency,
    net_profit_figure,
    summarize_history,
)


install_global_exception_logging()


SESSION_KEY = "gathering_session"
FLASH_KEY = "_flash_messages"
FORM_WIDGET_FIELDS = [
    "title",
    "date",
    "location",
    "participant_count",
    "fee_per_person",
    "venue_fee",
    "platform_fee_percent",
    "target_profit",
]
MATERIAL_WIDGET_FIELDS = ["name", "unit_price", "quantity"]


def _form_key(field: str) -> str:
    return f"form_{field}"


def _material_key(index: int, field: str) -> str:
    return f"material_{index}_{field}"


def _session() -> GatheringSession:
    return st.session_state[SESSION_KEY]


def _flash(level: str, message: str) -> None:
    st.session_state.setdefault(FLASH_KEY, []).append((level, message))


def _widget_value(field: str, value):
    if field in NUMERIC_FORM_FIELDS or field in {"unit_price", "quantity"}:
        return format_number(value)
    return value


def _sync_widgets_from_form() -> None:
    """Copy the session form into widget state after structural changes."""
    form = _session().form
    for field in FORM_WIDGET_FIELDS:
        st.session_state[_form_key(field)] = _widget_value(field, getattr(form, field))
    for idx, line in enumerate(form.materials):
        for field in MATERIAL_WIDGET_FIELDS:
            st.session_state[_material_key(idx, field)] = _widget_value(field, getattr(line, field))
    stale = [k for k in st.session_state.keys() if str(k).startswith("material_")]
    for key in stale:
        idx = int(str(key).split("_")[1])
        if idx >= len(form.materials):
            del st.session_state[key]


def _on_field_change(field: str) -> None:
    key = _form_key(field)
    session = _session()
    session.set_field(field, st.session_state[key])
    if field in NUMERIC_FORM_FIELDS:
        st.session_state[key] = format_number(getattr(session.form, field))


def _on_material_change(index: int, field: str) -> None:
    key = _material_key(index, field)
    session = _session()
    session.update_material(index, field, st.session_state[key])
    if index < len(session.form.materials) and field != "name":
        st.session_state[key] = format_number(getattr(session.form.materials[index], field))


def _on_add_material() -> None:
    _session().add_material()
    _sync_widgets_from_form()


def _on_remove_material(index: int) -> None:
    _session().remove_material(index)
    _sync_widgets_from_form()


def _on_calculate() -> None:
    try:
        _session().calculate()
    except ValidationError as exc:
        _flash("error", str(exc))


def _on_save() -> None:
    session = _session()
    title = session.form.title.strip()
    try:
        saved = session.save()
    except OSError as exc:
        _flash("error", f"Could not save the calculation: {exc}")
        return
    if saved:
        _sync_widgets_from_form()
        _flash("success", f"Saved calculation: {title}")


def _on_reset() -> None:
    _session().reset()
    _sync_widgets_from_form()


def _on_delete_entry(index: int) -> None:
    session = _session()
    title = session.history[index].title if 0 <= index < len(session.history) else ""
    try:
        deleted = session.delete_entry(index)
    except OSError as exc:
        _flash("error", f"Could not delete the entry: {exc}")
        return
    if deleted:
        _flash("success", f"Deleted: {title}")


def _numeric_input(field: str, placeholder: str = "0") -> None:
    st.text_input(
        FIELD_LABELS[field],
        key=_form_key(field),
        placeholder=placeholder,
        help=help_with_guidance(field),
        on_change=_on_field_change,
        args=(field,),
    )


def _render_result(session: GatheringSession) -> None:
    result = session.result
    st.subheader("Result")
    r1, r2, r3 = st.columns(3)
    r1.metric("Total Revenue", format_currency(result.total_revenue))
    r2.metric("Materials Cost", format_currency(result.materials_cost))
    r3.metric("Venue Fee", format_currency(result.venue_fee))
    r4, r5, _ = st.columns(3)
    r4.metric("Platform Fee", format_currency(result.platform_fee_amount))
    r5.metric("Net Profit", format_currency(result.net_profit))
    if result.suggested_fee_per_person is not None:
        st.info(
            f"Fee per person needed to reach the target profit: {format_currency(result.suggested_fee_per_person)}"
        )
    st.plotly_chart(cost_breakdown_figure(result), width="stretch")
    st.button("Save Result", type="primary", key="save_result", on_click=_on_save)


def _render_history_entry(index: int, entry) -> None:
    with st.container(border=True):
        head, action = st.columns([5, 1])
        date_text = entry.date.isoformat() if entry.date else "No date"
        head.markdown(f"**{entry.title or 'Untitled'}**  \n{date_text}" + (f" · {entry.location}" if entry.location else ""))
        action.button("Delete", key=f"delete_entry_{index}", on_click=_on_delete_entry, args=(index,))

        c1, c2 = st.columns(2)
        c1.write(f"Total revenue: {format_currency(entry.total_revenue)}")
        c2.write(f"Net profit: {format_currency(entry.net_profit)}")
        participants = "" if entry.participant_count is None else f"{entry.participant_count:,}"
        c1.caption(f"Participants: {participants}")
        c2.caption(f"Fee per person: {format_currency(entry.fee_per_person)}")

        if entry.materials:
            with st.expander(f"Materials - {format_currency(entry.materials_cost)}", expanded=False):
                for material in entry.materials:
                    qty = "" if material.quantity is None else f"{material.quantity:,}"
                    st.write(f"{material.name or 'Unnamed'} ({qty}) - {format_currency(material.cost)}")
        st.caption(
            f"Venue fee: {format_currency(entry.venue_fee)} · Platform fee: {format_currency(entry.platform_fee_amount)}"
        )
        if entry.suggested_fee_per_person is not None:
            st.caption(f"Suggested fee per person: {format_currency(entry.suggested_fee_per_person)}")


st.set_page_config(page_title="Gathering Profit Calculator", layout="centered")
st.title("Gathering Profit Calculator")
st.caption("Estimate net profit for a one-time gathering and the fee needed to reach a target.")

if SESSION_KEY not in st.session_state:
    # The history store and the runtime log share one root.
    configure_log_root(configure_storage_root(storage_root_from_env()))
    st.session_state[SESSION_KEY] = GatheringSession.open(JsonFileHistoryRepository())
    _sync_widgets_from_form()
st.session_state.setdefault("runtime_log_limit", 50)
st.session_state.setdefault("runtime_log_group", "All")

session = _session()

for level, message in st.session_state.pop(FLASH_KEY, []):
    getattr(st, level)(message)

with st.expander("How to use this calculator", expanded=False):
    st.markdown(
        "1. Enter the participants and fee to see the **expected total revenue**.\n"
        "2. Add materials, venue and platform fees to see the **actual net profit**.\n"
        "3. Set a target profit to get a **suggested fee per person**."
    )

st.subheader("Gathering")
st.text_input(
    FIELD_LABELS["title"],
    key=_form_key("title"),
    help=help_with_guidance("title"),
    on_change=_on_field_change,
    args=("title",),
)
d_col, l_col = st.columns(2)
d_col.date_input(
    FIELD_LABELS["date"],
    value=None,
    key=_form_key("date"),
    help=help_with_guidance("date"),
    on_change=_on_field_change,
    args=("date",),
)
l_col.text_input(
    FIELD_LABELS["location"],
    key=_form_key("location"),
    help=help_with_guidance("location"),
    on_change=_on_field_change,
    args=("location",),
)
p_col, f_col = st.columns(2)
with p_col:
    _numeric_input("participant_count")
with f_col:
    _numeric_input("fee_per_person")

st.subheader("Materials")
for idx in range(len(session.form.materials)):
    name_col, price_col, qty_col, remove_col = st.columns([3, 2, 2, 1], vertical_alignment="bottom")
    name_col.text_input(
        "Material",
        key=_material_key(idx, "name"),
        on_change=_on_material_change,
        args=(idx, "name"),
    )
    price_col.text_input(
        "Unit Price",
        key=_material_key(idx, "unit_price"),
        placeholder="0",
        on_change=_on_material_change,
        args=(idx, "unit_price"),
    )
    qty_col.text_input(
        "Quantity",
        key=_material_key(idx, "quantity"),
        placeholder="0",
        on_change=_on_material_change,
        args=(idx, "quantity"),
    )
    remove_col.button("Remove", key=f"remove_material_{idx}", on_click=_on_remove_material, args=(idx,))
    line_cost = material_line_cost(session.form.materials[idx])
    if line_cost:
        name_col.caption(f"Line total: {format_currency(line_cost)}")
st.button("Add Material", key="add_material", on_click=_on_add_material)
if session.form.materials:
    st.caption(f"Total materials: {format_currency(preview_materials_cost(session.form))}")

st.subheader("Other Costs and Target")
v_col, pf_col = st.columns(2)
with v_col:
    _numeric_input("venue_fee")
with pf_col:
    _numeric_input("platform_fee_percent")
    platform_preview = preview_platform_fee(session.form) if session.form.platform_fee_percent else None
    if platform_preview is not None:
        st.caption(f"Platform fee: {format_currency(platform_preview)}")
_numeric_input("target_profit", placeholder="Optional")

for notice in advisory_warnings(session.form):
    st.caption(f"Note: {notice}")

calc_col, reset_col = st.columns([3, 1])
calc_col.button("Calculate", type="primary", key="calculate", on_click=_on_calculate)
reset_col.button("Clear Form", key="reset_form", on_click=_on_reset)

if session.result is not None:
    _render_result(session)

st.divider()
st.subheader("History")
if not session.history:
    st.caption("No saved calculations yet.")
else:
    stats = summarize_history(session.history)
    h1, h2, h3 = st.columns(3)
    h1.metric("Saved Gatherings", stats["count"])
    h2.metric("Total Net Profit", format_currency(stats["total_net_profit"]))
    h3.metric("Average Net Profit", format_currency(stats["average_net_profit"]))
    for idx, entry in enumerate(session.history):
        _render_history_entry(idx, entry)
    with st.expander("History Table and Chart", expanded=False):
        st.dataframe(display_history_frame(session.history), width="stretch", hide_index=True)
        st.plotly_chart(net_profit_figure(session.history), width="stretch")

with st.sidebar:
    st.subheader("Runtime Diagnostics")
    log_path = Path(runtime_log_path())
    st.caption(f"History store: `{storage_root_path()}`")
    st.caption(f"Runtime log file: `{log_path}`")
    st.number_input(
        "Recent runtime log rows",
        min_value=10,
        max_value=1000,
        step=10,
        key="runtime_log_limit",
        help="Use this log to diagnose user-reported problems.",
    )
    st.selectbox("Event type", ["All", *EVENT_GROUPS], key="runtime_log_group")
    log_limit = int(st.session_state["runtime_log_limit"])
    stored_data_problems = event_group_counts(read_runtime_events(limit=log_limit))["Stored data"]
    if stored_data_problems:
        st.warning(
            f"{stored_data_problems} history load problem(s) logged. Filter by 'Stored data' for details."
        )
    selected_group = st.session_state["runtime_log_group"]
    runtime_events = read_runtime_events(limit=log_limit, group=None if selected_group == "All" else selected_group)
    if runtime_events:
        runtime_df = pd.DataFrame(runtime_events)
        runtime_df["context"] = runtime_df["context"].map(lambda c: json.dumps(c, ensure_ascii=False, default=str))
        preferred_cols = ["timestamp_utc", "level", "event", "message", "exception_type", "context"]
        st.dataframe(
            runtime_df[[c for c in preferred_cols if c in runtime_df.columns]].iloc[::-1],
            width="stretch",
            hide_index=True,
        )
        if st.button("Clear Runtime Log", key="clear_runtime_log"):
            try:
                clear_runtime_events()
            except OSError as exc:
                append_runtime_event(
                    level="ERROR",
                    event="runtime_log_clear_failed",
                    message="Failed to clear runtime log file.",
                    context={"path": str(log_path)},
                    exc=exc,
                )
                st.warning("Could not clear runtime log file.")
            else:
                st.rerun()
    else:
        st.caption("No runtime events logged yet.")
