"""History tables, aggregate figures, and charts for the dashboard."""

from __future__ import annotations

import numpy as np
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

from gathering_calc.calculation import CalculationResult
from gathering_calc.schema import HistoryEntry


CURRENCY_SYMBOL = "₩"

HISTORY_COLUMNS = [
    "Saved",
    "Date",
    "Title",
    "Location",
    "Participants",
    "Fee per Person",
    "Total Revenue",
    "Materials Cost",
    "Venue Fee",
    "Platform Fee",
    "Net Profit",
    "Margin %",
    "Suggested Fee",
]


def format_currency(value) -> str:
    if value is None or pd.isna(value):
        return ""
    try:
        value = float(value)
    except OverflowError:
        sign = "-" if value < 0 else ""
        return f"{sign}{CURRENCY_SYMBOL}{abs(value):,}"
    if value < 0:
        return f"-{CURRENCY_SYMBOL}{abs(value):,.0f}"
    return f"{CURRENCY_SYMBOL}{value:,.0f}"


def history_frame(entries: list[HistoryEntry]) -> pd.DataFrame:
    if not entries:
        return pd.DataFrame(columns=HISTORY_COLUMNS)
    df = pd.DataFrame(
        [
            {
                "Saved": pd.to_datetime(e.timestamp, errors="coerce", utc=True),
                "Date": e.date,
                "Title": e.title,
                "Location": e.location,
                "Participants": e.participant_count,
                "Fee per Person": e.fee_per_person,
                "Total Revenue": e.total_revenue,
                "Materials Cost": e.materials_cost,
                "Venue Fee": e.venue_fee,
                "Platform Fee": e.platform_fee_amount,
                "Net Profit": e.net_profit,
                "Suggested Fee": e.suggested_fee_per_person,
            }
            for e in entries
        ]
    )
    revenue = df["Total Revenue"].astype(float).to_numpy()
    net = df["Net Profit"].astype(float).to_numpy()
    with np.errstate(divide="ignore", invalid="ignore"):
        margin = np.where(revenue != 0, 100.0 * net / revenue, np.nan)
    df["Margin %"] = np.round(margin, 1)
    return df[HISTORY_COLUMNS]


def summarize_history(entries: list[HistoryEntry]) -> dict:
    df = history_frame(entries)
    if df.empty:
        return {
            "count": 0,
            "total_revenue": 0,
            "total_net_profit": 0,
            "average_net_profit": 0.0,
            "loss_count": 0,
            "best_title": None,
        }
    net = df["Net Profit"].astype(float)
    return {
        "count": int(len(df)),
        "total_revenue": float(df["Total Revenue"].astype(float).sum()),
        "total_net_profit": float(net.sum()),
        "average_net_profit": float(net.mean()),
        "loss_count": int((net < 0).sum()),
        "best_title": str(df.loc[net.idxmax(), "Title"]),
    }


def display_history_frame(entries: list[HistoryEntry]) -> pd.DataFrame:
    out = history_frame(entries).copy()
    if out.empty:
        return out
    out["Saved"] = out["Saved"].dt.strftime("%Y-%m-%d %H:%M")
    for col in ("Fee per Person", "Total Revenue", "Materials Cost", "Venue Fee", "Platform Fee", "Net Profit", "Suggested Fee"):
        out[col] = out[col].map(format_currency)
    out["Participants"] = out["Participants"].map(lambda v: "" if v is None or pd.isna(v) else f"{float(v):,.0f}")
    out["Margin %"] = out["Margin %"].map(lambda v: "" if pd.isna(v) else f"{v:,.1f}%")
    return out


def cost_breakdown_figure(result: CalculationResult) -> go.Figure:
    fig = go.Figure(
        go.Waterfall(
            name="Profit Bridge",
            orientation="v",
            measure=["absolute", "relative", "relative", "relative", "total"],
            x=["Total Revenue", "Materials", "Venue Fee", "Platform Fee", "Net Profit"],
            y=[
                result.total_revenue,
                -result.materials_cost,
                -result.venue_fee,
                -result.platform_fee_amount,
                0,
            ],
        )
    )
    fig.update_layout(title="Revenue to Net Profit", showlegend=False)
    return fig


def net_profit_figure(entries: list[HistoryEntry]) -> go.Figure:
    df = history_frame(entries).iloc[::-1].reset_index(drop=True)
    df["Label"] = [f"{i + 1}. {title}" for i, title in enumerate(df["Title"])]
    df["Result"] = np.where(df["Net Profit"].astype(float) < 0, "Loss", "Profit")
    fig = px.bar(
        df,
        x="Label",
        y="Net Profit",
        color="Result",
        color_discrete_map={"Profit": "#2196f3", "Loss": "#f50057"},
        title="Net Profit by Saved Gathering",
    )
    fig.update_layout(xaxis_title="", yaxis_title="Net Profit")
    return fig
