from datetime import tzinfo
from typing import Dict, List, Optional, Sequence, Tuple

import altair as alt
import pandas as pd
import streamlit as st

from records.codec import EyeType
from records.measurements import Measurement
from records.series import METRICS, NORMAL_RANGES, value_range
from session.i18n import LocalizationManager


def settings_row(icon: str, title: str, caption: str = "") -> None:
    c1, c2 = st.columns([1, 12])
    with c1:
        st.markdown(f"### {icon}")
    with c2:
        st.markdown(f"**{title}**")
        if caption:
            st.caption(caption)


def value_tile(label: str, value: Optional[float], unit: str = "", decimals: int = 1, delta: Optional[float] = None) -> None:
    shown = "—" if value is None else f"{value:.{decimals}f}"
    st.metric(label, f"{shown} {unit}".strip(), delta=None if delta is None else f"{delta:+.{decimals}f}")


def eye_toggle(i18n: LocalizationManager, key: str, default: EyeType = EyeType.OD) -> EyeType:
    labels = {
        EyeType.OD: f"{EyeType.OD.short_name} · {i18n.localized('right_eye')}",
        EyeType.OS: f"{EyeType.OS.short_name} · {i18n.localized('left_eye')}",
    }
    options = [EyeType.OD, EyeType.OS]
    return st.radio(
        "Eye",
        options,
        index=options.index(default),
        format_func=lambda e: labels[e],
        horizontal=True,
        key=key,
        label_visibility="collapsed",
    )


def _fmt_dt(v, tz: Optional[tzinfo] = None) -> str:
    if v is None:
        return "—"
    if tz is not None and getattr(v, "tzinfo", None) is not None:
        v = v.astimezone(tz)
    return v.strftime("%Y-%m-%d %H:%M")


def measurement_row(
    record: Measurement,
    fields: Sequence[Tuple[str, str]],
    i18n: LocalizationManager,
    key: str,
    tz: Optional[tzinfo] = None,
) -> Optional[str]:
    """
    One expandable row per record. Returns "edit" or "delete" when the matching
    button was pressed on this run.
    """
    title = f"{_fmt_dt(record.date, tz)} · {record.eye.short_name}"
    if record.is_edited:
        title += f" · {i18n.localized('edited')}"
    action = None
    with st.expander(title):
        rows: List[Dict[str, str]] = []
        for attr, label in fields:
            v = getattr(record, attr, None)
            if isinstance(v, bool):
                shown = "✓" if v else "—"
            elif hasattr(v, "strftime"):
                shown = _fmt_dt(v, tz)
            else:
                shown = "—" if v is None or v == "" else str(v)
            rows.append({"field": i18n.localized(label), "value": shown})
        if record.notes:
            rows.append({"field": i18n.localized("notes"), "value": record.notes})
        st.dataframe(pd.DataFrame(rows), use_container_width=True, hide_index=True)
        c1, c2 = st.columns(2)
        with c1:
            if st.button(i18n.localized("update"), key=f"{key}_edit"):
                action = "edit"
        with c2:
            if st.button(i18n.localized("delete"), key=f"{key}_delete", type="secondary"):
                action = "delete"
    return action


def trend_chart(df: pd.DataFrame, metric: str, height: int = 260) -> None:
    """Line chart for one metric with the normal range shaded when one is defined."""
    meta = METRICS.get(metric, {"label": metric, "unit": ""})
    if df.empty or metric not in df.columns:
        st.info(f"No {meta['label']} data yet.")
        return

    dfr = df.reset_index()[["date", metric]].copy()
    dfr[metric] = pd.to_numeric(dfr[metric], errors="coerce")
    dfr = dfr.dropna(subset=[metric])
    if dfr.empty:
        st.info(f"No {meta['label']} data yet.")
        return

    values = dfr[metric].tolist()
    normal = NORMAL_RANGES.get(metric)
    if metric in ("meanDefect",):
        lo, hi = min(values + [normal[0] if normal else 0]), max(values + [normal[1] if normal else 0])
        pad = max((hi - lo) * 0.3, 1.0)
        y_domain = [lo - pad, hi + pad]
    else:
        y_domain = list(value_range(values))

    title = f"{meta['label']} ({meta['unit']})" if meta["unit"] else meta["label"]
    line = (
        alt.Chart(dfr)
        .mark_line(point=True)
        .encode(
            x=alt.X("date:T", title=None),
            y=alt.Y(f"{metric}:Q", title=title, scale=alt.Scale(domain=y_domain)),
            tooltip=["date:T", alt.Tooltip(f"{metric}:Q", title=meta["label"])],
        )
        .properties(height=height)
    )
    # first value in the window
    baseline = (
        alt.Chart(pd.DataFrame([{"baseline": float(values[0])}]))
        .mark_rule(strokeDash=[6, 4], opacity=0.55, color="#9aa0a6")
        .encode(y=alt.Y("baseline:Q"), tooltip=["baseline:Q"])
    )
    if normal is not None:
        band = (
            alt.Chart(pd.DataFrame([{"lo": normal[0], "hi": normal[1]}]))
            .mark_rect(opacity=0.12, color="#4437EB")
            .encode(y="lo:Q", y2="hi:Q")
        )
        st.altair_chart((band + baseline + line).interactive(), use_container_width=True)
        return
    st.altair_chart((baseline + line).interactive(), use_container_width=True)
