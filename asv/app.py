import logging
import sys
from dataclasses import dataclass
from datetime import date, datetime, time
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

import streamlit as st
from firebase_admin import firestore

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))

from asv.components import eye_toggle, measurement_row, settings_row, trend_chart, value_tile  # noqa: E402
from main import configure_logging, init_firestore, load_env_file, local_timezone, require_env  # noqa: E402
from records.codec import EyeType  # noqa: E402
from records.errors import AuthError, OperationFailed  # noqa: E402
from records.measurements import MEASUREMENT_TYPES, Measurement, TransplantMeasurement  # noqa: E402
from records.series import (  # noqa: E402
    METRICS,
    NORMAL_RANGES,
    glaucoma_frame,
    in_normal_range,
    injection_timeline,
    to_frame,
    upcoming_reminder,
    vision_history,
)
from reminders.scheduler import WEEKDAY_NAMES, Frequency, NotificationInbox, ReminderScheduler  # noqa: E402
from session.auth import AuthManager  # noqa: E402
from session.i18n import Language, LocalizationManager  # noqa: E402
from session.prefs import Preferences  # noqa: E402
from store.measurements import MeasurementStore  # noqa: E402
from store.users import UserStore  # noqa: E402

logger = logging.getLogger("app")

# (attribute, string key, widget) per record kind, in display order.
FORM_FIELDS: Dict[str, List[Tuple[str, str, str]]] = {
    "glaucoma": [
        ("iop", "iop", "float"),
        ("iopTime", "iop_time", "time"),
        ("meanDefect", "mean_defect", "float"),
        ("patternStandardDeviation", "pattern_standard_deviation", "float"),
        ("rnflOverall", "rnfl", "int"),
        ("rnflSuperior", "rnfl_superior", "int"),
        ("rnflInferior", "rnfl_inferior", "int"),
        ("macularGCC", "macular_gcc", "int"),
        ("hasVisualFieldChange", "visual_field_change", "bool"),
        ("hasRNFLChange", "rnfl_change", "bool"),
        ("hasGlaucomaFamilyHistory", "family_history", "bool"),
        ("hasLasikSurgery", "lasik_surgery", "bool"),
        ("newEyeDrops", "new_eye_drops", "bool"),
        ("eyeDropsDetails", "eye_drops_details", "opt_text"),
    ],
    "retina": [
        ("medication", "medication", "text"),
        ("isNewMedication", "new_medication", "bool"),
        ("vision", "vision", "text"),
        ("crt", "crt", "float"),
        ("reminderDate", "reminder_date", "opt_date"),
    ],
    "keratoconus": [
        ("k2", "k2", "float"),
        ("kMax", "k_max", "float"),
        ("thinnestPachymetry", "thinnest_pachymetry", "int"),
        ("thickestEpithelialSpot", "thickest_epithelial_spot", "float"),
        ("thinnestEpithelialSpot", "thinnest_epithelial_spot", "int"),
        ("keratoconusRiskScore", "risk_score", "int"),
        ("documentedCylindricalIncrease", "cylindrical_increase", "bool"),
        ("subjectiveVisionLoss", "vision_loss", "bool"),
        ("hasCrossLinking", "cross_linking", "bool"),
    ],
    "transplant": [
        ("ecd", "ecd", "float"),
        ("pachymetry", "pachymetry", "int"),
        ("iop", "iop", "float"),
        ("isRegraft", "regraft", "bool"),
        ("steroidRegimen", "steroid_regimen", "opt_text"),
        ("medicationName", "medication_name", "opt_text"),
    ],
}

PAGE_TITLES = {
    "glaucoma": "glaucoma",
    "retina": "retinal_injections",
    "keratoconus": "keratoconus",
    "transplant": "corneal_transplant",
}

CHART_METRICS = {
    "glaucoma": ["iop", "meanDefect", "rnflOverall", "patternStandardDeviation"],
    "retina": ["crt"],
    "keratoconus": ["kMax", "thinnestPachymetry"],
    "transplant": ["ecd", "pachymetry"],
}


@dataclass
class Services:
    db: firestore.Client
    measurements: MeasurementStore
    users: UserStore
    prefs: Preferences
    i18n: LocalizationManager
    inbox: NotificationInbox
    reminders: ReminderScheduler
    tz: ZoneInfo


@st.cache_resource
def _services() -> Services:
    load_env_file(ROOT / ".env")
    configure_logging()
    db = init_firestore()
    tz = local_timezone()
    prefs = Preferences()
    i18n = LocalizationManager(prefs)
    inbox = NotificationInbox()
    reminders = ReminderScheduler(prefs, inbox, language=lambda: i18n.current_language)
    reminders.start()
    logger.info("services_ready prefs=%s timezone=%s", prefs.path, tz.key)
    return Services(
        db=db,
        measurements=MeasurementStore(db),
        users=UserStore(db),
        prefs=prefs,
        i18n=i18n,
        inbox=inbox,
        reminders=reminders,
        tz=tz,
    )


def _auth() -> AuthManager:
    if "auth" not in st.session_state:
        svc = _services()
        st.session_state["auth"] = AuthManager(require_env("FIREBASE_WEB_API_KEY"), svc.users, svc.prefs)
    return st.session_state["auth"]


def root_view(auth: AuthManager) -> str:
    """Which top-level screen to show: onboarding first, then the app or the login screen."""
    if not auth.has_completed_onboarding:
        return "onboarding"
    if auth.is_signed_in:
        return "main"
    return "login"


@st.cache_data(ttl=30, show_spinner=False)
def load_records(kind: str, user_id: str) -> List[Measurement]:
    store = _services().measurements
    return store.list(MEASUREMENT_TYPES[kind], user_id, descending=kind == "glaucoma")


def _at(day: date, t: time, tz: ZoneInfo) -> datetime:
    """Wall-clock date and time entered in zone `tz`."""
    return datetime.combine(day, t).replace(tzinfo=tz)


def _field_input(label: str, widget: str, current: Any, key: str, tz: ZoneInfo) -> Any:
    if widget == "float":
        return st.number_input(label, value=float(current) if current is not None else 0.0, step=0.1, key=key)
    if widget == "int":
        return int(st.number_input(label, value=int(current) if current is not None else 0, step=1, key=key))
    if widget == "bool":
        return st.checkbox(label, value=bool(current), key=key)
    if widget in ("text", "opt_text"):
        return st.text_input(label, value=current or "", key=key).strip()
    if widget == "time":
        return st.time_input(label, value=(current or datetime.now(tz)).astimezone(tz).time(), key=key)
    if widget == "opt_date":
        on = st.checkbox(label, value=current is not None, key=f"{key}_on")
        day = st.date_input(label, value=(current or datetime.now(tz)).astimezone(tz).date(), key=key, label_visibility="collapsed")
        return day if on else None
    raise ValueError(f"Unknown widget: {widget}")


def _record_form(kind: str, i18n: LocalizationManager, user_id: str, existing: Optional[Measurement] = None) -> Optional[Measurement]:
    """
    Add/edit form for one record kind. Returns the record built from the
    submitted values, or None when the form was not submitted or is incomplete.
    """
    cls = MEASUREMENT_TYPES[kind]
    tz = _services().tz
    when = existing.date.astimezone(tz) if existing else datetime.now(tz)
    form_key = f"form_{kind}_{existing.id if existing else 'new'}"
    with st.form(form_key, clear_on_submit=existing is None):
        c1, c2 = st.columns(2)
        with c1:
            visit_day = st.date_input(
                i18n.localized("visit_date"), value=when.date(), key=f"{form_key}_date"
            )
        with c2:
            eye = eye_toggle(i18n, key=f"{form_key}_eye", default=existing.eye if existing else EyeType.OD)

        raw: Dict[str, Any] = {}
        for attr, label, widget in FORM_FIELDS[kind]:
            current = getattr(existing, attr) if existing else None
            raw[attr] = _field_input(i18n.localized(label), widget, current, f"{form_key}_{attr}", tz)
        notes = st.text_area(i18n.localized("notes"), value=(existing.notes or "") if existing else "", key=f"{form_key}_notes")
        submitted = st.form_submit_button(i18n.localized("update" if existing else "save"), type="primary")

    if not submitted:
        return None

    values: Dict[str, Any] = {}
    for attr, label, widget in FORM_FIELDS[kind]:
        v = raw[attr]
        if widget == "text" and not v:
            st.warning(f"{i18n.localized(label)}: required")
            return None
        if widget == "opt_text":
            v = v or None
        elif widget == "time":
            v = _at(visit_day, v, tz)
        elif widget == "opt_date":
            v = _at(v, time(9, 0), tz) if v is not None else None
        values[attr] = v

    visit_time = when.time()
    return cls(
        id=existing.id if existing else None,
        userId=user_id,
        date=_at(visit_day, visit_time, tz),
        eye=eye,
        notes=notes.strip() or None,
        edited=existing.edited if existing else None,
        **values,
    )


def _latest_tiles(kind: str, records: List[Measurement]) -> None:
    if not records:
        return
    ordered = sorted(records, key=lambda r: r.date)
    last = ordered[-1]
    prev = ordered[-2] if len(ordered) > 1 else None
    metrics = CHART_METRICS[kind]
    cols = st.columns(len(metrics))
    for col, m in zip(cols, metrics):
        meta = METRICS.get(m, {"label": m, "unit": ""})
        v = getattr(last, m)
        delta = (v - getattr(prev, m)) if prev is not None else None
        with col:
            value_tile(meta["label"], v, meta["unit"], decimals=0 if isinstance(v, int) else 1, delta=delta)
            ok = in_normal_range(m, v)
            if ok is False:
                lo, hi = NORMAL_RANGES[m]
                st.caption(f"Outside {lo:g}–{hi:g} {meta['unit']}")


def _overview(kind: str, records: List[Measurement], eye: EyeType, i18n: LocalizationManager) -> None:
    _latest_tiles(kind, records)

    if kind == "glaucoma":
        df = glaucoma_frame(records, eye)
    else:
        df = to_frame(records, CHART_METRICS[kind], eye=eye)

    metrics = CHART_METRICS[kind]
    for i in range(0, len(metrics), 2):
        cols = st.columns(2)
        for col, m in zip(cols, metrics[i : i + 2]):
            with col:
                trend_chart(df, m)

    if kind == "retina":
        history = vision_history(records, eye)
        if history:
            st.markdown(f"**{i18n.localized('vision')}**")
            st.dataframe(
                [{"date": d.strftime("%Y-%m-%d"), "vision": v} for d, v in history],
                use_container_width=True,
                hide_index=True,
            )
        timeline = injection_timeline(sorted(records, key=lambda r: r.date))
        if timeline:
            st.caption(
                " · ".join(f"{d.strftime('%Y-%m-%d')}{' ★' if is_new else ''}" for d, is_new in timeline)
            )

    if kind == "transplant" and records:
        first = min(records, key=lambda r: r.date)
        if isinstance(first, TransplantMeasurement):
            st.metric(i18n.localized("time_since_transplant"), first.time_elapsed())


def render_measurements(kind: str, auth: AuthManager, i18n: LocalizationManager) -> None:
    svc = _services()
    st.subheader(i18n.localized(PAGE_TITLES[kind]))
    try:
        records = load_records(kind, auth.uid)
    except OperationFailed as e:
        st.error(f"{i18n.localized('failed_to_fetch_measurements')} {e}")
        return

    if kind == "retina":
        nxt = upcoming_reminder(records)
        if nxt is not None:
            st.info(i18n.localized("next_reminder", date=nxt.strftime("%Y-%m-%d")))

    eye = eye_toggle(i18n, key=f"{kind}_eye")
    per_eye = [r for r in records if r.eye == eye]
    _overview(kind, per_eye, eye, i18n)

    with st.expander(i18n.localized("add_measurement")):
        new = _record_form(kind, i18n, auth.uid)
        if new is not None:
            try:
                svc.measurements.add(new)
            except OperationFailed as e:
                st.error(f"{i18n.localized('failed_to_add_measurement')} {e}")
            else:
                load_records.clear()
                st.success(i18n.localized("measurement_saved"))
                st.rerun()

    if not per_eye:
        st.caption(i18n.localized("no_measurements"))
        return

    editing_key = f"editing_{kind}"
    row_fields = [(attr, label) for attr, label, _ in FORM_FIELDS[kind]]
    for r in sorted(per_eye, key=lambda r: r.date, reverse=True):
        action = measurement_row(r, row_fields, i18n, key=f"{kind}_{r.id}", tz=_services().tz)
        if action == "delete":
            try:
                svc.measurements.delete(r)
            except OperationFailed as e:
                st.error(f"{i18n.localized('failed_to_delete_measurement')} {e}")
            else:
                load_records.clear()
                st.rerun()
        elif action == "edit":
            st.session_state[editing_key] = r.id
            st.rerun()

        if st.session_state.get(editing_key) == r.id:
            updated = _record_form(kind, i18n, auth.uid, existing=r)
            if updated is not None:
                try:
                    svc.measurements.update(updated)
                except OperationFailed as e:
                    st.error(str(e))
                else:
                    st.session_state.pop(editing_key, None)
                    load_records.clear()
                    st.rerun()
            if st.button(i18n.localized("cancel"), key=f"{kind}_{r.id}_cancel"):
                st.session_state.pop(editing_key, None)
                st.rerun()


def render_reminders(i18n: LocalizationManager) -> None:
    svc = _services()
    reminders = svc.reminders
    st.subheader(i18n.localized("reminders"))

    pending = reminders.pending()
    st.caption(f"{i18n.localized('pending_reminders')}: {len(pending)}")

    with st.form("interval_reminder"):
        name = st.text_input(i18n.localized("medication_name"), key="interval_med")
        hours = st.number_input(i18n.localized("reminder_every_hours"), min_value=0.5, value=8.0, step=0.5)
        if st.form_submit_button(i18n.localized("save"), type="primary"):
            if name.strip():
                reminders.update_interval(hours * 3600, name.strip())
                st.success(i18n.localized("reminder_scheduled"))

    with st.form("calendar_reminder"):
        name = st.text_input(i18n.localized("medication_name"), key="calendar_med")
        c1, c2 = st.columns(2)
        with c1:
            day = st.date_input(i18n.localized("reminder_date"), value=datetime.now(svc.tz).date())
        with c2:
            at = st.time_input(f"Time ({svc.tz.key})", value=time(9, 0))
        freq = st.selectbox(
            i18n.localized("frequency"), list(Frequency), format_func=lambda f: i18n.localized(f.value)
        )
        days = st.multiselect(
            i18n.localized("weekdays"), list(range(7)), format_func=lambda d: WEEKDAY_NAMES[d].title()
        )
        if st.form_submit_button(i18n.localized("save"), type="primary"):
            if name.strip():
                reminders.update_calendar(_at(day, at, svc.tz), freq, name.strip(), weekdays=days)
                st.success(i18n.localized("reminder_scheduled"))

    if st.button(i18n.localized("cancel"), key="cancel_reminders"):
        reminders.cancel()
        st.success(i18n.localized("reminders_cancelled"))


def render_profile(auth: AuthManager, i18n: LocalizationManager) -> None:
    user = auth.current_user
    if user is not None:
        settings_row(user.initials or "·", user.name, user.email)

    with st.form("profile_name"):
        name = st.text_input(i18n.localized("full_name"), value=user.name if user else "")
        if st.form_submit_button(i18n.localized("save")):
            try:
                auth.update_profile(name)
            except OperationFailed as e:
                st.error(str(e))
            else:
                st.rerun()

    st.divider()
    settings_row("🌐", i18n.localized("language"), i18n.current_language.display_name)
    langs = list(Language)
    picked = st.radio(
        i18n.localized("language"),
        langs,
        index=langs.index(i18n.current_language),
        format_func=lambda l: l.display_name,
        horizontal=True,
        label_visibility="collapsed",
    )
    if picked is not i18n.current_language:
        i18n.set_language(picked)
        st.rerun()

    st.divider()
    settings_row("🔒", i18n.localized("change_password"))
    with st.form("change_password", clear_on_submit=True):
        current = st.text_input(i18n.localized("current_password"), type="password")
        new = st.text_input(i18n.localized("new_password"), type="password")
        if st.form_submit_button(i18n.localized("update")):
            try:
                auth.change_password(current, new)
            except OperationFailed as e:
                st.error(str(e))
            else:
                st.success(i18n.localized("password_changed"))

    st.divider()
    c1, c2 = st.columns(2)
    with c1:
        if st.button(i18n.localized("reset_onboarding")):
            auth.reset_onboarding()
            st.rerun()
    with c2:
        if st.button(i18n.localized("sign_out"), type="primary"):
            auth.sign_out()
            load_records.clear()
            st.rerun()

    with st.expander(i18n.localized("delete_account")):
        st.warning(i18n.localized("delete_account_confirmation"))
        confirm = st.checkbox(i18n.localized("delete_account"), key="confirm_delete")
        if st.button(i18n.localized("delete"), disabled=not confirm, key="delete_account_btn"):
            try:
                auth.delete_account()
            except OperationFailed as e:
                st.error(str(e))
            else:
                load_records.clear()
                st.rerun()


def render_onboarding(auth: AuthManager, i18n: LocalizationManager) -> None:
    st.title(i18n.localized("welcome_to_haute_vision"))
    st.write(i18n.localized("onboarding_body"))
    if st.button(i18n.localized("get_started"), type="primary"):
        auth.complete_onboarding()
        st.rerun()


def render_login(auth: AuthManager, i18n: LocalizationManager) -> None:
    st.title(i18n.localized("app_title"))
    sign_in_tab, sign_up_tab = st.tabs([i18n.localized("sign_in"), i18n.localized("sign_up")])

    with sign_in_tab:
        with st.form("sign_in"):
            email = st.text_input(i18n.localized("email"))
            password = st.text_input(i18n.localized("password"), type="password")
            if st.form_submit_button(i18n.localized("sign_in"), type="primary"):
                try:
                    auth.sign_in(email.strip(), password)
                except AuthError as e:
                    st.error(str(e))
                else:
                    st.rerun()
        with st.expander(i18n.localized("forgot_password")):
            reset_email = st.text_input(i18n.localized("email"), key="reset_email")
            if st.button(i18n.localized("update"), key="send_reset"):
                try:
                    auth.reset_password(reset_email.strip())
                except AuthError as e:
                    st.error(str(e))
                else:
                    st.success(i18n.localized("reset_email_sent"))

    with sign_up_tab:
        with st.form("sign_up"):
            name = st.text_input(i18n.localized("full_name"))
            email = st.text_input(i18n.localized("email"), key="signup_email")
            password = st.text_input(i18n.localized("password"), type="password", key="signup_password")
            if st.form_submit_button(i18n.localized("sign_up"), type="primary"):
                try:
                    auth.create_user(email.strip(), password, name)
                except OperationFailed as e:
                    st.error(str(e))
                else:
                    st.rerun()


def render_home(auth: AuthManager, i18n: LocalizationManager) -> None:
    user = auth.current_user
    st.header(f"{i18n.localized('hello')}, {user.name if user else auth.user_session.email}")
    try:
        retina = load_records("retina", auth.uid)
    except OperationFailed as e:
        st.error(f"{i18n.localized('failed_to_fetch_measurements')} {e}")
        return
    nxt = upcoming_reminder(retina)
    if nxt is not None:
        st.info(i18n.localized("next_reminder", date=nxt.strftime("%Y-%m-%d")))
    cols = st.columns(len(PAGE_TITLES))
    for col, kind in zip(cols, PAGE_TITLES):
        try:
            n = len(load_records(kind, auth.uid))
        except OperationFailed:
            n = 0
        with col:
            st.metric(i18n.localized(PAGE_TITLES[kind]), str(n))


def main() -> None:
    st.set_page_config(page_title="Haute Vision", layout="wide")
    svc = _services()
    i18n = svc.i18n
    auth = _auth()

    for n in svc.inbox.drain():
        st.toast(f"{n.title}: {n.body}")

    view = root_view(auth)
    if view == "onboarding":
        render_onboarding(auth, i18n)
        return
    if view == "login":
        render_login(auth, i18n)
        return

    pages = ["home", *PAGE_TITLES, "reminders", "profile"]
    labels = {"home": "home", "reminders": "reminders", "profile": "profile", **PAGE_TITLES}
    page = st.sidebar.radio(i18n.localized("app_title"), pages, format_func=lambda p: i18n.localized(labels[p]))

    if page == "home":
        render_home(auth, i18n)
    elif page == "reminders":
        render_reminders(i18n)
    elif page == "profile":
        render_profile(auth, i18n)
    else:
        render_measurements(page, auth, i18n)


if __name__ == "__main__":
    main()
