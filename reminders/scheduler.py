"""
Local medication reminders.

Reminders are APScheduler jobs in a process-local BackgroundScheduler. A
custom-interval reminder is a one-shot job carrying ``customInterval`` (seconds)
and ``medicationName``; when it fires, the notification is handed to the
delivery sink and a new one-shot job with the same payload is scheduled under
a fresh id. The chain runs until ``cancel`` is called. The most recent id is
kept in the local preferences so a later session can cancel it, and a firing
job only reschedules while it is still that recorded id.

Calendar reminders (daily, weekly, monthly, or on chosen weekdays) are cron
jobs and repeat on their own, in the time zone of the ``start`` they were
given.

Every armed reminder is also recorded under ``scheduledMedicationReminders``
so ``restore`` can re-arm it after a process restart.
"""

import logging
import threading
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Mapping, Optional, Sequence
from zoneinfo import ZoneInfo

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler

from records.codec import as_utc, utc_now
from session.i18n import Language, localized_string
from session.prefs import Preferences

logger = logging.getLogger("reminders")

CURRENT_REMINDER_KEY = "currentMedicationReminderID"
SCHEDULE_KEY = "scheduledMedicationReminders"
ID_PREFIX = "medication_reminder_"

UTC = ZoneInfo("UTC")

# Weekday index 0 is Sunday.
WEEKDAY_NAMES = ["sun", "mon", "tue", "wed", "thu", "fri", "sat"]


class Frequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    OTHER = "other"


@dataclass
class Notification:
    identifier: str
    title: str
    body: str
    payload: Dict[str, Any] = field(default_factory=dict)
    delivered_at: datetime = field(default_factory=utc_now)


class NotificationInbox:
    """Delivered notifications waiting for the UI to show them."""

    def __init__(self, maxlen: int = 50):
        self._items: Deque[Notification] = deque(maxlen=maxlen)

    def __call__(self, notification: Notification) -> None:
        self._items.append(notification)

    def drain(self) -> List[Notification]:
        out: List[Notification] = []
        while self._items:
            out.append(self._items.popleft())
        return out


def weekday_key(weekday: int) -> str:
    return f"{CURRENT_REMINDER_KEY}_{weekday}"


def new_identifier(tag: str = "") -> str:
    return f"{ID_PREFIX}{tag + '_' if tag else ''}{uuid.uuid4()}"


def _zone_of(start: datetime) -> ZoneInfo:
    tz = start.tzinfo
    return tz if isinstance(tz, ZoneInfo) else UTC


class ReminderScheduler:
    def __init__(
        self,
        prefs: Preferences,
        deliver: Callable[[Notification], None],
        scheduler: Optional[BaseScheduler] = None,
        language: Callable[[], Language] = lambda: Language.ENGLISH,
    ):
        self.prefs = prefs
        self.deliver = deliver
        self.scheduler = scheduler or BackgroundScheduler(timezone="UTC")
        self.language = language
        # Serializes cancel/update against a firing job deciding whether to reschedule.
        self._lock = threading.RLock()

    def start(self) -> None:
        if not self.scheduler.running:
            self.restore()
            self.scheduler.start()
            logger.info("scheduler_started")

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("scheduler_stopped")

    def _content(self, medication_name: str) -> Dict[str, str]:
        lang = self.language()
        return {
            "title": localized_string("medication_reminder", lang),
            "body": localized_string("time_to_take_medication", lang, medication=medication_name),
        }

    def _emit(self, identifier: str, payload: Mapping[str, Any]) -> None:
        content = self._content(str(payload.get("medicationName") or ""))
        try:
            self.deliver(Notification(identifier=identifier, payload=dict(payload), **content))
        except Exception:
            logger.exception("reminder_delivery_failed id=%s", identifier)

    # --- persisted schedule ------------------------------------------------

    def _schedule(self) -> Dict[str, Dict[str, Any]]:
        data = self.prefs.get(SCHEDULE_KEY)
        return data if isinstance(data, dict) else {}

    def _remember(self, identifier: str, spec: Dict[str, Any]) -> None:
        schedule = self._schedule()
        schedule[identifier] = spec
        self.prefs.set(SCHEDULE_KEY, schedule)

    def _forget(self, identifier: str) -> None:
        schedule = self._schedule()
        if identifier in schedule:
            del schedule[identifier]
            self.prefs.set(SCHEDULE_KEY, schedule)

    def _arm(self, identifier: str, spec: Mapping[str, Any], now: Optional[datetime] = None) -> None:
        payload = {"medicationName": str(spec["medicationName"])}

        if spec["kind"] == "interval":
            payload = {"customInterval": float(spec["customInterval"]), **payload}
            # A reminder that came due while the process was down fires right away.
            run_at = max(as_utc(datetime.fromisoformat(spec["runAt"])), as_utc(now or utc_now()))
            self.scheduler.add_job(
                self._fire,
                "date",
                run_date=run_at,
                id=identifier,
                args=[identifier, payload],
                misfire_grace_time=None,
                replace_existing=True,
            )
            return

        tz = ZoneInfo(spec["timezone"])
        start = datetime.fromisoformat(spec["start"]).astimezone(tz)
        frequency = Frequency(spec["frequency"])
        weekday = spec.get("weekday")
        args = [identifier, payload]
        at = {"hour": start.hour, "minute": start.minute, "timezone": tz}

        if weekday is not None:
            self.scheduler.add_job(
                self._fire_calendar, "cron", day_of_week=WEEKDAY_NAMES[int(weekday)], id=identifier, args=args,
                replace_existing=True, **at,
            )
        elif frequency is Frequency.DAILY:
            self.scheduler.add_job(self._fire_calendar, "cron", id=identifier, args=args, replace_existing=True, **at)
        elif frequency is Frequency.WEEKLY:
            self.scheduler.add_job(
                self._fire_calendar,
                "cron",
                day_of_week=WEEKDAY_NAMES[(start.weekday() + 1) % 7],
                id=identifier,
                args=args,
                replace_existing=True,
                **at,
            )
        elif frequency is Frequency.MONTHLY:
            self.scheduler.add_job(
                self._fire_calendar, "cron", day=start.day, id=identifier, args=args, replace_existing=True, **at
            )
        else:
            run_at = max(start, (now or utc_now()).astimezone(tz))
            self.scheduler.add_job(
                self._fire_calendar,
                "date",
                run_date=run_at,
                id=identifier,
                args=args,
                misfire_grace_time=None,
                replace_existing=True,
            )

    def restore(self, now: Optional[datetime] = None) -> List[str]:
        """
        Re-arms every recorded reminder that has no job in this scheduler and
        drops recorded ids that can no longer be armed. Returns the re-armed ids.
        """
        restored: List[str] = []
        with self._lock:
            for identifier, spec in self._schedule().items():
                if self.scheduler.get_job(identifier) is not None:
                    continue
                try:
                    self._arm(identifier, spec, now=now)
                except (KeyError, TypeError, ValueError) as e:
                    logger.warning("reminder_restore_skipped id=%s error=%s", identifier, e)
                    self._forget(identifier)
                    continue
                restored.append(identifier)

            known = set(self._schedule())
            for key in [CURRENT_REMINDER_KEY, *(weekday_key(wd) for wd in range(7))]:
                identifier = self.prefs.get_str(key)
                if identifier and identifier not in known:
                    self.prefs.remove(key)
        if restored:
            logger.info("reminders_restored ids=%s", restored)
        return restored

    # --- custom interval chain ---------------------------------------------

    def schedule_interval(self, interval: float, medication_name: str, now: Optional[datetime] = None) -> str:
        """Schedules one reminder ``interval`` seconds from now and returns its id."""
        if interval <= 0:
            raise ValueError("Reminder interval must be positive")
        identifier = new_identifier()
        run_at = as_utc(now or utc_now()) + timedelta(seconds=float(interval))
        spec = {
            "kind": "interval",
            "customInterval": float(interval),
            "medicationName": medication_name,
            "runAt": run_at.isoformat(),
        }
        with self._lock:
            self._arm(identifier, spec, now=now)
            self._remember(identifier, spec)
            self.prefs.set(CURRENT_REMINDER_KEY, identifier)
        logger.info("reminder_scheduled id=%s interval_s=%s run_at=%s", identifier, interval, run_at.isoformat())
        return identifier

    def _fire(self, identifier: str, payload: Dict[str, Any]) -> None:
        self._emit(identifier, payload)
        with self._lock:
            self._forget(identifier)
            if self.prefs.get_str(CURRENT_REMINDER_KEY) != identifier:
                logger.info("reminder_chain_stopped id=%s", identifier)
                return
            if self.handle_delivered(payload) is None:
                self.prefs.remove(CURRENT_REMINDER_KEY)

    def handle_delivered(self, payload: Mapping[str, Any]) -> Optional[str]:
        """
        Reschedules a delivered custom-interval reminder.

        Returns the new id, or None when the payload is not a custom-interval
        reminder.
        """
        interval = payload.get("customInterval")
        name = payload.get("medicationName")
        if isinstance(interval, bool) or not isinstance(interval, (int, float)) or interval <= 0:
            return None
        if not isinstance(name, str):
            return None
        return self.schedule_interval(float(interval), name)

    # --- calendar reminders ------------------------------------------------

    def schedule_calendar(
        self,
        start: datetime,
        frequency: Frequency,
        medication_name: str,
        weekdays: Sequence[int] = (),
    ) -> List[str]:
        """
        Repeating reminders at the wall-clock time of day of ``start``, in its
        time zone (a naive ``start`` is taken as UTC).

        With ``weekdays`` (0 = Sunday) one weekly job is created per day and the
        frequency is ignored.
        """
        start = as_utc(start)
        tz = _zone_of(start)
        base = {
            "kind": "calendar",
            "frequency": frequency.value,
            "start": start.astimezone(tz).isoformat(),
            "timezone": tz.key,
            "medicationName": medication_name,
        }
        ids: List[str] = []

        with self._lock:
            if weekdays:
                days = sorted(set(weekdays))
                for wd in days:
                    if not 0 <= wd <= 6:
                        raise ValueError(f"Invalid weekday index: {wd}")
                for wd in days:
                    identifier = new_identifier(str(wd))
                    spec = {**base, "weekday": wd}
                    self._arm(identifier, spec)
                    self._remember(identifier, spec)
                    self.prefs.set(weekday_key(wd), identifier)
                    ids.append(identifier)
                logger.info("weekday_reminders_scheduled ids=%s", ids)
                return ids

            identifier = new_identifier()
            self._arm(identifier, base)
            self._remember(identifier, base)
            self.prefs.set(CURRENT_REMINDER_KEY, identifier)
        logger.info("reminder_scheduled id=%s frequency=%s timezone=%s", identifier, frequency.value, tz.key)
        return [identifier]

    def _fire_calendar(self, identifier: str, payload: Dict[str, Any]) -> None:
        self._emit(identifier, payload)
        with self._lock:
            spec = self._schedule().get(identifier) or {}
            if spec.get("frequency") == Frequency.OTHER.value and spec.get("weekday") is None:
                self._forget(identifier)

    # --- cancellation ------------------------------------------------------

    def _remove_job(self, identifier: str) -> None:
        try:
            self.scheduler.remove_job(identifier)
        except JobLookupError:
            logger.debug("reminder_not_pending id=%s", identifier)

    def cancel(self) -> int:
        """Removes every recorded reminder and forgets its id."""
        with self._lock:
            ids = set(self._schedule())
            for key in [CURRENT_REMINDER_KEY, *(weekday_key(wd) for wd in range(7))]:
                identifier = self.prefs.get_str(key)
                if identifier:
                    ids.add(identifier)
                    self.prefs.remove(key)
            for identifier in ids:
                self._remove_job(identifier)
            self.prefs.remove(SCHEDULE_KEY)
        logger.info("reminders_cancelled count=%s", len(ids))
        return len(ids)

    def update_interval(self, interval: float, medication_name: str) -> str:
        with self._lock:
            self.cancel()
            return self.schedule_interval(interval, medication_name)

    def update_calendar(
        self, start: datetime, frequency: Frequency, medication_name: str, weekdays: Sequence[int] = ()
    ) -> List[str]:
        with self._lock:
            self.cancel()
            return self.schedule_calendar(start, frequency, medication_name, weekdays)

    def pending(self) -> List[str]:
        return [j.id for j in self.scheduler.get_jobs() if str(j.id).startswith(ID_PREFIX)]
