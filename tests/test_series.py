from datetime import datetime, timedelta, timezone

import pytest

from records.codec import EyeType
from records.measurements import RetinaInjectionMeasurement
from records.series import (
    crt_frame,
    in_normal_range,
    injection_timeline,
    split_by_eye,
    to_frame,
    upcoming_reminder,
    value_range,
    vision_history,
)

T0 = datetime(2024, 1, 10, 9, 0, tzinfo=timezone.utc)


def injection(day: int, eye: EyeType = EyeType.OD, crt: float = 300.0, **kw) -> RetinaInjectionMeasurement:
    return RetinaInjectionMeasurement(
        userId="u1",
        date=T0 + timedelta(days=day),
        eye=eye,
        medication=kw.pop("medication", "Eylea"),
        vision=kw.pop("vision", "20/40"),
        crt=crt,
        **kw,
    )


class TestValueRange:
    def test_empty_uses_default(self):
        assert value_range([]) == (0.0, 1.0)

    def test_flat_series_is_padded(self):
        assert value_range([15, 15]) == (5.0, 25.0)

    def test_small_spread_uses_minimum_padding(self):
        assert value_range([90, 110]) == (80.0, 120.0)

    def test_large_spread_pads_thirty_percent(self):
        assert value_range([100, 200]) == (70.0, 230.0)

    def test_never_below_zero(self):
        lo, hi = value_range([3, 12])
        assert lo == 0.0
        assert hi == 25.0


def test_in_normal_range():
    assert in_normal_range("iop", 15) is True
    assert in_normal_range("iop", 25) is False
    assert in_normal_range("crt", 300) is None
    assert in_normal_range("iop", None) is None


def test_upcoming_reminder_is_earliest_set_date():
    r1 = injection(0, reminderDate=T0 + timedelta(days=60))
    r2 = injection(30, reminderDate=T0 + timedelta(days=45))
    r3 = injection(40)
    assert upcoming_reminder([r1, r2, r3]) == T0 + timedelta(days=45)
    assert upcoming_reminder([r3]) is None


def test_frames_filter_by_eye_and_sort_by_date():
    records = [injection(20, crt=280.0), injection(0, crt=350.0), injection(10, eye=EyeType.OS, crt=400.0)]
    df = crt_frame(records, EyeType.OD)
    assert list(df["crt"]) == [350.0, 280.0]
    assert df.index.is_monotonic_increasing

    assert [v for _, v in vision_history(records, EyeType.OS)] == ["20/40"]
    assert len(split_by_eye(records)[EyeType.OD]) == 2


def test_empty_frame_keeps_columns():
    df = to_frame([], ["iop", "meanDefect"])
    assert df.empty
    assert list(df.columns) == ["iop", "meanDefect"]


def test_injection_timeline_marks_new_medication():
    records = [injection(0, isNewMedication=True), injection(30)]
    assert injection_timeline(records) == [(T0, True), (T0 + timedelta(days=30), False)]


@pytest.mark.parametrize("eye", list(EyeType))
def test_split_by_eye_always_has_both_keys(eye):
    assert set(split_by_eye([injection(0, eye=eye)])) == {EyeType.OD, EyeType.OS}
