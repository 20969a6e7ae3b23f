import json
from datetime import date, datetime, timezone

import pandas as pd
import pytest

from export_measurements import parse_day, record_row, write_export
from records.codec import EyeType
from records.measurements import MEASUREMENT_TYPES, RetinaInjectionMeasurement
from seed_firestore import GENERATORS, build_visits, parse_start_day


class TestSeed:
    @pytest.mark.parametrize("kind", list(GENERATORS))
    def test_generated_records_decode(self, kind):
        records = build_visits("u1", kind, visits=4, start_day=date(2024, 1, 1), every_days=30)
        assert len(records) == 8
        assert {r.eye for r in records} == {EyeType.OD, EyeType.OS}
        for r in records:
            assert type(r) is MEASUREMENT_TYPES[kind]
            assert MEASUREMENT_TYPES[kind].from_dict(r.to_dict()) == r

    def test_history_is_deterministic(self):
        a = build_visits("u1", "glaucoma", visits=3, start_day=date(2024, 1, 1), every_days=42)
        b = build_visits("u1", "glaucoma", visits=3, start_day=date(2024, 1, 1), every_days=42)
        assert a == b

    def test_last_injection_carries_reminder(self):
        records = build_visits("u1", "retina", visits=3, start_day=date(2024, 1, 1), every_days=28)
        assert [r.reminderDate is not None for r in records] == [False, False, False, False, True, True]

    def test_start_day(self):
        assert parse_start_day("2024-02-03", 5, 10) == date(2024, 2, 3)
        assert parse_start_day("", 1, 10) == datetime.now(timezone.utc).date()


class TestExport:
    @pytest.fixture
    def rows(self):
        r = RetinaInjectionMeasurement(
            id="doc-1",
            userId="u1",
            date=datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc),
            eye=EyeType.OD,
            medication="Eylea",
            vision="20/30",
            crt=300.0,
        )
        return [record_row(r)]

    def test_row_is_json_friendly(self, rows):
        assert rows[0]["id"] == "doc-1"
        assert rows[0]["date"] == "2024-03-01T09:00:00+00:00"
        json.dumps(rows)

    def test_csv(self, rows, tmp_path):
        out = tmp_path / "out" / "export.csv"
        write_export(rows, out, "csv")
        df = pd.read_csv(out)
        assert list(df["medication"]) == ["Eylea"]

    def test_json(self, rows, tmp_path):
        out = tmp_path / "export.json"
        write_export(rows, out, "json")
        assert json.loads(out.read_text(encoding="utf-8"))[0]["crt"] == 300.0

    def test_parse_day_bounds(self):
        assert parse_day("") is None
        assert parse_day("2024-03-01") == datetime(2024, 3, 1, tzinfo=timezone.utc)
        end = parse_day("2024-03-01", end_of_day=True)
        assert (end.hour, end.minute, end.second) == (23, 59, 59)
