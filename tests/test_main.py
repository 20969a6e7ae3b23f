from datetime import date, time, timezone
from zoneinfo import ZoneInfo

import pytest

from asv.app import _at
from main import local_timezone


class TestLocalTimezone:
    def test_defaults_to_utc(self, monkeypatch):
        monkeypatch.delenv("HAUTEVISION_TIMEZONE", raising=False)
        assert local_timezone().key == "UTC"

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("HAUTEVISION_TIMEZONE", " America/Montreal ")
        assert local_timezone() == ZoneInfo("America/Montreal")

    def test_argument_wins(self, monkeypatch):
        monkeypatch.setenv("HAUTEVISION_TIMEZONE", "America/Montreal")
        assert local_timezone("Europe/Paris").key == "Europe/Paris"

    @pytest.mark.parametrize("name", ["Mars/Olympus", "../etc"])
    def test_unknown_zone(self, name):
        with pytest.raises(ValueError):
            local_timezone(name)


def test_entered_time_keeps_local_wall_clock():
    montreal = ZoneInfo("America/Montreal")
    at = _at(date(2024, 1, 15), time(9, 0), montreal)
    assert (at.hour, at.minute) == (9, 0)
    assert at.astimezone(timezone.utc).hour == 14
