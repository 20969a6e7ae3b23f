import dataclasses
from unittest.mock import MagicMock

import pytest

from asv.app import CHART_METRICS, FORM_FIELDS, PAGE_TITLES, root_view
from records.measurements import MEASUREMENT_TYPES
from records.series import METRICS
from session.i18n import STRINGS, Language


@pytest.mark.parametrize(
    "onboarded,signed_in,expected",
    [
        (False, False, "onboarding"),
        (False, True, "onboarding"),
        (True, True, "main"),
        (True, False, "login"),
    ],
)
def test_root_view(onboarded, signed_in, expected):
    auth = MagicMock()
    auth.has_completed_onboarding = onboarded
    auth.is_signed_in = signed_in
    assert root_view(auth) == expected


@pytest.mark.parametrize("kind", list(MEASUREMENT_TYPES))
def test_forms_cover_record_fields(kind):
    names = {f.name for f in dataclasses.fields(MEASUREMENT_TYPES[kind])}
    form = {attr for attr, _, _ in FORM_FIELDS[kind]}
    assert form <= names
    assert names - form == {"id", "userId", "date", "eye", "notes", "edited"}


def test_labels_and_charts_are_known():
    english = STRINGS[Language.ENGLISH]
    for kind, fields in FORM_FIELDS.items():
        assert PAGE_TITLES[kind] in english
        assert all(label in english for _, label, _ in fields)
        assert all(m in METRICS for m in CHART_METRICS[kind])
