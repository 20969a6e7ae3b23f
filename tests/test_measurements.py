from datetime import datetime, timezone

import pytest

from records.codec import EyeType
from records.errors import MalformedRecord
from records.measurements import (
    MEASUREMENT_TYPES,
    GlaucomaMeasurement,
    Measurement,
    KeratoconusMeasurement,
    RetinaInjectionMeasurement,
    TransplantMeasurement,
)

WHEN = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)


def minimal_glaucoma(**overrides) -> GlaucomaMeasurement:
    fields = dict(
        userId="u1",
        eye=EyeType.OD,
        iop=16.0,
        meanDefect=-0.8,
        patternStandardDeviation=1.4,
        rnflOverall=95,
        rnflSuperior=112,
        rnflInferior=121,
        macularGCC=82,
    )
    fields.update(overrides)
    return GlaucomaMeasurement(**fields)


class TestEditedFlag:
    def test_absent_edited_reads_as_not_edited(self, glaucoma_payload):
        m = GlaucomaMeasurement.from_dict(glaucoma_payload)
        assert m.edited is None
        assert m.is_edited is False

    @pytest.mark.parametrize("flag", [True, False])
    def test_present_edited_is_kept(self, retina_payload, flag):
        retina_payload["edited"] = flag
        m = RetinaInjectionMeasurement.from_dict(retina_payload)
        assert m.edited is flag
        assert m.is_edited is flag

    def test_mark_edited_returns_copy(self):
        m = minimal_glaucoma()
        edited = m.mark_edited()
        assert edited.is_edited is True
        assert m.edited is None

    def test_encoding_keeps_absent_edited_absent(self):
        assert "edited" not in minimal_glaucoma().to_dict()
        assert minimal_glaucoma(edited=False).to_dict()["edited"] is False


class TestDefaults:
    def test_glaucoma_minimal(self):
        m = minimal_glaucoma()
        assert not any(
            [m.hasGlaucomaFamilyHistory, m.hasLasikSurgery, m.hasVisualFieldChange, m.hasRNFLChange, m.newEyeDrops]
        )
        assert m.edited is None and m.notes is None and m.eyeDropsDetails is None
        assert m.is_edited is False
        assert m.id is None
        assert m.date.tzinfo is not None

        body = m.to_dict()
        for key in ("edited", "notes", "eyeDropsDetails"):
            assert key not in body
        assert body["eye"] == "OD (Right Eye)"

    def test_retina_minimal(self):
        m = RetinaInjectionMeasurement(userId="u1", eye=EyeType.OS, medication="Eylea", vision="20/40", crt=300.0)
        assert m.isNewMedication is False
        assert m.notes is None and m.reminderDate is None and m.edited is None
        assert m.is_edited is False
        assert set(m.to_dict()) == {"userId", "date", "eye", "medication", "isNewMedication", "vision", "crt"}


class TestDecodeErrors:
    def test_missing_required_field(self, retina_payload):
        del retina_payload["crt"]
        with pytest.raises(MalformedRecord) as exc:
            RetinaInjectionMeasurement.from_dict(retina_payload)
        assert exc.value.key == "crt"
        assert exc.value.record_type == "RetinaInjectionMeasurement"

    def test_null_required_field(self, glaucoma_payload):
        glaucoma_payload["iop"] = None
        with pytest.raises(MalformedRecord):
            GlaucomaMeasurement.from_dict(glaucoma_payload)

    @pytest.mark.parametrize(
        "key,value",
        [
            ("iop", "18.5"),
            ("iop", True),
            ("rnflOverall", 92.5),
            ("hasLasikSurgery", "no"),
            ("eye", "Left"),
            ("date", "2024-03-01"),
            ("edited", "yes"),
            ("eyeDropsDetails", 3),
        ],
    )
    def test_wrong_type(self, glaucoma_payload, key, value):
        glaucoma_payload[key] = value
        with pytest.raises(MalformedRecord) as exc:
            GlaucomaMeasurement.from_dict(glaucoma_payload)
        assert exc.value.key == key

    def test_integral_float_is_accepted_for_integer_field(self, glaucoma_payload):
        glaucoma_payload["rnflOverall"] = 92.0
        assert GlaucomaMeasurement.from_dict(glaucoma_payload).rnflOverall == 92

    def test_body_must_be_mapping(self):
        with pytest.raises(MalformedRecord) as exc:
            RetinaInjectionMeasurement.from_dict(None)
        assert exc.value.key is None

    def test_naive_timestamp_is_read_as_utc(self, retina_payload):
        retina_payload["date"] = datetime(2024, 3, 1, 9, 30)
        assert RetinaInjectionMeasurement.from_dict(retina_payload).date == WHEN


class TestRoundTrip:
    def test_glaucoma_with_optionals(self):
        m = minimal_glaucoma(
            date=WHEN,
            iopTime=WHEN,
            newEyeDrops=True,
            eyeDropsDetails="Timolol",
            notes="after lunch",
            edited=False,
        )
        back = GlaucomaMeasurement.from_dict(m.to_dict(), doc_id="g1")
        assert back == m.with_id("g1")
        assert back.edited is False

    def test_retina_without_optionals(self, retina_payload):
        m = RetinaInjectionMeasurement.from_dict(retina_payload, doc_id="r1")
        assert RetinaInjectionMeasurement.from_dict(m.to_dict(), doc_id="r1") == m

    def test_from_snapshot_uses_document_id(self, snapshot, retina_payload):
        m = RetinaInjectionMeasurement.from_snapshot(snapshot("abc", retina_payload))
        assert m.id == "abc"
        assert "id" not in m.to_dict()

    def test_keratoconus_and_transplant(self):
        k = KeratoconusMeasurement(
            userId="u1",
            date=WHEN,
            eye=EyeType.OD,
            k2=48.1,
            kMax=53.2,
            thinnestPachymetry=462,
            thickestEpithelialSpot=61.5,
            thinnestEpithelialSpot=41,
            keratoconusRiskScore=4,
            hasCrossLinking=True,
        )
        t = TransplantMeasurement(userId="u1", date=WHEN, eye=EyeType.OS, ecd=2400.0, pachymetry=550, iop=14.0)
        assert KeratoconusMeasurement.from_dict(k.to_dict()) == k
        assert TransplantMeasurement.from_dict(t.to_dict()) == t
        assert "steroidRegimen" not in t.to_dict()


class TestTransplantElapsed:
    @pytest.mark.parametrize(
        "start,now,expected",
        [
            (datetime(2023, 1, 15, tzinfo=timezone.utc), datetime(2024, 3, 20, tzinfo=timezone.utc), "1y"),
            (datetime(2024, 1, 15, tzinfo=timezone.utc), datetime(2024, 3, 20, tzinfo=timezone.utc), "2m"),
            (datetime(2024, 1, 15, tzinfo=timezone.utc), datetime(2024, 2, 10, tzinfo=timezone.utc), "< 1m"),
        ],
    )
    def test_time_elapsed(self, start, now, expected):
        t = TransplantMeasurement(userId="u1", date=start, eye=EyeType.OD, ecd=2000.0, pachymetry=540, iop=15.0)
        assert t.time_elapsed(now) == expected


def test_registry_collections():
    assert {k: v.COLLECTION for k, v in MEASUREMENT_TYPES.items()} == {
        "glaucoma": "glaucomaMeasurements",
        "retina": "retinaInjectionMeasurements",
        "keratoconus": "keratoconusMeasurements",
        "transplant": "transplantMeasurements",
    }


def test_base_record_cannot_be_built():
    with pytest.raises(TypeError):
        Measurement(userId="u1", eye=EyeType.OD)
