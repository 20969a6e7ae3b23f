"""
Measurement records stored under ``users/{userId}/<collection>``.

Each record type knows its Firestore collection, decodes itself from a
document body (``from_dict``) and encodes itself back (``to_dict``) using a
fixed key set that earlier app versions already wrote. The document id is not
part of the body; it is carried separately on ``id`` and is None until the
store assigns one.

``edited`` is a present/absent field. Documents written before the flag
existed have no ``edited`` key and decode with ``edited=None``; ``is_edited``
is the single place that resolves that to False.
"""

import abc
import dataclasses
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Type, TypeVar

from records.codec import EyeType, FieldReader, as_utc, put_optional, utc_now

M = TypeVar("M", bound="Measurement")


@dataclass(kw_only=True)
class Measurement(abc.ABC):
    COLLECTION = ""

    id: Optional[str] = None
    userId: str
    date: datetime = field(default_factory=utc_now)
    eye: EyeType
    notes: Optional[str] = None
    edited: Optional[bool] = None

    @property
    def is_edited(self) -> bool:
        return False if self.edited is None else self.edited

    def mark_edited(self: M) -> M:
        return dataclasses.replace(self, edited=True)

    def with_id(self: M, doc_id: str) -> M:
        return dataclasses.replace(self, id=doc_id)

    @classmethod
    def from_snapshot(cls: Type[M], snapshot: Any) -> M:
        return cls.from_dict(snapshot.to_dict(), doc_id=snapshot.id)

    @classmethod
    @abc.abstractmethod
    def from_dict(cls: Type[M], data: Any, doc_id: Optional[str] = None) -> M: ...

    @abc.abstractmethod
    def to_dict(self) -> Dict[str, Any]: ...

    def _common_payload(self) -> Dict[str, Any]:
        return {
            "userId": self.userId,
            "date": as_utc(self.date),
            "eye": self.eye.value,
        }

    def _finish_payload(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        put_optional(payload, "notes", self.notes)
        put_optional(payload, "edited", self.edited)
        return payload


@dataclass(kw_only=True)
class GlaucomaMeasurement(Measurement):
    COLLECTION = "glaucomaMeasurements"

    hasGlaucomaFamilyHistory: bool = False
    hasLasikSurgery: bool = False

    iop: float
    iopTime: datetime = field(default_factory=utc_now)

    # visual field
    meanDefect: float
    patternStandardDeviation: float

    # OCT, micrometres
    rnflOverall: int
    rnflSuperior: int
    rnflInferior: int
    macularGCC: int

    hasVisualFieldChange: bool = False
    hasRNFLChange: bool = False

    newEyeDrops: bool = False
    eyeDropsDetails: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any, doc_id: Optional[str] = None) -> "GlaucomaMeasurement":
        r = FieldReader(data, cls.__name__)
        return cls(
            id=doc_id,
            userId=r.string("userId"),
            date=r.timestamp("date"),
            eye=r.eye("eye"),
            hasGlaucomaFamilyHistory=r.flag("hasGlaucomaFamilyHistory"),
            hasLasikSurgery=r.flag("hasLasikSurgery"),
            iop=r.number("iop"),
            iopTime=r.timestamp("iopTime"),
            meanDefect=r.number("meanDefect"),
            patternStandardDeviation=r.number("patternStandardDeviation"),
            rnflOverall=r.integer("rnflOverall"),
            rnflSuperior=r.integer("rnflSuperior"),
            rnflInferior=r.integer("rnflInferior"),
            macularGCC=r.integer("macularGCC"),
            hasVisualFieldChange=r.flag("hasVisualFieldChange"),
            hasRNFLChange=r.flag("hasRNFLChange"),
            newEyeDrops=r.flag("newEyeDrops"),
            eyeDropsDetails=r.optional_string("eyeDropsDetails"),
            notes=r.optional_string("notes"),
            edited=r.optional_flag("edited"),
        )

    def to_dict(self) -> Dict[str, Any]:
        payload = self._common_payload()
        payload.update(
            {
                "hasGlaucomaFamilyHistory": self.hasGlaucomaFamilyHistory,
                "hasLasikSurgery": self.hasLasikSurgery,
                "iop": float(self.iop),
                "iopTime": as_utc(self.iopTime),
                "meanDefect": float(self.meanDefect),
                "patternStandardDeviation": float(self.patternStandardDeviation),
                "rnflOverall": int(self.rnflOverall),
                "rnflSuperior": int(self.rnflSuperior),
                "rnflInferior": int(self.rnflInferior),
                "macularGCC": int(self.macularGCC),
                "hasVisualFieldChange": self.hasVisualFieldChange,
                "hasRNFLChange": self.hasRNFLChange,
                "newEyeDrops": self.newEyeDrops,
            }
        )
        put_optional(payload, "eyeDropsDetails", self.eyeDropsDetails)
        return self._finish_payload(payload)


@dataclass(kw_only=True)
class RetinaInjectionMeasurement(Measurement):
    COLLECTION = "retinaInjectionMeasurements"

    medication: str
    isNewMedication: bool = False
    vision: str
    crt: float
    reminderDate: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Any, doc_id: Optional[str] = None) -> "RetinaInjectionMeasurement":
        r = FieldReader(data, cls.__name__)
        return cls(
            id=doc_id,
            userId=r.string("userId"),
            date=r.timestamp("date"),
            eye=r.eye("eye"),
            medication=r.string("medication"),
            isNewMedication=r.flag("isNewMedication"),
            vision=r.string("vision"),
            crt=r.number("crt"),
            notes=r.optional_string("notes"),
            reminderDate=r.optional_timestamp("reminderDate"),
            edited=r.optional_flag("edited"),
        )

    def to_dict(self) -> Dict[str, Any]:
        payload = self._common_payload()
        payload.update(
            {
                "medication": self.medication,
                "isNewMedication": self.isNewMedication,
                "vision": self.vision,
                "crt": float(self.crt),
            }
        )
        put_optional(payload, "reminderDate", as_utc(self.reminderDate) if self.reminderDate else None)
        return self._finish_payload(payload)


@dataclass(kw_only=True)
class KeratoconusMeasurement(Measurement):
    COLLECTION = "keratoconusMeasurements"

    k2: float
    kMax: float
    thinnestPachymetry: int
    thickestEpithelialSpot: float
    thinnestEpithelialSpot: int
    keratoconusRiskScore: int
    documentedCylindricalIncrease: bool = False
    subjectiveVisionLoss: bool = False
    hasCrossLinking: bool = False

    @classmethod
    def from_dict(cls, data: Any, doc_id: Optional[str] = None) -> "KeratoconusMeasurement":
        r = FieldReader(data, cls.__name__)
        return cls(
            id=doc_id,
            userId=r.string("userId"),
            date=r.timestamp("date"),
            eye=r.eye("eye"),
            k2=r.number("k2"),
            kMax=r.number("kMax"),
            thinnestPachymetry=r.integer("thinnestPachymetry"),
            thickestEpithelialSpot=r.number("thickestEpithelialSpot"),
            thinnestEpithelialSpot=r.integer("thinnestEpithelialSpot"),
            keratoconusRiskScore=r.integer("keratoconusRiskScore"),
            documentedCylindricalIncrease=r.flag("documentedCylindricalIncrease"),
            subjectiveVisionLoss=r.flag("subjectiveVisionLoss"),
            hasCrossLinking=r.flag("hasCrossLinking"),
            notes=r.optional_string("notes"),
            edited=r.optional_flag("edited"),
        )

    def to_dict(self) -> Dict[str, Any]:
        payload = self._common_payload()
        payload.update(
            {
                "k2": float(self.k2),
                "kMax": float(self.kMax),
                "thinnestPachymetry": int(self.thinnestPachymetry),
                "thickestEpithelialSpot": float(self.thickestEpithelialSpot),
                "thinnestEpithelialSpot": int(self.thinnestEpithelialSpot),
                "keratoconusRiskScore": int(self.keratoconusRiskScore),
                "documentedCylindricalIncrease": self.documentedCylindricalIncrease,
                "subjectiveVisionLoss": self.subjectiveVisionLoss,
                "hasCrossLinking": self.hasCrossLinking,
            }
        )
        return self._finish_payload(payload)


@dataclass(kw_only=True)
class TransplantMeasurement(Measurement):
    COLLECTION = "transplantMeasurements"

    ecd: float
    pachymetry: int
    iop: float
    isRegraft: bool = False
    steroidRegimen: Optional[str] = None
    medicationName: Optional[str] = None

    def time_elapsed(self, now: Optional[datetime] = None) -> str:
        now = as_utc(now or utc_now())
        start = as_utc(self.date)
        months = (now.year - start.year) * 12 + (now.month - start.month)
        if (now.day, now.time()) < (start.day, start.time()):
            months -= 1
        if months >= 12:
            return f"{months // 12}y"
        if months > 0:
            return f"{months}m"
        return "< 1m"

    @classmethod
    def from_dict(cls, data: Any, doc_id: Optional[str] = None) -> "TransplantMeasurement":
        r = FieldReader(data, cls.__name__)
        return cls(
            id=doc_id,
            userId=r.string("userId"),
            date=r.timestamp("date"),
            eye=r.eye("eye"),
            ecd=r.number("ecd"),
            pachymetry=r.integer("pachymetry"),
            iop=r.number("iop"),
            isRegraft=r.flag("isRegraft"),
            steroidRegimen=r.optional_string("steroidRegimen"),
            medicationName=r.optional_string("medicationName"),
            notes=r.optional_string("notes"),
            edited=r.optional_flag("edited"),
        )

    def to_dict(self) -> Dict[str, Any]:
        payload = self._common_payload()
        payload.update(
            {
                "ecd": float(self.ecd),
                "pachymetry": int(self.pachymetry),
                "iop": float(self.iop),
                "isRegraft": self.isRegraft,
            }
        )
        put_optional(payload, "steroidRegimen", self.steroidRegimen)
        put_optional(payload, "medicationName", self.medicationName)
        return self._finish_payload(payload)


MEASUREMENT_TYPES: Dict[str, Type[Measurement]] = {
    "glaucoma": GlaucomaMeasurement,
    "retina": RetinaInjectionMeasurement,
    "keratoconus": KeratoconusMeasurement,
    "transplant": TransplantMeasurement,
}
