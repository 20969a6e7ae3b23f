import argparse
import logging
import random
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Dict, List

from main import configure_logging, init_firestore, load_env_file, PROJECT_ROOT
from records.codec import EyeType
from records.measurements import (
    GlaucomaMeasurement,
    KeratoconusMeasurement,
    Measurement,
    RetinaInjectionMeasurement,
    TransplantMeasurement,
)
from records.user import User
from store.measurements import MeasurementStore
from store.users import UserStore

logger = logging.getLogger("seed")

MEDICATIONS = ["Eylea", "Lucentis", "Avastin", "Vabysmo"]
VISION = ["20/20", "20/25", "20/30", "20/40", "20/50", "20/70"]


def clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def glaucoma_visit(user_id: str, eye: EyeType, i: int, total: int, when: datetime, rng: random.Random) -> GlaucomaMeasurement:
    t = 0.0 if total <= 1 else i / float(total - 1)
    iop = clamp(24.0 - 8.0 * t + rng.normalvariate(0.0, 1.2), 8.0, 40.0)
    rnfl = clamp(96.0 - 6.0 * t + rng.normalvariate(0.0, 1.5), 40.0, 130.0)
    return GlaucomaMeasurement(
        userId=user_id,
        date=when,
        eye=eye,
        iop=round(iop, 1),
        iopTime=when,
        meanDefect=round(clamp(-1.0 - 2.0 * t + rng.normalvariate(0.0, 0.4), -30.0, 5.0), 2),
        patternStandardDeviation=round(clamp(1.6 + 0.8 * t + rng.normalvariate(0.0, 0.2), 0.0, 15.0), 2),
        rnflOverall=int(round(rnfl)),
        rnflSuperior=int(round(rnfl + 18 + rng.normalvariate(0.0, 2.0))),
        rnflInferior=int(round(rnfl + 22 + rng.normalvariate(0.0, 2.0))),
        macularGCC=int(round(clamp(82.0 - 3.0 * t + rng.normalvariate(0.0, 1.0), 40.0, 120.0))),
        hasVisualFieldChange=i > 0 and rng.random() < 0.15,
        hasRNFLChange=i > 0 and rng.random() < 0.1,
        newEyeDrops=i == 0,
        eyeDropsDetails="Latanoprost 0.005% qhs" if i == 0 else None,
    )


def retina_visit(user_id: str, eye: EyeType, i: int, total: int, when: datetime, rng: random.Random) -> RetinaInjectionMeasurement:
    t = 0.0 if total <= 1 else i / float(total - 1)
    med = MEDICATIONS[0] if i < total // 2 else MEDICATIONS[1]
    return RetinaInjectionMeasurement(
        userId=user_id,
        date=when,
        eye=eye,
        medication=med,
        isNewMedication=i == 0 or i == total // 2,
        vision=VISION[min(len(VISION) - 1, max(0, int(round((1.0 - t) * 4 + rng.normalvariate(0.0, 0.5)))))],
        crt=round(clamp(420.0 - 140.0 * t + rng.normalvariate(0.0, 12.0), 180.0, 700.0), 0),
        reminderDate=when + timedelta(weeks=6) if i == total - 1 else None,
    )


def keratoconus_visit(user_id: str, eye: EyeType, i: int, total: int, when: datetime, rng: random.Random) -> KeratoconusMeasurement:
    t = 0.0 if total <= 1 else i / float(total - 1)
    kmax = clamp(52.0 + 1.5 * t + rng.normalvariate(0.0, 0.3), 40.0, 75.0)
    return KeratoconusMeasurement(
        userId=user_id,
        date=when,
        eye=eye,
        k2=round(kmax - 3.0 + rng.normalvariate(0.0, 0.2), 2),
        kMax=round(kmax, 2),
        thinnestPachymetry=int(round(clamp(470.0 - 12.0 * t + rng.normalvariate(0.0, 4.0), 300.0, 600.0))),
        thickestEpithelialSpot=round(clamp(62.0 + rng.normalvariate(0.0, 1.5), 40.0, 90.0), 1),
        thinnestEpithelialSpot=int(round(clamp(42.0 - 2.0 * t + rng.normalvariate(0.0, 1.0), 20.0, 60.0))),
        keratoconusRiskScore=int(clamp(round(3 + 3 * t + rng.normalvariate(0.0, 0.5)), 0, 10)),
        documentedCylindricalIncrease=t > 0.5,
        subjectiveVisionLoss=rng.random() < 0.2,
        hasCrossLinking=i == total - 1 and t > 0.5,
    )


def transplant_visit(user_id: str, eye: EyeType, i: int, total: int, when: datetime, rng: random.Random) -> TransplantMeasurement:
    t = 0.0 if total <= 1 else i / float(total - 1)
    return TransplantMeasurement(
        userId=user_id,
        date=when,
        eye=eye,
        ecd=round(clamp(2600.0 - 500.0 * t + rng.normalvariate(0.0, 40.0), 400.0, 3500.0), 0),
        pachymetry=int(round(clamp(560.0 - 20.0 * t + rng.normalvariate(0.0, 5.0), 400.0, 800.0))),
        iop=round(clamp(15.0 + rng.normalvariate(0.0, 1.5), 8.0, 35.0), 1),
        isRegraft=False,
        steroidRegimen="Prednisolone acetate 1% qid" if i < 2 else "Prednisolone acetate 1% daily",
        medicationName="Pred Forte",
    )


GENERATORS: Dict[str, Callable[..., Measurement]] = {
    "glaucoma": glaucoma_visit,
    "retina": retina_visit,
    "keratoconus": keratoconus_visit,
    "transplant": transplant_visit,
}


def build_visits(user_id: str, kind: str, visits: int, start_day: date, every_days: int) -> List[Measurement]:
    """Deterministic synthetic history for one record kind, both eyes, one visit every ``every_days`` days."""
    gen = GENERATORS[kind]
    out: List[Measurement] = []
    for i in range(visits):
        d = start_day + timedelta(days=i * every_days)
        when = datetime(d.year, d.month, d.day, 9, 30, tzinfo=timezone.utc)
        for eye in (EyeType.OD, EyeType.OS):
            rng = random.Random(f"{user_id}:{kind}:{eye.short_name}:{i}")
            out.append(gen(user_id, eye, i, visits, when, rng))
    return out


def parse_start_day(start_date: str, visits: int, every_days: int) -> date:
    if start_date.strip():
        return date.fromisoformat(start_date.strip())
    return datetime.now(timezone.utc).date() - timedelta(days=(visits - 1) * every_days)


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--user-id", required=True)
    parser.add_argument("--kind", choices=[*GENERATORS, "all"], default="all")
    parser.add_argument("--visits", type=int, default=8)
    parser.add_argument("--every-days", type=int, default=42)
    parser.add_argument("--start-date", default="")
    parser.add_argument("--init-user", action="store_true")
    parser.add_argument("--name", default="")
    parser.add_argument("--email", default="")
    parser.add_argument("--service-account", default="")
    parser.add_argument("--log-level", default="")
    args = parser.parse_args()

    load_env_file(PROJECT_ROOT / ".env")
    configure_logging(args.log_level or None)
    db = init_firestore(args.service_account or None)

    if args.init_user:
        user = UserStore(db).save(args.user_id, User(name=args.name, email=args.email))
        print("user_written", user.id, user.initials)

    visits = max(1, int(args.visits))
    every_days = max(1, int(args.every_days))
    start_day = parse_start_day(args.start_date, visits, every_days)
    kinds = list(GENERATORS) if args.kind == "all" else [args.kind]

    store = MeasurementStore(db)
    for kind in kinds:
        written = 0
        for record in build_visits(args.user_id, kind, visits, start_day, every_days):
            store.add(record)
            written += 1
        logger.info("seeded kind=%s userId=%s written=%s", kind, args.user_id, written)
        print(f"{kind}_written", written)
    print("date_range", start_day.isoformat(), (start_day + timedelta(days=(visits - 1) * every_days)).isoformat())


if __name__ == "__main__":
    main()
