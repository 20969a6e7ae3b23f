import argparse
import json
import logging
from datetime import date, datetime, time, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from main import configure_logging, init_firestore, load_env_file, PROJECT_ROOT
from records.codec import EyeType
from records.measurements import MEASUREMENT_TYPES, Measurement
from store.measurements import MeasurementStore

logger = logging.getLogger("export")


def record_row(record: Measurement) -> Dict[str, Any]:
    """Flat, JSON-friendly view of a record: its stored body plus the document id."""
    row: Dict[str, Any] = {"id": record.id}
    for k, v in record.to_dict().items():
        row[k] = v.isoformat() if isinstance(v, datetime) else v
    return row


def parse_day(raw: str, end_of_day: bool = False) -> Optional[datetime]:
    if not raw.strip():
        return None
    d = date.fromisoformat(raw.strip())
    return datetime.combine(d, time.max if end_of_day else time.min).replace(tzinfo=timezone.utc)


def write_export(rows: List[Dict[str, Any]], out_path: Path, fmt: str) -> None:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    if fmt == "csv":
        pd.DataFrame(rows).to_csv(out_path, index=False)
        return
    out_path.write_text(json.dumps(rows, indent=2, ensure_ascii=False), encoding="utf-8")


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--user-id", required=True)
    parser.add_argument("--kind", choices=list(MEASUREMENT_TYPES), required=True)
    parser.add_argument("--eye", choices=["OD", "OS", ""], default="")
    parser.add_argument("--start", default="")
    parser.add_argument("--end", default="")
    parser.add_argument("--format", choices=["json", "csv"], default="json")
    parser.add_argument("--out", default="")
    parser.add_argument("--service-account", default="")
    parser.add_argument("--log-level", default="")
    args = parser.parse_args()

    load_env_file(PROJECT_ROOT / ".env")
    configure_logging(args.log_level or None)
    db = init_firestore(args.service_account or None)

    records = MeasurementStore(db).list(
        MEASUREMENT_TYPES[args.kind],
        args.user_id,
        start=parse_day(args.start),
        end=parse_day(args.end, end_of_day=True),
        eye=EyeType[args.eye] if args.eye else None,
    )
    rows = [record_row(r) for r in records]

    out_path = Path(args.out or f"{args.user_id}_{args.kind}.{args.format}")
    write_export(rows, out_path, args.format)
    logger.info("export_written path=%s rows=%s", out_path, len(rows))
    print("rows_written", len(rows))
    print("out", str(out_path))


if __name__ == "__main__":
    main()
