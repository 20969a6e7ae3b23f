import argparse
import logging

from main import configure_logging, init_firestore, load_env_file, PROJECT_ROOT
from records.measurements import MEASUREMENT_TYPES
from store.measurements import MeasurementStore

logger = logging.getLogger("cleanup")


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--user-id", required=True)
    parser.add_argument("--kind", choices=[*MEASUREMENT_TYPES, "all"], default="all")
    parser.add_argument("--service-account", default="")
    parser.add_argument("--log-level", default="")
    parser.add_argument("--confirm", action="store_true", default=False)
    args = parser.parse_args()

    if not args.confirm:
        raise SystemExit("Refusing to delete without --confirm")

    load_env_file(PROJECT_ROOT / ".env")
    configure_logging(args.log_level or None)
    db = init_firestore(args.service_account or None)

    store = MeasurementStore(db)
    kinds = list(MEASUREMENT_TYPES) if args.kind == "all" else [args.kind]
    total = 0
    for kind in kinds:
        deleted = store.delete_all(MEASUREMENT_TYPES[kind], args.user_id)
        logger.info("cleared kind=%s userId=%s deleted=%s", kind, args.user_id, deleted)
        total += deleted
    print(f"deleted_docs={total}")


if __name__ == "__main__":
    main()
