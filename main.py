import logging
import os
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import firebase_admin
from firebase_admin import credentials, firestore

PROJECT_ROOT = Path(__file__).resolve().parent
DEFAULT_SERVICE_ACCOUNT = "serviceAccountKey.json"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def load_env_file(env_path: Path) -> None:
    if not env_path.exists():
        return

    for raw_line in env_path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def local_timezone(raw: Optional[str] = None) -> ZoneInfo:
    """Zone used to read and show wall-clock times (`HAUTEVISION_TIMEZONE`, default UTC)."""
    name = (raw or os.getenv("HAUTEVISION_TIMEZONE") or "UTC").strip()
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown time zone: {name}") from e


def require_env(key: str) -> str:
    value = os.getenv(key)
    if not value:
        raise ValueError(f"Missing required environment variable: {key}")
    return value


def configure_logging(level: Optional[str] = None) -> None:
    name = str(level or os.getenv("LOG_LEVEL") or "INFO").upper()
    logging.basicConfig(level=getattr(logging, name, logging.INFO), format=LOG_FORMAT)


def service_account_path(raw: Optional[str] = None) -> Path:
    p = Path(raw or os.getenv("FIREBASE_SERVICE_ACCOUNT") or DEFAULT_SERVICE_ACCOUNT)
    if not p.is_absolute():
        p = PROJECT_ROOT / p
    return p.resolve()


def init_firestore(service_account: Optional[str] = None) -> firestore.Client:
    """Initializes the default Firebase app once per process and returns its Firestore client."""
    if not firebase_admin._apps:
        firebase_admin.initialize_app(credentials.Certificate(str(service_account_path(service_account))))
    return firestore.client()
