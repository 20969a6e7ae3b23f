from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from records.errors import MalformedRecord


class EyeType(str, Enum):
    OD = "OD (Right Eye)"
    OS = "OS (Left Eye)"

    @property
    def short_name(self) -> str:
        return self.name


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


class FieldReader:
    """
    Typed access to a Firestore document body.

    Required getters raise MalformedRecord when the key is missing, null or of
    the wrong type. Optional getters return None for a missing or null key but
    still reject a present value of the wrong type.
    """

    def __init__(self, data: Any, record_type: str):
        if not isinstance(data, Mapping):
            raise MalformedRecord(record_type, None, f"expected a mapping, got {type(data).__name__}")
        self.data = data
        self.record_type = record_type

    def _fail(self, key: str, reason: str) -> MalformedRecord:
        return MalformedRecord(self.record_type, key, reason)

    def _required(self, key: str) -> Any:
        if key not in self.data:
            raise self._fail(key, "missing required field")
        v = self.data[key]
        if v is None:
            raise self._fail(key, "required field is null")
        return v

    def _check_string(self, key: str, v: Any) -> str:
        if not isinstance(v, str):
            raise self._fail(key, f"expected string, got {type(v).__name__}")
        return v

    def _check_flag(self, key: str, v: Any) -> bool:
        if not isinstance(v, bool):
            raise self._fail(key, f"expected bool, got {type(v).__name__}")
        return v

    def _check_timestamp(self, key: str, v: Any) -> datetime:
        if not isinstance(v, datetime):
            raise self._fail(key, f"expected timestamp, got {type(v).__name__}")
        return as_utc(v)

    def string(self, key: str) -> str:
        return self._check_string(key, self._required(key))

    def number(self, key: str) -> float:
        v = self._required(key)
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            raise self._fail(key, f"expected number, got {type(v).__name__}")
        return float(v)

    def integer(self, key: str) -> int:
        v = self._required(key)
        if isinstance(v, bool):
            raise self._fail(key, "expected integer, got bool")
        if isinstance(v, float) and v.is_integer():
            return int(v)
        if not isinstance(v, int):
            raise self._fail(key, f"expected integer, got {type(v).__name__}")
        return v

    def flag(self, key: str) -> bool:
        return self._check_flag(key, self._required(key))

    def timestamp(self, key: str) -> datetime:
        return self._check_timestamp(key, self._required(key))

    def eye(self, key: str = "eye") -> EyeType:
        raw = self.string(key)
        try:
            return EyeType(raw)
        except ValueError:
            raise self._fail(key, f"unknown eye designation {raw!r}") from None

    def optional_string(self, key: str) -> Optional[str]:
        v = self.data.get(key)
        return None if v is None else self._check_string(key, v)

    def optional_flag(self, key: str) -> Optional[bool]:
        v = self.data.get(key)
        return None if v is None else self._check_flag(key, v)

    def optional_timestamp(self, key: str) -> Optional[datetime]:
        v = self.data.get(key)
        return None if v is None else self._check_timestamp(key, v)


def put_optional(payload: Dict[str, Any], key: str, value: Any) -> None:
    # Absent optionals stay absent in the stored document.
    if value is not None:
        payload[key] = value
