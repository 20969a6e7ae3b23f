from dataclasses import dataclass
from typing import Any, Dict, Optional

from records.codec import FieldReader

# Family-name particles that stay out of abbreviated initials.
_PARTICLES = {"de", "du", "des", "la", "le", "van", "von", "der", "da", "di", "del"}


@dataclass
class User:
    name: str
    email: str
    id: Optional[str] = None

    def __post_init__(self) -> None:
        self.name = self.name.strip()

    @property
    def initials(self) -> str:
        """Abbreviated given + family name, e.g. "John Appleseed" -> "JA"."""
        parts = [p for p in self.name.replace(",", " ").split() if p]
        if not parts:
            return ""
        given = parts[0]
        family = ""
        for p in reversed(parts[1:]):
            if p.lower() not in _PARTICLES:
                family = p
                break
        return "".join(x[0].upper() for x in (given, family) if x)

    @classmethod
    def from_dict(cls, data: Any, doc_id: Optional[str] = None) -> "User":
        r = FieldReader(data, cls.__name__)
        return cls(name=r.string("name"), email=r.string("email"), id=doc_id)

    @classmethod
    def from_snapshot(cls, snapshot: Any) -> "User":
        return cls.from_dict(snapshot.to_dict(), doc_id=snapshot.id)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "email": self.email}
