import pytest

from records.errors import MalformedRecord
from records.user import User


@pytest.mark.parametrize(
    "name,expected",
    [
        ("John Appleseed", "JA"),
        ("  marie curie ", "MC"),
        ("Marie de la Cruz", "MC"),
        ("Jean Paul Sartre", "JS"),
        ("Cher", "C"),
        ("", ""),
        ("   ", ""),
    ],
)
def test_initials(name, expected):
    assert User(name=name, email="x@example.com").initials == expected


def test_name_is_trimmed():
    assert User(name="  Ada Lovelace  ", email="ada@example.com").name == "Ada Lovelace"


def test_body_keys(snapshot):
    u = User.from_snapshot(snapshot("uid-1", {"name": "Ada", "email": "ada@example.com"}))
    assert u.id == "uid-1"
    assert u.to_dict() == {"name": "Ada", "email": "ada@example.com"}


def test_missing_email_is_malformed():
    with pytest.raises(MalformedRecord):
        User.from_dict({"name": "Ada"})
