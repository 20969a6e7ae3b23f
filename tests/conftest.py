from datetime import datetime, timezone
from typing import Any, Callable, Dict
from unittest.mock import MagicMock

import pytest

from session.prefs import Preferences

VISIT = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def prefs(tmp_path) -> Preferences:
    """
    Preferences backed by a throwaway JSON file.
    """
    return Preferences(tmp_path / "prefs.json")


@pytest.fixture
def glaucoma_payload() -> Dict[str, Any]:
    # Body as written by app versions that predate the `edited` flag.
    return {
        "userId": "u1",
        "date": VISIT,
        "eye": "OD (Right Eye)",
        "hasGlaucomaFamilyHistory": True,
        "hasLasikSurgery": False,
        "iop": 18.5,
        "iopTime": VISIT,
        "meanDefect": -1.25,
        "patternStandardDeviation": 1.8,
        "rnflOverall": 92,
        "rnflSuperior": 110,
        "rnflInferior": 118,
        "macularGCC": 81,
        "hasVisualFieldChange": False,
        "hasRNFLChange": False,
        "newEyeDrops": False,
    }


@pytest.fixture
def retina_payload() -> Dict[str, Any]:
    return {
        "userId": "u1",
        "date": VISIT,
        "eye": "OS (Left Eye)",
        "medication": "Eylea",
        "isNewMedication": False,
        "vision": "20/40",
        "crt": 310.0,
    }


@pytest.fixture
def snapshot() -> Callable[..., MagicMock]:
    """Factory for Firestore document snapshot doubles."""

    def make(doc_id: str, data: Any, exists: bool = True) -> MagicMock:
        snap = MagicMock()
        snap.id = doc_id
        snap.exists = exists
        snap.to_dict.return_value = data
        return snap

    return make
