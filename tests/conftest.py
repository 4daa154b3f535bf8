"""Test configuration helpers for ensuring local imports resolve."""
from __future__ import annotations

import sys
from pathlib import Path

import pytest


def _ensure_project_root_on_path() -> None:
    project_root = Path(__file__).resolve().parents[1]
    if str(project_root) not in sys.path:
        sys.path.insert(0, str(project_root))


_ensure_project_root_on_path()

from spanfinder.config import TrainingParameters  # noqa: E402
from spanfinder.io_utils import read_name_samples  # noqa: E402

TRAINING_TEXT = """\
<START:person> Pierre Vinken <END> , 61 years old , will join the board as a nonexecutive director .
Mr . <START:person> Vinken <END> is chairman of <START:organization> Elsevier <END> , the Dutch publishing group .

<START:person> Rudolph Agnew <END> , 55 years old and former chairman of <START:organization> Consolidated Gold Fields <END> , was named a director .
The board met on Monday to discuss the merger .
"""


@pytest.fixture
def training_samples():
    """A small two-document corpus, repeated so that every feature passes a low cutoff."""
    lines = TRAINING_TEXT.splitlines()
    return read_name_samples((lines + [""]) * 4)


@pytest.fixture
def training_params():
    def make(algorithm: str = "LOGODDS", **settings) -> TrainingParameters:
        params = TrainingParameters({"Algorithm": algorithm, "Cutoff": 0, "Iterations": 2})
        for key, value in settings.items():
            params.put(key, value)
        return params
    return make
