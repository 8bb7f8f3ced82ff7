"""Test configuration ensuring local package import when editable install not active.

If users invoke `pytest` outside the project's virtualenv, we still add the project
root to sys.path so `import acr_app` works. Shared fixtures replace real sleeps and
random jitter so pacing can be asserted without waiting.
"""

from __future__ import annotations

import random
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


class SleepRecorder:
    def __init__(self):
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class LowRandom(random.Random):
    """``uniform`` always returns the lower bound."""

    def uniform(self, a, b):
        return a


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def low_rng() -> LowRandom:
    return LowRandom()


@pytest.fixture(autouse=True)
def _fresh_report_tables():
    from acr_app.core import report_tables

    report_tables.clear_cache()
    yield
    report_tables.clear_cache()
