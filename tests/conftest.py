"""Shared pytest setup for the NetPick test-suite."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Tests import ``app`` from the project root without an editable install.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.config import get_settings  # noqa: E402


@pytest.fixture(autouse=True)
def _fresh_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
