"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from cadence.config import get_settings
from cadence.memory.fsrs import CardState, MemoryCard
from cadence.priority.engine import LearningItem
from cadence.types import ObjectType


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        if "test_cli" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch):
    """Isolate tests from CADENCE_* variables in the developer's shell."""
    import os

    for key in list(os.environ):
        if key.startswith("CADENCE_"):
            monkeypatch.delenv(key, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def now():
    """A fixed, timezone-aware clock."""
    return datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def reviewed_card(now):
    """A card in review state last seen ten days before ``now``."""
    return MemoryCard(
        difficulty=5.0,
        stability=10.0,
        retrievability=1.0,
        last_review=now - timedelta(days=10),
        reps=3,
        lapses=0,
        state=CardState.REVIEW,
    )


@pytest.fixture
def sample_items():
    """Five learning items of mixed type."""
    return [
        LearningItem("lex-1", ObjectType.LEX, 0.9, 0.5, 0.6),
        LearningItem("lex-2", ObjectType.LEX, 0.7, 0.4, 0.5),
        LearningItem("synt-1", ObjectType.SYNT, 0.6, 0.7, 0.8, irt_difficulty=1.0),
        LearningItem("morph-1", ObjectType.MORPH, 0.5, 0.6, 0.4),
        LearningItem("lex-3", ObjectType.LEX, 0.4, 0.3, 0.3),
    ]
