"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
from datetime import datetime
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from fluency.composition.economic_value import EconomicValue, ObjectCandidate  # noqa: E402
from fluency.core.components import ObjectRole  # noqa: E402
from fluency.core.models import LanguageObject, MasteryRecord  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (in-memory database)")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def now():
    return datetime(2025, 3, 1, 12, 0, 0)


@pytest.fixture
def make_object():
    """Factory for LanguageObject snapshots."""

    def _make(object_id="obj-1", kind="LEX", content="medication", **kwargs):
        return LanguageObject(id=object_id, kind=kind, content=content, **kwargs)

    return _make


@pytest.fixture
def make_candidate(make_object):
    """
    Factory for composition candidates with explicit economic values.

    Role affinity defaults to 1.0 for every role so effective values are
    easy to reason about.
    """

    def _make(
        object_id="obj-1",
        kind="LEX",
        content=None,
        learning_value=0.9,
        cognitive_cost=0.3,
        synergy=None,
        stage=0,
        automaticity=0.0,
        **object_kwargs,
    ):
        obj = make_object(object_id, kind, content or object_id, **object_kwargs)
        value = EconomicValue(
            object_id=object_id,
            component=obj.component,
            learning_value=learning_value,
            cognitive_cost=cognitive_cost,
            synergy_map=dict(synergy or {}),
            role_affinity={role: 1.0 for role in ObjectRole},
            urgency=0.0,
            exposure_balance=0.5,
            automaticity=automaticity,
        )
        return ObjectCandidate(object=obj, mastery=MasteryRecord(stage=stage), value=value)

    return _make


@pytest.fixture
def session_factory():
    """In-memory SQLite sessionmaker with all tables created."""
    from sqlalchemy import create_engine
    from sqlalchemy.orm import sessionmaker
    from sqlalchemy.pool import StaticPool

    from fluency.db.database import init_db

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield sessionmaker(bind=engine, autocommit=False, autoflush=False)
    engine.dispose()
