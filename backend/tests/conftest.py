"""Pytest Configuration and Shared Fixtures

This file is automatically loaded by pytest and makes all fixtures available to all tests.
"""
import pytest
import sys
from pathlib import Path

# Add backend to path for imports
backend_path = Path(__file__).parent.parent
sys.path.insert(0, str(backend_path))

# Import all fixture modules to register them
pytest_plugins = [
    "tests.fixtures.coach_fakes",
    "tests.fixtures.test_database",
]


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers",
        "unit: Unit tests with fakes and mocks only (fast)"
    )
    config.addinivalue_line(
        "markers",
        "db: Tests using the in-memory database"
    )


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)

        if "test_db" in item.fixturenames or "test_engine" in item.fixturenames:
            item.add_marker(pytest.mark.db)
