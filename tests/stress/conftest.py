# tests/stress/conftest.py
"""Pytest configuration for concurrency stress tests.

Stress tests hammer a handful of cells from many threads at once. They are
marked ``stress`` so they can be deselected for quick runs:

    pytest -m "not stress"
"""

from __future__ import annotations

import pytest


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Apply the stress marker to every test in this directory."""
    for item in items:
        if "tests/stress/" in item.nodeid:
            item.add_marker(pytest.mark.stress)
