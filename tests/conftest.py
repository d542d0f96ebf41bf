# tests/conftest.py
"""Shared test fixtures and helpers.

Test Doubles:
- RecordingHandler: ResultHandler that records every resolution it receives
  (and the thread it ran on) and can be told to raise.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

from __future__ import annotations

import os
import threading
from collections.abc import Iterator

import pytest
from hypothesis import Phase, Verbosity, settings

from deferred_result.contracts import Resolution
from deferred_result.core.config import CoordinatorSettings
from deferred_result.engine.coordinator import AsyncRequestCoordinator

# =============================================================================
# Hypothesis Configuration
# =============================================================================

settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Thread scheduling makes timing vary
)

settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))


# =============================================================================
# Test Doubles
# =============================================================================


class RecordingHandler:
    """ResultHandler that records calls and can simulate consumer failures."""

    def __init__(self, *, fail: bool = False) -> None:
        self._fail = fail
        self._lock = threading.Lock()
        self.calls: list[Resolution] = []
        self.threads: list[str] = []
        self.called = threading.Event()

    def __call__(self, resolution: Resolution) -> None:
        with self._lock:
            self.calls.append(resolution)
            self.threads.append(threading.current_thread().name)
        self.called.set()
        if self._fail:
            raise RuntimeError("Simulated consumer failure")

    @property
    def call_count(self) -> int:
        with self._lock:
            return len(self.calls)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def handler() -> RecordingHandler:
    return RecordingHandler()


@pytest.fixture
def coordinator() -> Iterator[AsyncRequestCoordinator]:
    """Coordinator with a short default timeout; abandons leftovers on teardown."""
    coord = AsyncRequestCoordinator(CoordinatorSettings(default_timeout_ms=2000))
    yield coord
    coord.abandon_all()
