"""Pytest configuration for sheetsdiff tests.

Ensures the project root is in sys.path so imports work without installing.
"""

import sys
from pathlib import Path

import pytest

project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from fakes import FakeClock, FakeTokenEndpoint, MemoryPersistence  # noqa: E402


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def endpoint(clock):
    return FakeTokenEndpoint(clock)


@pytest.fixture
def persistence():
    return MemoryPersistence()
