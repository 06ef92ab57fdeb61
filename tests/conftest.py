"""
posprint test suite - shared fixtures.
"""

import pytest

from helpers import FakePrinterQuery, FakeRunner


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def query():
    return FakePrinterQuery()


@pytest.fixture
def sleeps():
    """Recorded sleep durations; pass ``sleeps.append`` as the sleep function."""
    return []


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep host POSPRINT_* variables and .env files out of settings tests."""
    import os
    for key in list(os.environ):
        if key.startswith("POSPRINT_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
