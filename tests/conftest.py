import time

import pytest


@pytest.fixture
def local_utc_minus_5(monkeypatch):
    """Run the test with the process local time zone fixed at UTC-5."""
    monkeypatch.setenv("TZ", "EST+05")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()
