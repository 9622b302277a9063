"""Shared fixtures for the Taskpiea test suite."""

import pytest

from taskpiea import workspace
from taskpiea.taskpiea_logging import performance_monitor


@pytest.fixture(autouse=True)
def reset_document_state():
    """Each test starts without cached users, in-flight documents or metrics."""
    workspace._USER_CACHE.clear()
    workspace._PROCESSING.clear()
    performance_monitor.clear()
    yield
    workspace._USER_CACHE.clear()
    workspace._PROCESSING.clear()


class SequenceRng:
    """Stand-in for ``random.Random`` that replays fixed values."""

    def __init__(self, values):
        self.values = list(values)
        self.calls = 0

    def randint(self, low, high):
        value = self.values[self.calls % len(self.values)]
        self.calls += 1
        return value


@pytest.fixture
def sequence_rng():
    return SequenceRng
