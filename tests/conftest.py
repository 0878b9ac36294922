"""
Pytest configuration for the lazy pipeline tests.

Puts the project root on the Python path so tests can import lazy, pull,
models, utils and app directly, and resets the shared performance store.
"""

import sys
from pathlib import Path

# Add the parent directory to the Python path
parent_dir = Path(__file__).parent.parent
if str(parent_dir) not in sys.path:
    sys.path.insert(0, str(parent_dir))

import pytest

from utils import clear_performance_metrics


@pytest.fixture(autouse=True)
def reset_performance_metrics():
    """Each test starts with an empty metrics store"""
    clear_performance_metrics()
    yield
    clear_performance_metrics()


@pytest.fixture
def call_log():
    """Callable factory that records every value a stage function sees"""
    seen = []

    def track(fn):
        def wrapper(x):
            seen.append(x)
            return fn(x)
        return wrapper

    track.seen = seen
    return track
