"""Pytest configuration helpers.

Ensure the project root is on sys.path so tests can import the `src` package
when pytest is invoked from the repository root or an isolated test runner.
Shared fixtures provide a small directory dataset and manual stand-ins for
timers, executors, the map surface and the list scroller so concurrency and
debounce behaviour can be tested without sleeping.
"""

import sys
from concurrent.futures import Future
from pathlib import Path

import numpy as np
import pandas as pd
import pytest


def pytest_configure():
    # Insert the repository root (parent of the tests directory) at the front
    repo_root = Path(__file__).resolve().parents[1]
    sys.path.insert(0, str(repo_root))


SYDNEY_CBD = (-33.8688, 151.2093)


def make_directory(rows):
    """Build a normalized directory frame from (name, program type, lat, lng) tuples."""
    from src.directory.models import DIRECTORY_COLUMNS

    records = []
    for i, (name, program_type, lat, lng) in enumerate(rows):
        records.append(
            {
                "Website": f"service-{i}",
                "Service Name": name,
                "Street Address": f"{i + 1} Example Street",
                "Latitude": lat,
                "Longitude": lng,
                "Phone Number": "02 9876 5432",
                "Email": f"info{i}@example.org",
                "Program Type": program_type,
            }
        )
    return pd.DataFrame(records, columns=DIRECTORY_COLUMNS)


@pytest.fixture
def directory_df():
    """Six services around Australia; one has no map position."""
    return make_directory(
        [
            ("Sydney Heart Rehab", "Public", -33.8700, 151.2100),  # ~0.15 km from the CBD
            ("Parramatta Cardiac Care", "Private", -33.8150, 151.0011),  # ~20 km
            ("Bondi Heart Health", "Public", -33.8915, 151.2767),  # ~7 km
            ("Newcastle Cardiac Services", "Public", -32.9283, 151.7817),  # ~117 km
            ("Melbourne Heart Centre", "Private", -37.8136, 144.9631),  # ~710 km
            ("Mobile Cardiac Outreach", "Private", np.nan, np.nan),
        ]
    )


@pytest.fixture
def sydney():
    return SYDNEY_CBD


class ManualTimer:
    """threading.Timer stand-in that only fires when the test says so."""

    instances = []

    def __init__(self, interval, function, args=None, kwargs=None):
        self.interval = interval
        self.function = function
        self.args = args or ()
        self.kwargs = kwargs or {}
        self.started = False
        self.cancelled = False
        self.daemon = False
        ManualTimer.instances.append(self)

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.function(*self.args, **self.kwargs)


@pytest.fixture
def manual_timer():
    ManualTimer.instances = []
    yield ManualTimer
    ManualTimer.instances = []


class DeferredExecutor:
    """Executor that holds submitted work until ``run`` is called, in any order."""

    def __init__(self):
        self.jobs = []

    def submit(self, fn, *args, **kwargs):
        future = Future()
        self.jobs.append((future, fn, args, kwargs))
        return future

    def run(self, index=0):
        future, fn, args, kwargs = self.jobs.pop(index)
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)

    def fail(self, index=0, error=None):
        future, _, _, _ = self.jobs.pop(index)
        future.set_exception(error or RuntimeError("worker crashed"))

    def shutdown(self, wait=True):
        self.jobs.clear()


@pytest.fixture
def deferred_executor():
    return DeferredExecutor()


class RecordingMapSurface:
    """Viewport provider that records the commands it receives."""

    def __init__(self):
        self.calls = []

    def fit_bounds(self, bounds):
        self.calls.append(("fit_bounds", bounds))

    def pan_to(self, center):
        self.calls.append(("pan_to", center))

    def set_zoom(self, zoom):
        self.calls.append(("set_zoom", zoom))

    def names(self):
        return [name for name, _ in self.calls]


@pytest.fixture
def map_surface():
    return RecordingMapSurface()


class RecordingScroller:
    def __init__(self):
        self.calls = []

    def scroll_to_index(self, index, align="center", behavior="smooth"):
        self.calls.append((index, align, behavior))


@pytest.fixture
def scroller():
    return RecordingScroller()


@pytest.fixture
def empty_secrets(monkeypatch):
    """Run configuration lookups against an empty secrets mapping."""
    import streamlit as st

    monkeypatch.setattr(st, "secrets", {})
    return {}
