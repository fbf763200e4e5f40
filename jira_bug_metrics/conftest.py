"""Test configuration and fixtures for Jira Bug Metrics.

This module provides shared settings and fakes for testing the extraction
pipeline.
"""

import pytest

from .config.visibility import SECTIONS
from .ratelimit import RateLimiter
from .store import DashboardStore
from .test_classes import FauxClock
from .test_data import REASON_FIELD, SEVERITY_FIELD

# Fixtures


@pytest.fixture(name="settings")
def minimal_settings():
    """The `settings` section of a fully configured run."""
    return {
        "project_key": "DCLS",
        "board_id": 42,
        "severity_field": SEVERITY_FIELD,
        "reason_field": REASON_FIELD,
        "environment_field": "environment",
        "component_field": "",
        "sprints_per_period": 2,
        "max_sprints": 40,
        "sprint_analysis_count": 50,
        "visibility": {key: default for key, _, _, default in SECTIONS},
    }


@pytest.fixture(name="connection")
def minimal_connection():
    return {
        "domain": "https://example.atlassian.net",
        "username": "me@example.com",
        "password": "token",
        "cloud_id": None,
        "timeout": 30,
    }


@pytest.fixture(name="clock")
def faux_clock():
    return FauxClock()


@pytest.fixture(name="rate_limiter")
def fixture_rate_limiter(clock):
    """A RateLimiter on a fake clock with no jitter."""
    return RateLimiter(clock=clock, sleep=clock.sleep, jitter=lambda a, b: 0)


@pytest.fixture(name="store")
def fixture_store(tmp_path):
    return DashboardStore(str(tmp_path / "data"))
