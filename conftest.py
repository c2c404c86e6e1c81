"""Pytest configuration applied to the entire test suite."""

from __future__ import annotations

# Step definitions load before feature parsing so scenario text always
# matches, regardless of which subset of tests is collected.
pytest_plugins = [
    "tests.e2e.steps.provisioning",
]
