"""
Pytest configuration for the trackmpc test suite.

Provides a rollout helper building optimization vectors that satisfy the
vehicle model exactly.
"""

from __future__ import annotations

import pytest

from trackmpc.optimization.evaluator import FGEvaluator


def rollout(state, controls, coeffs, config):
    """Flat optimization vector that satisfies the dynamics exactly."""
    return FGEvaluator(coeffs, config).rollout(state, controls)


@pytest.fixture
def rollout_fn():
    return rollout
