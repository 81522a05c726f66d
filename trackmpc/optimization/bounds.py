"""Variable and constraint bounds for one solve."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Sequence

import numpy as np

from trackmpc.logging import get_logger
from trackmpc.optimization.evaluator import as_state
from trackmpc.optimization.index_map import STATE_NAMES

if TYPE_CHECKING:
    from trackmpc.config import MPCConfig

log = get_logger(__name__)


@dataclass
class NLPBounds:
    """Parallel lower/upper bound vectors for variables and constraints."""

    lbx: np.ndarray
    ubx: np.ndarray
    lbg: np.ndarray
    ubg: np.ndarray

    def __post_init__(self):
        for lower, upper, what in ((self.lbx, self.ubx, "variable"),
                                   (self.lbg, self.ubg, "constraint")):
            if lower.shape != upper.shape:
                raise ValueError(f"{what} bounds differ in shape: {lower.shape} vs {upper.shape}")
            crossed = np.flatnonzero(lower > upper)
            if crossed.size:
                raise ValueError(
                    f"{what} lower bound exceeds upper bound at index {int(crossed[0])}"
                )


def build_bounds(config: MPCConfig, state: Sequence[float]) -> NLPBounds:
    """
    Bounds for the decision vector and constraint vector.

    States are unbounded (``config.state_bound``), steering is limited to
    ``±config.steering_bound`` and acceleration to ``±config.max_accel``.
    Constraints are pinned to zero except the initial-timestep entries, which
    are pinned to the measured state.
    """
    index = config.index_map
    measured = as_state(state)

    lbx = np.full(index.n_vars, -config.state_bound)
    ubx = np.full(index.n_vars, config.state_bound)

    steer = index.block("delta")
    lbx[steer] = -config.steering_bound
    ubx[steer] = config.steering_bound

    accel = index.block("a")
    lbx[accel] = -config.max_accel
    ubx[accel] = config.max_accel

    lbg = np.zeros(index.n_constraints)
    ubg = np.zeros(index.n_constraints)
    for name, value in zip(STATE_NAMES, measured):
        pos = index.offset(name, 0)
        lbg[pos] = value
        ubg[pos] = value

    log.debug(
        "Bounds: n_vars=%d n_constraints=%d steering=±%.4f accel=±%.3f",
        index.n_vars, index.n_constraints, config.steering_bound, config.max_accel,
    )
    return NLPBounds(lbx=lbx, ubx=ubx, lbg=lbg, ubg=ubg)
