"""Read the applied actuation out of a solved optimization vector."""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

import numpy as np

if TYPE_CHECKING:
    from trackmpc.config import MPCConfig


def extract_controls(
    x_opt: Sequence[float], config: MPCConfig,
) -> tuple[float, float, np.ndarray]:
    """
    First actuation pair and the predicted path of a solved vector.

    Steering and acceleration are clipped to their bounds so IPOPT's bound
    relaxation never leaks past the actuator limits.

    Returns:
        (steering, acceleration, predicted_xy) where ``predicted_xy`` has shape
        (N - 2, 2) and covers timesteps 1 through N - 2
    """
    index = config.index_map
    x = np.asarray(x_opt, dtype=float).reshape(-1)
    if x.size != index.n_vars:
        raise ValueError(f"solution must have {index.n_vars} entries, got {x.size}")

    steering = float(np.clip(x[index.offset("delta", 0)],
                             -config.steering_bound, config.steering_bound))
    acceleration = float(np.clip(x[index.offset("a", 0)], -config.max_accel, config.max_accel))

    steps = range(1, index.horizon - 1)
    predicted_xy = np.array(
        [[x[index.offset("x", t)], x[index.offset("y", t)]] for t in steps],
        dtype=float,
    ).reshape(-1, 2)
    return steering, acceleration, predicted_xy
