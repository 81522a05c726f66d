"""
Discretized kinematic bicycle model as NLP equality constraints.

Forward-Euler step over ``dt``::

    x'    = x + v cos(psi) dt
    y'    = y + v sin(psi) dt
    psi'  = psi - v delta / lf dt
    v'    = v + a dt
    cte'  = (f(x) - y) + v sin(epsi) dt
    epsi' = (psi - atan(f'(x))) - v delta / lf dt

where ``f`` is the cubic reference polynomial in the vehicle frame. A positive
``delta`` turns the vehicle clockwise (simulator convention).
"""

from __future__ import annotations

from typing import Any, Sequence

from trackmpc.optimization.index_map import STATE_NAMES, IndexMap
from trackmpc.optimization.numeric import NumericOps

N_COEFFS = 4


def polyeval(coeffs: Sequence[float], x: Any) -> Any:
    """Evaluate the reference polynomial ``c0 + c1 x + c2 x^2 + c3 x^3``."""
    return coeffs[0] + coeffs[1] * x + coeffs[2] * x**2 + coeffs[3] * x**3


def polyslope(coeffs: Sequence[float], x: Any) -> Any:
    """First derivative of the reference polynomial."""
    return coeffs[1] + 2 * coeffs[2] * x + 3 * coeffs[3] * x**2


def heading_of(coeffs: Sequence[float], x: Any, ops: NumericOps) -> Any:
    """Desired heading of the reference path at ``x``."""
    return ops.atan(polyslope(coeffs, x))


def predict_next_state(
    state: Sequence[Any],
    control: Sequence[Any],
    coeffs: Sequence[float],
    dt: float,
    lf: float,
    ops: NumericOps,
) -> tuple[Any, ...]:
    """
    Advance one timestep of the kinematic bicycle model.

    Args:
        state: (x, y, psi, v, cte, epsi) at t
        control: (delta, a) applied over [t, t + dt)
        coeffs: Reference polynomial coefficients
        dt: Timestep duration
        lf: Centre of gravity to front axle distance
        ops: Numeric backend

    Returns:
        Predicted (x, y, psi, v, cte, epsi) at t + 1
    """
    x0, y0, psi0, v0, _cte0, epsi0 = state
    delta0, a0 = control

    f0 = polyeval(coeffs, x0)
    psi_des0 = heading_of(coeffs, x0, ops)
    yaw_step = v0 * delta0 / lf * dt

    return (
        x0 + v0 * ops.cos(psi0) * dt,
        y0 + v0 * ops.sin(psi0) * dt,
        psi0 - yaw_step,
        v0 + a0 * dt,
        (f0 - y0) + v0 * ops.sin(epsi0) * dt,
        (psi0 - psi_des0) - yaw_step,
    )


def assemble_dynamics(
    vars: Sequence[Any],
    index: IndexMap,
    coeffs: Sequence[float],
    dt: float,
    lf: float,
    ops: NumericOps,
) -> list[Any]:
    """
    Build the constraint vector in state-block layout.

    Entry ``offset(name, 0)`` holds the initial state itself, so bounding it to
    the measurement pins the initial condition. Every later entry
    ``offset(name, t)`` holds ``name[t] - predicted(t - 1)`` and is bounded to
    zero.
    """
    g: list[Any] = [0.0] * index.n_constraints

    for name in STATE_NAMES:
        pos = index.offset(name, 0)
        g[pos] = vars[pos]

    for t in range(1, index.horizon):
        prev = [vars[index.offset(name, t - 1)] for name in STATE_NAMES]
        control = (vars[index.offset("delta", t - 1)], vars[index.offset("a", t - 1)])
        predicted = predict_next_state(prev, control, coeffs, dt, lf, ops)
        for name, expected in zip(STATE_NAMES, predicted):
            pos = index.offset(name, t)
            g[pos] = vars[pos] - expected

    return g
