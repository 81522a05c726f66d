"""Tracking objective over the prediction horizon."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Sequence

from trackmpc.optimization.index_map import IndexMap

if TYPE_CHECKING:
    from trackmpc.config import CostWeights


def assemble_cost(
    vars: Sequence[Any],
    index: IndexMap,
    weights: CostWeights,
    ref_v: float,
) -> Any:
    """
    Build the scalar objective from the flat optimization vector.

    Penalizes cross-track error, heading error and speed deviation at every
    state timestep, actuator effort at every control timestep, and the change
    between consecutive actuations.

    Args:
        vars: Flat optimization vector (floats or CasADi SX)
        index: Block layout for the horizon
        weights: Cost weights
        ref_v: Target speed

    Returns:
        Objective value of the same numeric type as ``vars``
    """
    cost = 0.0

    for t in range(index.horizon):
        cte = vars[index.offset("cte", t)]
        epsi = vars[index.offset("epsi", t)]
        v = vars[index.offset("v", t)]
        cost += weights.cte * cte**2
        cost += weights.epsi * epsi**2
        cost += weights.v * (v - ref_v) ** 2

    for t in range(index.n_controls):
        cost += weights.delta * vars[index.offset("delta", t)] ** 2
        cost += weights.a * vars[index.offset("a", t)] ** 2

    # Smoothness between consecutive actuations
    for t in range(index.n_controls - 1):
        d_delta = vars[index.offset("delta", t + 1)] - vars[index.offset("delta", t)]
        d_a = vars[index.offset("a", t + 1)] - vars[index.offset("a", t)]
        cost += weights.delta_change * d_delta**2
        cost += weights.a_change * d_a**2

    return cost
