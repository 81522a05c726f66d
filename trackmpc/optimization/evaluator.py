"""
Combined objective and constraint evaluator.

The solver interface expects a single callable producing ``fg`` where
``fg[0]`` is the objective and ``fg[1:]`` are the constraints in the order
defined by :class:`IndexMap`. :class:`FGEvaluator` is that callable; it is
evaluated symbolically to build the CasADi NLP and numerically to guard
against NaN/Inf before the solver ever sees the problem.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Sequence

import casadi as ca
import numpy as np

from trackmpc.logging import get_logger
from trackmpc.optimization.cost import assemble_cost
from trackmpc.optimization.dynamics import N_COEFFS, assemble_dynamics, predict_next_state
from trackmpc.optimization.index_map import STATE_NAMES, IndexMap
from trackmpc.optimization.numeric import CASADI_OPS, NUMPY_OPS, NumericOps

if TYPE_CHECKING:
    from trackmpc.config import MPCConfig

log = get_logger(__name__)


class NonFiniteEvaluationError(ArithmeticError):
    """Raised when the objective or constraints evaluate to NaN or Inf."""


def as_state(state: Sequence[float]) -> np.ndarray:
    """Validate a measured state (x, y, psi, v, cte, epsi)."""
    arr = np.asarray(state, dtype=float).reshape(-1)
    if arr.size != len(STATE_NAMES):
        raise ValueError(f"state must have {len(STATE_NAMES)} entries, got {arr.size}")
    if not np.all(np.isfinite(arr)):
        raise ValueError(f"state contains non-finite values: {arr.tolist()}")
    return arr


def as_coeffs(coeffs: Sequence[float]) -> np.ndarray:
    """Validate cubic reference polynomial coefficients."""
    arr = np.asarray(coeffs, dtype=float).reshape(-1)
    if arr.size != N_COEFFS:
        raise ValueError(f"coeffs must have {N_COEFFS} entries, got {arr.size}")
    if not np.all(np.isfinite(arr)):
        raise ValueError(f"coeffs contain non-finite values: {arr.tolist()}")
    return arr


class FGEvaluator:
    """Objective and dynamics residuals for one reference polynomial."""

    def __init__(self, coeffs: Sequence[float], config: MPCConfig):
        self.coeffs = as_coeffs(coeffs)
        self.config = config
        self.index: IndexMap = config.index_map

    def __call__(self, vars: Sequence[Any], ops: NumericOps = NUMPY_OPS) -> list[Any]:
        cfg = self.config
        coeffs = [float(c) for c in self.coeffs]
        fg: list[Any] = [assemble_cost(vars, self.index, cfg.weights, cfg.ref_v)]
        fg.extend(assemble_dynamics(vars, self.index, coeffs, cfg.dt, cfg.lf, ops))
        return fg

    def build_nlp(self) -> dict[str, Any]:
        """Return the CasADi NLP dictionary ``{"x", "f", "g"}``."""
        w = ca.SX.sym("w", self.index.n_vars)
        fg = self(w, CASADI_OPS)
        return {"x": w, "f": fg[0], "g": ca.vertcat(*fg[1:])}

    def evaluate(self, x: Sequence[float]) -> np.ndarray:
        """Evaluate ``fg`` numerically at ``x``."""
        arr = np.asarray(x, dtype=float).reshape(-1)
        if arr.size != self.index.n_vars:
            raise ValueError(
                f"optimization vector must have {self.index.n_vars} entries, got {arr.size}"
            )
        with np.errstate(all="ignore"):
            return np.array([float(v) for v in self(arr, NUMPY_OPS)])

    def rollout(
        self,
        state: Sequence[float],
        controls: Sequence[Sequence[float]] | None = None,
    ) -> np.ndarray:
        """
        Dynamics-feasible optimization vector starting from ``state``.

        Args:
            state: Initial (x, y, psi, v, cte, epsi)
            controls: N - 1 (delta, a) pairs, all zeros when omitted

        Returns:
            Flat vector whose constraint residuals are zero
        """
        index = self.index
        coeffs = [float(c) for c in self.coeffs]
        if controls is None:
            controls = [(0.0, 0.0)] * (index.horizon - 1)
        if len(controls) != index.horizon - 1:
            raise ValueError(
                f"controls must have {index.horizon - 1} pairs, got {len(controls)}"
            )

        vec = np.zeros(index.n_vars)
        current = tuple(np.float64(s) for s in as_state(state))
        for name, value in zip(STATE_NAMES, current):
            vec[index.offset(name, 0)] = value
        with np.errstate(all="ignore"):
            for t in range(1, index.horizon):
                delta, a = (np.float64(u) for u in controls[t - 1])
                vec[index.offset("delta", t - 1)] = delta
                vec[index.offset("a", t - 1)] = a
                current = predict_next_state(
                    current, (delta, a), coeffs, self.config.dt, self.config.lf, NUMPY_OPS,
                )
                for name, value in zip(STATE_NAMES, current):
                    vec[index.offset(name, t)] = value
        return vec

    def check_finite(self, x: Sequence[float]) -> np.ndarray:
        """Evaluate ``fg`` at ``x`` and fail fast on NaN/Inf."""
        fg = self.evaluate(x)
        bad = np.flatnonzero(~np.isfinite(fg))
        if bad.size:
            first = int(bad[0])
            where = "objective" if first == 0 else f"constraint {first - 1}"
            raise NonFiniteEvaluationError(
                f"{where} evaluated to {fg[first]} for coeffs={self.coeffs.tolist()} "
                f"({bad.size} non-finite entries)"
            )
        return fg


def constraint_residuals(
    x_opt: Sequence[float],
    state: Sequence[float],
    coeffs: Sequence[float],
    config: MPCConfig,
) -> np.ndarray:
    """Constraint values minus their (equality) targets at ``x_opt``."""
    from trackmpc.optimization.bounds import build_bounds

    evaluator = FGEvaluator(coeffs, config)
    g = evaluator.evaluate(x_opt)[1:]
    bounds = build_bounds(config, state)
    return g - bounds.lbg
