"""
Receding-horizon trajectory-tracking controller.

:class:`MPCController` turns one measured state and one reference polynomial
into one actuation per control tick: build bounds, build the initial guess,
solve the NLP, extract the first control. Nothing is carried between calls.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Sequence

import numpy as np

from trackmpc.config import MPCConfig
from trackmpc.control.extraction import extract_controls
from trackmpc.logging import get_logger
from trackmpc.optimization.bounds import build_bounds
from trackmpc.optimization.evaluator import FGEvaluator, as_state
from trackmpc.optimization.solver import IPOPTOptions, IPOPTSolver, SolverResult, SolveStatus

log = get_logger(__name__)


class FallbackPolicy(Enum):
    """What the controller returns when a solve does not converge."""

    RAISE = "raise"
    SAFE_STOP = "safe_stop"


class MPCSolveError(RuntimeError):
    """Raised when a tick's solve fails under :attr:`FallbackPolicy.RAISE`."""

    def __init__(self, result: SolverResult):
        super().__init__(
            f"MPC solve {result.status.value}: {result.message} "
            f"(iter={result.iterations}, wall={result.wall_time:.3f}s)"
        )
        self.result = result

    @property
    def status(self) -> SolveStatus:
        return self.result.status


@dataclass
class Actuation:
    """Commands for one control tick."""

    steering: float
    acceleration: float
    predicted_xy: np.ndarray = field(default_factory=lambda: np.zeros((0, 2)))
    status: SolveStatus = SolveStatus.CONVERGED
    objective_value: float | None = None
    solve_time: float | None = None
    message: str = ""

    def is_successful(self) -> bool:
        return self.status is SolveStatus.CONVERGED

    def to_vector(self) -> list[float]:
        """``[steering, acceleration, x1, y1, ..., x(N-2), y(N-2)]``."""
        out = [self.steering, self.acceleration]
        out.extend(float(v) for v in np.asarray(self.predicted_xy).reshape(-1))
        return out


class MPCController:
    """
    Model predictive controller for path tracking.

    Not re-entrant: call :meth:`solve` once per control tick from a single
    thread. The configured ``time_budget`` applies to every solve, whichever
    solver instance is used.
    """

    def __init__(self, config: MPCConfig | None = None, solver: IPOPTSolver | None = None):
        self.config = config or MPCConfig()
        self.solver = solver or IPOPTSolver(self._solver_options(self.config))
        self.fallback = FallbackPolicy(self.config.fallback)
        self._busy = threading.Lock()

    @staticmethod
    def _solver_options(config: MPCConfig) -> IPOPTOptions:
        return IPOPTOptions(max_wall_time=config.time_budget, extra=dict(config.solver_options))

    def solve(
        self,
        state: Sequence[float],
        coeffs: Sequence[float],
        initial_guess: Sequence[float] | None = None,
    ) -> Actuation:
        """
        Compute the actuation for one control tick.

        Args:
            state: Measured (x, y, psi, v, cte, epsi) in the vehicle frame
            coeffs: Cubic reference polynomial in the same frame
            initial_guess: Optional caller-owned starting vector (zeros otherwise)

        Returns:
            Actuation with the first steering/acceleration and predicted path

        Raises:
            MPCSolveError: The solve did not converge and the fallback is RAISE
            NonFiniteEvaluationError: The problem evaluates to NaN/Inf
            RuntimeError: Called while another solve is in flight
        """
        if not self._busy.acquire(blocking=False):
            raise RuntimeError("MPCController.solve is not re-entrant")
        try:
            return self._solve(state, coeffs, initial_guess)
        finally:
            self._busy.release()

    def _solve(
        self,
        state: Sequence[float],
        coeffs: Sequence[float],
        initial_guess: Sequence[float] | None,
    ) -> Actuation:
        cfg = self.config
        index = cfg.index_map
        measured = as_state(state)

        bounds = build_bounds(cfg, measured)

        if initial_guess is None:
            x0 = np.zeros(index.n_vars)
        else:
            x0 = np.asarray(initial_guess, dtype=float).reshape(-1)
            if x0.size != index.n_vars:
                raise ValueError(
                    f"initial_guess must have {index.n_vars} entries, got {x0.size}"
                )

        evaluator = FGEvaluator(coeffs, cfg)
        evaluator.check_finite(evaluator.rollout(measured))
        evaluator.check_finite(x0)

        result = self.solver.solve(
            evaluator.build_nlp(),
            x0=x0,
            lbx=bounds.lbx,
            ubx=bounds.ubx,
            lbg=bounds.lbg,
            ubg=bounds.ubg,
            max_wall_time=cfg.time_budget,
        )

        if not result.is_successful():
            return self._handle_failure(result)

        steering, acceleration, predicted_xy = extract_controls(result.x_opt, cfg)
        return Actuation(
            steering=steering,
            acceleration=acceleration,
            predicted_xy=predicted_xy,
            status=result.status,
            objective_value=result.f_opt,
            solve_time=result.wall_time,
            message=result.message,
        )

    def _handle_failure(self, result: SolverResult) -> Actuation:
        if self.fallback is FallbackPolicy.RAISE:
            raise MPCSolveError(result)

        log.warning(
            "Applying safe-stop fallback after %s solve (%s)", result.status.value, result.message,
        )
        return Actuation(
            steering=0.0,
            acceleration=self.config.safe_stop_accel,
            predicted_xy=np.zeros((self.config.horizon - 2, 2)),
            status=result.status,
            objective_value=None,
            solve_time=result.wall_time,
            message=result.message,
        )
