"""IPOPT adapter: runs one NLP solve under a wall-clock budget.

The adapter owns nothing between calls. Each :meth:`IPOPTSolver.solve`
creates the ``nlpsol`` instance, runs it, and classifies the outcome into
:class:`SolveStatus`. Callers must branch on the status; a result whose
status is not ``CONVERGED`` carries whatever iterate IPOPT stopped at.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import numpy as np

from trackmpc.constants import DEFAULT_LINEAR_SOLVER, TIME_BUDGET
from trackmpc.logging import get_logger
from trackmpc.optimization.ipopt_factory import create_ipopt_solver

log = get_logger(__name__)

_CONVERGED_STATUSES = frozenset({"Solve_Succeeded"})
_TIMEOUT_STATUSES = frozenset({"Maximum_WallTime_Exceeded", "Maximum_CpuTime_Exceeded"})

_STATUS_MESSAGES = {
    "Solve_Succeeded": "Solve succeeded",
    "Solved_To_Acceptable_Level": "Solved to acceptable level",
    "Infeasible_Problem_Detected": "Infeasible problem detected",
    "Search_Direction_Becomes_Too_Small": "Search direction becomes too small",
    "Diverging_Iterates": "Diverging iterates",
    "User_Requested_Stop": "User requested stop",
    "Feasible_Point_Found": "Feasible point found",
    "Maximum_Iterations_Exceeded": "Maximum number of iterations exceeded",
    "Restoration_Failed": "Restoration failed",
    "Error_In_Step_Computation": "Error in step computation",
    "Maximum_CpuTime_Exceeded": "Maximum CPU time exceeded",
    "Maximum_WallTime_Exceeded": "Maximum wall time exceeded",
    "Not_Enough_Degrees_Of_Freedom": "Not enough degrees of freedom",
    "Invalid_Problem_Definition": "Invalid problem definition",
    "Invalid_Option": "Invalid option",
    "Invalid_Number_Detected": "Invalid number detected",
    "Unrecoverable_Exception": "Unrecoverable exception",
    "NonIpopt_Exception_Thrown": "Non-IPOPT exception thrown",
    "Insufficient_Memory": "Insufficient memory",
    "Internal_Error": "Internal error",
}


class SolveStatus(Enum):
    """Outcome of one solve."""

    CONVERGED = "converged"
    NOT_CONVERGED = "not_converged"
    TIME_EXCEEDED = "time_exceeded"


@dataclass
class IPOPTOptions:
    """IPOPT solver options."""

    # Wall-clock seconds per solve
    max_wall_time: float = TIME_BUDGET.value
    max_iter: int = 3000
    tol: float = 1e-8
    acceptable_tol: float = 1e-6

    linear_solver: str = DEFAULT_LINEAR_SOLVER
    hessian_approximation: str = "exact"  # "exact", "limited-memory"
    mu_strategy: str = "monotone"  # "monotone", "adaptive"

    # 0=silent, 5=iteration summary
    print_level: int = 0

    # Verbatim ipopt.* or nlpsol options, applied last
    extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.max_wall_time <= 0:
            raise ValueError(f"max_wall_time must be positive, got {self.max_wall_time}")
        if self.max_iter <= 0:
            raise ValueError(f"max_iter must be positive, got {self.max_iter}")


@dataclass
class SolverResult:
    """Result of one IPOPT solve."""

    status: SolveStatus
    x_opt: np.ndarray
    f_opt: float
    g_opt: np.ndarray
    iterations: int
    wall_time: float
    return_status: str
    message: str

    @property
    def success(self) -> bool:
        return self.status is SolveStatus.CONVERGED

    def is_successful(self) -> bool:
        """Check if the solve converged."""
        return self.success


class IPOPTSolver:
    """
    IPOPT wrapper for the tracking NLP.

    Derivatives come from CasADi's algorithmic differentiation of the SX
    graph, so IPOPT sees the exact gradient, Jacobian and Hessian.
    """

    def __init__(self, options: IPOPTOptions | None = None):
        """
        Initialize IPOPT solver.

        Args:
            options: IPOPT solver options
        """
        self.options = options or IPOPTOptions()

    def solve(
        self,
        nlp: dict[str, Any],
        x0: np.ndarray | None = None,
        lbx: np.ndarray | None = None,
        ubx: np.ndarray | None = None,
        lbg: np.ndarray | None = None,
        ubg: np.ndarray | None = None,
        max_wall_time: float | None = None,
    ) -> SolverResult:
        """
        Solve ``nlp`` from ``x0`` within the configured wall-clock budget.

        Args:
            nlp: CasADi NLP dictionary
            x0: Initial guess (zeros when omitted)
            lbx: Lower bounds on variables
            ubx: Upper bounds on variables
            lbg: Lower bounds on constraints
            ubg: Upper bounds on constraints
            max_wall_time: Budget for this call, overriding the configured one

        Returns:
            Solver result with a classified status
        """
        budget = self.options.max_wall_time if max_wall_time is None else max_wall_time
        if budget <= 0:
            raise ValueError(f"max_wall_time must be positive, got {budget}")

        n_vars = int(nlp["x"].size1())
        n_constraints = int(nlp["g"].size1())

        if x0 is None:
            x0 = np.zeros(n_vars)
        if lbx is None:
            lbx = -np.inf * np.ones(n_vars)
        if ubx is None:
            ubx = np.inf * np.ones(n_vars)
        if lbg is None:
            lbg = np.zeros(n_constraints)
        if ubg is None:
            ubg = np.zeros(n_constraints)

        log.debug(
            "Beginning solve: n_vars=%d, n_constraints=%d, budget=%.3fs",
            n_vars, n_constraints, budget,
        )

        solver = create_ipopt_solver(
            "tracking_mpc", nlp, self._convert_options(budget),
            linear_solver=self.options.linear_solver,
        )

        start_time = time.perf_counter()
        try:
            result = solver(x0=x0, lbx=lbx, ubx=ubx, lbg=lbg, ubg=ubg)
        except RuntimeError as exc:
            elapsed = time.perf_counter() - start_time
            log.error("IPOPT solve raised after %.3fs: %s", elapsed, exc)
            return self._create_error_result(str(exc), n_vars, elapsed)
        elapsed = time.perf_counter() - start_time

        stats = solver.stats()
        return_status = str(stats.get("return_status", "Unknown"))
        iterations = int(stats.get("iter_count", 0))

        x_opt = np.asarray(result["x"].full()).flatten()
        g_opt = np.asarray(result["g"].full()).flatten()
        f_opt = float(result["f"])

        status = self._classify(return_status, elapsed, budget)
        if status is SolveStatus.CONVERGED and not np.all(np.isfinite(x_opt)):
            status = SolveStatus.NOT_CONVERGED
            return_status = "Invalid_Number_Detected"

        message = _STATUS_MESSAGES.get(return_status, f"Unknown status: {return_status}")
        if status is SolveStatus.CONVERGED:
            log.info(
                "Solve converged: iter=%d, objective=%.6g, wall=%.3fs",
                iterations, f_opt, elapsed,
            )
        else:
            log.warning(
                "Solve %s (%s): iter=%d, wall=%.3fs of %.3fs budget",
                status.value, message, iterations, elapsed, budget,
            )

        return SolverResult(
            status=status,
            x_opt=x_opt,
            f_opt=f_opt,
            g_opt=g_opt,
            iterations=iterations,
            wall_time=elapsed,
            return_status=return_status,
            message=message,
        )

    def _classify(
        self, return_status: str, elapsed: float, budget: float | None = None,
    ) -> SolveStatus:
        if budget is None:
            budget = self.options.max_wall_time
        if return_status in _TIMEOUT_STATUSES:
            return SolveStatus.TIME_EXCEEDED
        if elapsed > budget:
            # IPOPT checks the clock between iterations only
            return SolveStatus.TIME_EXCEEDED
        if return_status in _CONVERGED_STATUSES:
            return SolveStatus.CONVERGED
        return SolveStatus.NOT_CONVERGED

    def _convert_options(self, max_wall_time: float | None = None) -> dict[str, Any]:
        """Convert IPOPTOptions to CasADi format."""
        opts: dict[str, Any] = {}

        opts["ipopt.max_iter"] = self.options.max_iter
        opts["ipopt.tol"] = self.options.tol
        opts["ipopt.acceptable_tol"] = self.options.acceptable_tol
        opts["ipopt.hessian_approximation"] = self.options.hessian_approximation
        opts["ipopt.mu_strategy"] = self.options.mu_strategy
        opts["ipopt.print_level"] = self.options.print_level

        # Note: linear_solver is set by the IPOPT factory
        opts.update(self.options.extra)
        # The budget always wins over extra options
        opts["ipopt.max_wall_time"] = (
            self.options.max_wall_time if max_wall_time is None else max_wall_time
        )

        log.debug(f"Full IPOPT options dict: {opts}")
        return opts

    def _create_error_result(self, error_message: str, n_vars: int, elapsed: float) -> SolverResult:
        """Create error result."""
        return SolverResult(
            status=SolveStatus.NOT_CONVERGED,
            x_opt=np.full(n_vars, np.nan),
            f_opt=float("inf"),
            g_opt=np.array([]),
            iterations=0,
            wall_time=elapsed,
            return_status="NonIpopt_Exception_Thrown",
            message=f"Solve failed: {error_message}",
        )
