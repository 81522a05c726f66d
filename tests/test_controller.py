"""
End-to-end tests of the per-tick controller.

Solver-backed tests use a generous time budget so slow CI machines do not
turn a converged solve into a timeout.
"""

import threading

import numpy as np
import pytest

from trackmpc import is_ipopt_available
from trackmpc.config import MPCConfig
from trackmpc.control.controller import (
    Actuation,
    FallbackPolicy,
    MPCController,
    MPCSolveError,
)
from trackmpc.optimization.evaluator import NonFiniteEvaluationError, constraint_residuals
from trackmpc.optimization.solver import IPOPTOptions, IPOPTSolver, SolverResult, SolveStatus

requires_ipopt = pytest.mark.skipif(
    not is_ipopt_available(), reason="CasADi IPOPT plugin not available",
)

ON_PATH = (0.0, 0.0, 0.0, 120.0, 0.0, 0.0)
ZERO_PATH = (0.0, 0.0, 0.0, 0.0)
OFFSET = (0.0, 0.0, 0.0, 10.0, 0.5, 0.1)
FLAT_OFFSET_PATH = (0.2, 0.0, 0.0, 0.0)


class _RecordingSolver(IPOPTSolver):
    """Keeps the last result so tests can inspect the full trajectory."""

    last = None

    def solve(self, *args, **kwargs):
        self.last = super().solve(*args, **kwargs)
        return self.last


def _controller(**overrides):
    overrides.setdefault("time_budget", 5.0)
    return MPCController(MPCConfig(**overrides))


class TestActuation:
    def test_to_vector_layout(self):
        act = Actuation(0.1, -0.2, predicted_xy=np.array([[1.0, 2.0], [3.0, 4.0]]))
        assert act.to_vector() == [0.1, -0.2, 1.0, 2.0, 3.0, 4.0]

    def test_default_is_successful(self):
        assert Actuation(0.0, 0.0).is_successful()


@requires_ipopt
class TestScenarios:
    def test_on_path_at_target_speed_needs_no_correction(self):
        act = _controller().solve(ON_PATH, ZERO_PATH)
        assert act.status is SolveStatus.CONVERGED
        assert act.steering == pytest.approx(0.0, abs=1e-3)
        assert act.acceleration == pytest.approx(0.0, abs=1e-3)

    def test_offset_path_steers_back_and_speeds_up(self):
        act = _controller().solve(OFFSET, FLAT_OFFSET_PATH)
        assert act.is_successful()
        assert act.steering < -1e-4  # opposite sign of cte = 0.5
        assert act.acceleration > 0.0

    def test_commands_within_bounds(self):
        ctrl = _controller()
        act = ctrl.solve((0.0, 0.0, 0.0, 30.0, -1.0, 0.1), (-1.0, -0.1, 0.0, 0.0))
        assert abs(act.steering) <= ctrl.config.steering_bound
        assert abs(act.acceleration) <= ctrl.config.max_accel

    def test_converged_trajectory_satisfies_dynamics(self):
        cfg = MPCConfig(time_budget=5.0)
        solver = _RecordingSolver()
        MPCController(cfg, solver=solver).solve(OFFSET, FLAT_OFFSET_PATH)

        assert solver.last.is_successful()
        residuals = constraint_residuals(solver.last.x_opt, OFFSET, FLAT_OFFSET_PATH, cfg)
        assert np.max(np.abs(residuals)) < 1e-5

    def test_deterministic(self):
        ctrl = _controller()
        first = ctrl.solve(OFFSET, FLAT_OFFSET_PATH)
        second = ctrl.solve(OFFSET, FLAT_OFFSET_PATH)
        np.testing.assert_allclose(first.to_vector(), second.to_vector(), atol=1e-9)

    @pytest.mark.parametrize("horizon", [2, 3, 5, 10])
    def test_output_length(self, horizon):
        act = _controller(horizon=horizon).solve(ON_PATH, ZERO_PATH)
        assert act.is_successful()
        assert len(act.to_vector()) == 2 + 2 * (horizon - 2)

    def test_predicted_path_follows_heading(self):
        act = _controller().solve(ON_PATH, ZERO_PATH)
        xy = act.predicted_xy
        assert xy.shape == (8, 2)
        # 120 speed units * 0.1 s per step
        np.testing.assert_allclose(xy[:, 0], 12.0 * np.arange(1, 9), atol=1e-3)
        np.testing.assert_allclose(xy[:, 1], 0.0, atol=1e-3)

    def test_caller_supplied_initial_guess(self):
        ctrl = _controller()
        cold = ctrl.solve(OFFSET, FLAT_OFFSET_PATH)
        guess = np.zeros(ctrl.config.index_map.n_vars)
        guess[ctrl.config.index_map.block("v")] = 10.0
        warm = ctrl.solve(OFFSET, FLAT_OFFSET_PATH, initial_guess=guess)
        assert warm.steering == pytest.approx(cold.steering, abs=1e-4)

    def test_timeout_is_reported_not_trusted(self):
        ctrl = MPCController(MPCConfig(time_budget=1e-7))
        with pytest.raises(MPCSolveError) as excinfo:
            ctrl.solve(OFFSET, FLAT_OFFSET_PATH)
        assert excinfo.value.status is SolveStatus.TIME_EXCEEDED

    def test_safe_stop_fallback_on_timeout(self):
        ctrl = MPCController(MPCConfig(time_budget=1e-7, fallback="safe_stop", fallback_accel=-0.5))
        assert ctrl.fallback is FallbackPolicy.SAFE_STOP
        act = ctrl.solve(OFFSET, FLAT_OFFSET_PATH)
        assert not act.is_successful()
        assert act.status is SolveStatus.TIME_EXCEEDED
        assert act.steering == 0.0
        assert act.acceleration == pytest.approx(-0.5)
        vector = act.to_vector()
        assert len(vector) == 2 + 2 * (ctrl.config.horizon - 2)
        assert vector[:2] == [0.0, -0.5]
        assert act.predicted_xy.shape == (ctrl.config.horizon - 2, 2)


class TestInputValidation:
    def test_rejects_short_state(self):
        with pytest.raises(ValueError):
            _controller().solve((0.0, 0.0, 0.0), ZERO_PATH)

    def test_rejects_wrong_coeff_count(self):
        with pytest.raises(ValueError):
            _controller().solve(ON_PATH, (0.0, 1.0))

    def test_rejects_wrong_guess_length(self):
        with pytest.raises(ValueError):
            _controller().solve(ON_PATH, ZERO_PATH, initial_guess=np.zeros(3))

    def test_non_finite_guess_fails_before_solver(self):
        class _Untouchable(IPOPTSolver):
            def solve(self, *args, **kwargs):
                raise AssertionError("solver must not be called")

        cfg = MPCConfig()
        guess = np.zeros(cfg.index_map.n_vars)
        guess[cfg.index_map.offset("x", 3)] = 1e120
        ctrl = MPCController(cfg, solver=_Untouchable())
        with pytest.raises(NonFiniteEvaluationError):
            ctrl.solve(ON_PATH, (0.0, 0.0, 0.0, 1.0), initial_guess=guess)

    def test_degenerate_polynomial_fails_before_solver_with_default_guess(self):
        class _Untouchable(IPOPTSolver):
            def solve(self, *args, **kwargs):
                raise AssertionError("solver must not be called")

        ctrl = MPCController(MPCConfig(), solver=_Untouchable())
        with pytest.raises(NonFiniteEvaluationError, match="coeffs"):
            ctrl.solve((0.0, 0.0, 0.0, 10.0, 0.0, 0.0), (0.0, 0.0, 0.0, 1e300))


def test_solve_is_not_reentrant():
    entered = threading.Event()
    release = threading.Event()

    class _BlockingSolver(IPOPTSolver):
        def solve(self, nlp, x0=None, **kwargs):
            entered.set()
            release.wait(timeout=5.0)
            return SolverResult(
                status=SolveStatus.NOT_CONVERGED,
                x_opt=np.zeros_like(x0),
                f_opt=0.0,
                g_opt=np.array([]),
                iterations=0,
                wall_time=0.0,
                return_status="User_Requested_Stop",
                message="User requested stop",
            )

    ctrl = MPCController(MPCConfig(fallback="safe_stop"), solver=_BlockingSolver())
    worker = threading.Thread(target=ctrl.solve, args=(ON_PATH, ZERO_PATH))
    worker.start()
    try:
        assert entered.wait(timeout=5.0)
        with pytest.raises(RuntimeError, match="not re-entrant"):
            ctrl.solve(ON_PATH, ZERO_PATH)
    finally:
        release.set()
        worker.join(timeout=5.0)


def test_failure_never_returns_solver_vector():
    class _FailingSolver(IPOPTSolver):
        def solve(self, nlp, x0=None, **kwargs):
            return SolverResult(
                status=SolveStatus.NOT_CONVERGED,
                x_opt=np.full_like(x0, 7.0),
                f_opt=1.0,
                g_opt=np.array([]),
                iterations=3,
                wall_time=0.01,
                return_status="Restoration_Failed",
                message="Restoration failed",
            )

    ctrl = MPCController(MPCConfig(), solver=_FailingSolver())
    with pytest.raises(MPCSolveError, match="Restoration failed") as excinfo:
        ctrl.solve(ON_PATH, ZERO_PATH)
    assert excinfo.value.result.status is SolveStatus.NOT_CONVERGED


def _failed_result(x0, status=SolveStatus.NOT_CONVERGED):
    return SolverResult(
        status=status,
        x_opt=np.zeros_like(x0),
        f_opt=float("inf"),
        g_opt=np.array([]),
        iterations=1,
        wall_time=0.01,
        return_status="Maximum_WallTime_Exceeded",
        message="Maximum wall time exceeded",
    )


def test_time_budget_reaches_caller_supplied_solver():
    seen = []

    class _BudgetSpy(IPOPTSolver):
        def solve(self, nlp, x0=None, max_wall_time=None, **kwargs):
            seen.append(max_wall_time)
            return _failed_result(x0, SolveStatus.TIME_EXCEEDED)

    ctrl = MPCController(
        MPCConfig(time_budget=0.05, fallback="safe_stop"),
        solver=_BudgetSpy(IPOPTOptions(max_wall_time=30.0)),
    )
    act = ctrl.solve(ON_PATH, ZERO_PATH)
    assert seen == [0.05]
    assert act.status is SolveStatus.TIME_EXCEEDED


@pytest.mark.parametrize("horizon", [2, 4, 10])
def test_safe_stop_output_keeps_fixed_length(horizon):
    class _Failing(IPOPTSolver):
        def solve(self, nlp, x0=None, **kwargs):
            return _failed_result(x0)

    cfg = MPCConfig(horizon=horizon, max_accel=0.5, fallback="safe_stop")
    act = MPCController(cfg, solver=_Failing()).solve(ON_PATH, ZERO_PATH)
    assert act.acceleration == pytest.approx(-0.5)
    assert len(act.to_vector()) == 2 + 2 * (horizon - 2)
