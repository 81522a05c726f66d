"""trackmpc: receding-horizon path tracking with CasADi and Ipopt."""
from __future__ import annotations

import os

from trackmpc.logging import get_logger

__version__ = "0.1.0"

log = get_logger(__name__)

# Cached result of the IPOPT probe
_IPOPT_AVAILABLE: bool | None = None


def _check_ipopt_availability() -> bool:
    """Check if ipopt is available in CasADi (fast, import-time friendly)."""
    global _IPOPT_AVAILABLE

    if _IPOPT_AVAILABLE is not None:
        return _IPOPT_AVAILABLE

    # Skip validation if explicitly disabled
    if os.getenv("TRACKMPC_SKIP_VALIDATION") == "1":
        _IPOPT_AVAILABLE = True
        return _IPOPT_AVAILABLE

    try:
        import casadi as ca

        from trackmpc.optimization.ipopt_factory import create_ipopt_solver

        x = ca.SX.sym("x")
        create_ipopt_solver("ipopt_probe", {"x": x, "f": x**2})
        _IPOPT_AVAILABLE = True
    except (ImportError, RuntimeError) as exc:
        _IPOPT_AVAILABLE = False
        log.warning("IPOPT solver is not available in CasADi: %s", exc)

    return _IPOPT_AVAILABLE


def is_ipopt_available() -> bool:
    """
    Check if ipopt solver is available.

    Returns:
        True if ipopt is available, False otherwise
    """
    return _check_ipopt_availability()


from trackmpc.config import ConfigurationError, CostWeights, MPCConfig, load_config  # noqa: E402
from trackmpc.control import (  # noqa: E402
    Actuation,
    FallbackPolicy,
    MPCController,
    MPCSolveError,
)
from trackmpc.optimization import NonFiniteEvaluationError, SolveStatus  # noqa: E402

__all__ = [
    "Actuation",
    "ConfigurationError",
    "CostWeights",
    "FallbackPolicy",
    "MPCConfig",
    "MPCController",
    "MPCSolveError",
    "NonFiniteEvaluationError",
    "SolveStatus",
    "is_ipopt_available",
    "load_config",
]
