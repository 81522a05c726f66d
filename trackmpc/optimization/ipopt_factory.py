"""
Centralized IPOPT solver factory.

All ``nlpsol`` instances of the package are created here so option handling
(linear solver, console output, time budget) stays in one place.
"""

from __future__ import annotations

from typing import Any

import casadi as ca

from trackmpc.constants import DEFAULT_LINEAR_SOLVER
from trackmpc.logging import get_logger

log = get_logger(__name__)


def build_ipopt_solver_options(
    options: dict[str, Any] | None = None,
    linear_solver: str | None = None,
    *,
    quiet: bool = True,
) -> dict[str, Any]:
    """Return a CasADi ``nlpsol`` options dict for IPOPT."""
    opts = options.copy() if options else {}

    requested = linear_solver or opts.get("ipopt.linear_solver") or DEFAULT_LINEAR_SOLVER
    opts["ipopt.linear_solver"] = requested.lower()

    if quiet:
        opts.setdefault("ipopt.print_level", 0)
        opts.setdefault("ipopt.sb", "yes")
        opts.setdefault("print_time", False)

    # Failures are reported through stats, never raised from the call
    opts.setdefault("error_on_fail", False)
    return opts


def create_ipopt_solver(
    name: str,
    nlp: Any,
    options: dict[str, Any] | None = None,
    linear_solver: str | None = None,
) -> Any:
    """
    Create an IPOPT solver with explicit linear solver configuration.

    Args:
        name: Name for the solver instance
        nlp: NLP problem definition (``{"x", "f", "g"}``)
        options: Additional solver options
        linear_solver: Linear solver to use (default: mumps)

    Returns:
        CasADi IPOPT solver instance
    """
    opts = build_ipopt_solver_options(options, linear_solver)

    log.debug(f"Creating solver '{name}' with linear solver: {opts.get('ipopt.linear_solver')}")

    return ca.nlpsol(name, "ipopt", nlp, opts)
