"""
NLP formulation of the tracking problem and its IPOPT adapter.
"""

from __future__ import annotations

from .bounds import NLPBounds, build_bounds
from .cost import assemble_cost
from .dynamics import assemble_dynamics, heading_of, polyeval, predict_next_state
from .evaluator import FGEvaluator, NonFiniteEvaluationError, constraint_residuals
from .index_map import CONTROL_NAMES, STATE_NAMES, IndexMap
from .numeric import CASADI_OPS, NUMPY_OPS, NumericOps
from .solver import IPOPTOptions, IPOPTSolver, SolverResult, SolveStatus

__all__ = [
    "CASADI_OPS",
    "CONTROL_NAMES",
    "FGEvaluator",
    "IPOPTOptions",
    "IPOPTSolver",
    "IndexMap",
    "NLPBounds",
    "NUMPY_OPS",
    "NonFiniteEvaluationError",
    "NumericOps",
    "STATE_NAMES",
    "SolveStatus",
    "SolverResult",
    "assemble_cost",
    "assemble_dynamics",
    "build_bounds",
    "constraint_residuals",
    "heading_of",
    "polyeval",
    "predict_next_state",
]
