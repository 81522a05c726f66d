"""
Numeric backends for the cost and dynamics formulas.

The formulas are written once against a small capability set: arithmetic
operators (``+ - * / **``) plus the transcendental functions below. The same
code then evaluates with plain floats (NumPy) or builds a CasADi SX graph that
IPOPT differentiates exactly.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

import casadi as ca
import numpy as np


@dataclass(frozen=True)
class NumericOps:
    """Transcendental functions of one numeric representation."""

    name: str
    sin: Callable[[Any], Any]
    cos: Callable[[Any], Any]
    atan: Callable[[Any], Any]


NUMPY_OPS = NumericOps(name="numpy", sin=np.sin, cos=np.cos, atan=np.arctan)
CASADI_OPS = NumericOps(name="casadi", sin=ca.sin, cos=ca.cos, atan=ca.atan)
