"""
Control layer: actuation extraction and the per-tick controller.
"""

from __future__ import annotations

from .controller import Actuation, FallbackPolicy, MPCController, MPCSolveError
from .extraction import extract_controls

__all__ = [
    "Actuation",
    "FallbackPolicy",
    "MPCController",
    "MPCSolveError",
    "extract_controls",
]
