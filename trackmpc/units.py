"""Controller defaults that carry their unit and provenance.

Usage:
    from trackmpc.constants import LF

    if not LF.is_valid(config.lf):
        ...
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class PhysicalConstant:
    """A default value together with its unit, origin and calibrated range."""

    value: float
    unit: str
    source: str
    valid_range: tuple[float, float] | None = None
    notes: str = ""

    def is_valid(self, candidate: float) -> bool:
        """True when ``candidate`` lies inside the calibrated range (or none is set)."""
        if self.valid_range is None:
            return True
        low, high = self.valid_range
        return low <= candidate <= high

    def __float__(self) -> float:
        return self.value

    def __repr__(self) -> str:
        return f"PhysicalConstant({self.value} {self.unit})"
