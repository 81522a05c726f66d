"""
Layout of the flat optimization vector.

The decision vector stacks eight contiguous blocks in fixed order::

    x[0..N) y[0..N) psi[0..N) v[0..N) cte[0..N) epsi[0..N) delta[0..N-1) a[0..N-1)

The constraint vector reuses the six state blocks, so ``offset(name, t)``
addresses both the state variable and its dynamics residual.
"""

from __future__ import annotations

from dataclasses import dataclass, field

STATE_NAMES: tuple[str, ...] = ("x", "y", "psi", "v", "cte", "epsi")
CONTROL_NAMES: tuple[str, ...] = ("delta", "a")


@dataclass(frozen=True)
class IndexMap:
    """Block offsets of the flat optimization vector for horizon ``horizon``."""

    horizon: int
    _starts: dict[str, int] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if isinstance(self.horizon, bool) or not isinstance(self.horizon, int):
            raise TypeError(f"horizon must be an integer, got {self.horizon!r}")
        if self.horizon < 2:
            raise ValueError(f"horizon must be at least 2, got {self.horizon}")

        n = self.horizon
        starts = {name: i * n for i, name in enumerate(STATE_NAMES)}
        starts["delta"] = len(STATE_NAMES) * n
        starts["a"] = starts["delta"] + n - 1
        object.__setattr__(self, "_starts", starts)

    @property
    def starts(self) -> dict[str, int]:
        return dict(self._starts)

    @property
    def n_controls(self) -> int:
        """Number of control timesteps (one fewer than states)."""
        return self.horizon - 1

    @property
    def n_vars(self) -> int:
        return self.horizon * len(STATE_NAMES) + self.n_controls * len(CONTROL_NAMES)

    @property
    def n_constraints(self) -> int:
        return self.horizon * len(STATE_NAMES)

    def block_length(self, name: str) -> int:
        if name in STATE_NAMES:
            return self.horizon
        if name in CONTROL_NAMES:
            return self.n_controls
        raise KeyError(f"Unknown variable block '{name}'")

    def offset(self, name: str, t: int = 0) -> int:
        """Position of ``name[t]`` in the flat vector."""
        length = self.block_length(name)
        if not 0 <= t < length:
            raise IndexError(f"{name}[{t}] outside horizon (0..{length - 1})")
        return self._starts[name] + t

    def block(self, name: str) -> slice:
        """Slice selecting the whole ``name`` block."""
        start = self.offset(name, 0)
        return slice(start, start + self.block_length(name))
