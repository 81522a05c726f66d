"""
Controller configuration.

One immutable :class:`MPCConfig` value carries every tunable of the
controller: horizon, timestep, vehicle geometry, cost weights, actuator
limits and the solver time budget. It is validated once at construction and
passed explicitly to every component.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping

import yaml

from trackmpc import constants
from trackmpc.logging import get_logger
from trackmpc.optimization.index_map import IndexMap

log = get_logger(__name__)

FALLBACK_CHOICES = ("raise", "safe_stop")


class ConfigurationError(ValueError):
    """Raised when a configuration value is malformed."""


@dataclass(frozen=True)
class CostWeights:
    """Relative weights of the tracking objective."""

    cte: float = 2000.0
    epsi: float = 2000.0
    v: float = 1.0
    delta: float = 10.0
    a: float = 10.0
    delta_change: float = 100.0
    a_change: float = 10.0

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if not _is_finite_number(value):
                raise ConfigurationError(f"weights.{f.name} must be a finite number, got {value!r}")
            if value < 0:
                raise ConfigurationError(f"weights.{f.name} must be non-negative, got {value}")


@dataclass(frozen=True)
class MPCConfig:
    """
    Configuration of one trajectory-tracking controller.

    Attributes:
        horizon: Number of predicted timesteps N (>= 2)
        dt: Timestep duration in seconds
        ref_v: Target cruising speed
        lf: Centre of gravity to front axle distance
        weights: Cost weights
        max_steer_deg: Steering limit in degrees, symmetric
        max_accel: Acceleration limit, symmetric
        time_budget: Wall-clock seconds the solver may spend per solve
        state_bound: Magnitude standing in for an unbounded state
        fallback: ``"raise"`` or ``"safe_stop"``
        fallback_accel: Acceleration commanded by the safe-stop fallback
            (``None`` brakes at ``-max_accel``)
        solver_options: Extra IPOPT options merged over the defaults
    """

    horizon: int = constants.HORIZON
    dt: float = constants.DT.value
    ref_v: float = constants.REF_V.value
    lf: float = constants.LF.value
    weights: CostWeights = field(default_factory=CostWeights)
    max_steer_deg: float = constants.MAX_STEER_DEG.value
    max_accel: float = constants.MAX_ACCEL.value
    time_budget: float = constants.TIME_BUDGET.value
    state_bound: float = constants.UNBOUNDED
    fallback: str = "raise"
    fallback_accel: float | None = None
    solver_options: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Validate the configuration before any solve can use it."""
        self._validate_parameters()

    def _validate_parameters(self) -> None:
        if isinstance(self.horizon, bool) or not isinstance(self.horizon, int):
            raise ConfigurationError(f"horizon must be an integer, got {self.horizon!r}")
        if self.horizon < 2:
            raise ConfigurationError(f"horizon must be at least 2, got {self.horizon}")

        for name in ("dt", "ref_v", "lf", "max_steer_deg", "max_accel", "time_budget",
                     "state_bound"):
            value = getattr(self, name)
            if not _is_finite_number(value):
                raise ConfigurationError(f"{name} must be a finite number, got {value!r}")

        if self.dt <= 0:
            raise ConfigurationError(f"dt must be positive, got {self.dt}")
        if self.lf <= 0:
            raise ConfigurationError(f"lf must be positive, got {self.lf}")
        if not 0 < self.max_steer_deg < 90:
            raise ConfigurationError(
                f"max_steer_deg must be in (0, 90), got {self.max_steer_deg}"
            )
        if self.max_accel <= 0:
            raise ConfigurationError(f"max_accel must be positive, got {self.max_accel}")
        if self.time_budget <= 0:
            raise ConfigurationError(f"time_budget must be positive, got {self.time_budget}")
        if self.state_bound <= 0:
            raise ConfigurationError(f"state_bound must be positive, got {self.state_bound}")

        wall_time = self.solver_options.get("ipopt.max_wall_time")
        if wall_time is not None and wall_time != self.time_budget:
            raise ConfigurationError(
                f"solver_options ipopt.max_wall_time={wall_time!r} conflicts with "
                f"time_budget={self.time_budget}; set time_budget instead"
            )

        if not isinstance(self.weights, CostWeights):
            raise ConfigurationError("weights must be a CostWeights instance")

        if self.fallback not in FALLBACK_CHOICES:
            raise ConfigurationError(
                f"fallback must be one of {FALLBACK_CHOICES}, got {self.fallback!r}"
            )
        if self.fallback_accel is not None and not _is_finite_number(self.fallback_accel):
            raise ConfigurationError(
                f"fallback_accel must be a finite number, got {self.fallback_accel!r}"
            )
        if abs(self.safe_stop_accel) > self.max_accel:
            raise ConfigurationError(
                f"fallback_accel {self.safe_stop_accel} lies outside "
                f"[-{self.max_accel}, {self.max_accel}]"
            )

        if not constants.LF.is_valid(self.lf):
            log.warning(
                "lf=%.3f is outside the calibrated range %s", self.lf, constants.LF.valid_range,
            )

    @property
    def steering_bound(self) -> float:
        """Steering limit in radians, scaled by ``lf`` like the dynamics term."""
        return math.radians(self.max_steer_deg) * self.lf

    @property
    def safe_stop_accel(self) -> float:
        """Acceleration applied by the safe-stop fallback."""
        if self.fallback_accel is None:
            return -self.max_accel
        return float(self.fallback_accel)

    @property
    def index_map(self) -> IndexMap:
        return IndexMap(self.horizon)

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to a plain dictionary."""
        data = asdict(self)
        data["solver_options"] = dict(self.solver_options)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> MPCConfig:
        """Create a configuration from a (possibly nested) mapping."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {sorted(unknown)}")

        kwargs = dict(data)
        weights = kwargs.get("weights")
        if weights is not None and not isinstance(weights, CostWeights):
            if not isinstance(weights, Mapping):
                raise ConfigurationError("weights must be a mapping")
            weight_names = {f.name for f in fields(CostWeights)}
            bad = set(weights) - weight_names
            if bad:
                raise ConfigurationError(f"Unknown cost weights: {sorted(bad)}")
            kwargs["weights"] = CostWeights(**weights)
        if kwargs.get("solver_options") is None:
            kwargs.pop("solver_options", None)
        return cls(**kwargs)


def load_config(path: str | Path) -> MPCConfig:
    """Load a controller configuration from a YAML file."""
    p = Path(path)
    with p.open("r", encoding="utf-8") as f:
        cfg = yaml.safe_load(f)
    if cfg is None:
        cfg = {}
    if not isinstance(cfg, dict):
        raise ConfigurationError("Configuration root must be a mapping")
    log.debug("Loaded configuration from %s", p)
    return MPCConfig.from_dict(cfg)


def _is_finite_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    try:
        return math.isfinite(float(value))
    except (TypeError, ValueError):
        return False
