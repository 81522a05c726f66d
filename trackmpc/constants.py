"""Default constants for the trajectory-tracking controller.

Physical and tuning defaults use :class:`PhysicalConstant` for traceability.
Pure solver settings are raw values.
"""

from __future__ import annotations

from trackmpc.units import PhysicalConstant

# =============================================================================
# Vehicle model
# =============================================================================

LF = PhysicalConstant(
    value=2.67,
    unit="m",
    source="Measured turning radius at constant steering and speed on flat terrain",
    valid_range=(0.5, 10.0),
    notes=(
        "Distance from centre of gravity to front axle. Tuned until the "
        "kinematic model reproduced the measured circle radius."
    ),
)

REF_V = PhysicalConstant(
    value=120.0,
    unit="speed units of the state vector",
    source="Cruise target of the reference track",
    notes="Target speed tracked by the velocity cost term",
)

MAX_STEER_DEG = PhysicalConstant(
    value=25.0,
    unit="deg",
    source="Simulator steering actuator limit",
    valid_range=(0.0, 90.0),
    notes="Symmetric; scaled by LF in the variable bounds",
)

MAX_ACCEL = PhysicalConstant(
    value=1.0,
    unit="normalized throttle",
    source="Simulator throttle/brake command range",
    notes="-1 is full brake, +1 is full throttle",
)

# =============================================================================
# Horizon
# =============================================================================

HORIZON = 10
DT = PhysicalConstant(
    value=0.1,
    unit="s",
    source="Controller tuning, 1 s look-ahead with HORIZON steps",
)

# =============================================================================
# Solver
# =============================================================================

# IPOPT treats |bound| >= 1e19 as unbounded (nlp_upper_bound_inf default)
UNBOUNDED = 1.0e19

# Wall-clock budget per solve. Must stay below the control loop period.
TIME_BUDGET = PhysicalConstant(
    value=0.5,
    unit="s",
    source="Control loop cadence of the simulator bridge",
    notes="Raise only together with the loop period",
)

# Linear solver bundled with the CasADi wheels
DEFAULT_LINEAR_SOLVER = "mumps"
