"""
Race engine package for the live duck race.

Split into the entrant data model, the stochastic speed model with its
discrete sampler, the race state machine, and the tick scheduler that drives
it. Broadcasting and control live one level up and compose these pieces.
"""

from .data_models import (  # noqa: F401
    EndReason,
    Entrant,
    RacePhase,
    compute_base_speed,
    track_scale,
)
from .sampling import DiscreteDistribution, weighted_index  # noqa: F401
from .speed_model import Band, BandProfile, SpeedContext, SpeedModel  # noqa: F401
from .race_state import Race, SimulatedClock, TickOutcome  # noqa: F401
from .scheduler import TickScheduler  # noqa: F401

__all__ = [
    "EndReason",
    "Entrant",
    "RacePhase",
    "compute_base_speed",
    "track_scale",
    "DiscreteDistribution",
    "weighted_index",
    "Band",
    "BandProfile",
    "SpeedContext",
    "SpeedModel",
    "Race",
    "SimulatedClock",
    "TickOutcome",
    "TickScheduler",
]
