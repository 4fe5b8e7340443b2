from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from duck_race.config import get_config

log = logging.getLogger(__name__)

TICK_INTERVAL_MS = float(get_config("race.tick_interval_ms", 100))
ACCELERATION_FACTOR = float(get_config("race.acceleration_factor", 1.5))
FALLBACK_BASE_SPEED = 0.5
TRACK_LENGTH_M = float(get_config("track.length_m", 1000.0))


class RacePhase(Enum):
    """Race lifecycle phases."""

    IDLE = "idle"
    RUNNING = "running"
    FINISHED = "finished"


class EndReason(Enum):
    FINISHED = "finished"
    TIMEOUT = "timeout"


def compute_base_speed(
    duration_ms: float,
    tick_interval_ms: float = TICK_INTERVAL_MS,
    acceleration_factor: float = ACCELERATION_FACTOR,
) -> float:
    """
    Percentage-per-tick speed that would cover the track in exactly
    ``duration_ms``, scaled by the acceleration headroom factor.

    Invalid inputs never leak into the simulation: a non-positive or
    non-finite result is replaced by ``FALLBACK_BASE_SPEED``.
    """
    try:
        ticks = duration_ms / tick_interval_ms
        base_speed = (100.0 / ticks) * acceleration_factor
    except (ZeroDivisionError, TypeError):
        base_speed = float("nan")

    if not math.isfinite(base_speed) or base_speed <= 0:
        log.warning(
            "Invalid base speed %r (duration_ms=%r, tick_interval_ms=%r); using %s",
            base_speed,
            duration_ms,
            tick_interval_ms,
            FALLBACK_BASE_SPEED,
        )
        return FALLBACK_BASE_SPEED
    return base_speed


def track_scale(
    track_length_m: float = TRACK_LENGTH_M,
    tick_interval_ms: float = TICK_INTERVAL_MS,
) -> float:
    """Converts percent-per-tick into metres per second."""
    return (track_length_m / 100.0) / (tick_interval_ms / 1000.0)


@dataclass
class Entrant:
    """Mutable per-race entrant state. Only the tick step mutates it."""

    entrant_id: str
    name: str
    color: str
    base_speed: float
    is_winner: bool
    personality: float
    index: int
    position: float = 0.0
    current_speed: float = 0.0
    speed_ms: float = 0.0
    finished: bool = False
    finish_time: Optional[float] = None

    def __post_init__(self) -> None:
        if not math.isfinite(self.base_speed) or self.base_speed <= 0:
            log.warning("Entrant %s created with invalid base speed %r", self.entrant_id, self.base_speed)
            self.base_speed = FALLBACK_BASE_SPEED

    def mark_finished(self, now: float, position: float = 100.0) -> None:
        self.position = position
        self.finished = True
        if self.finish_time is None:
            self.finish_time = now

    def to_payload(self, reveal_winner: bool = False) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.entrant_id,
            "name": self.name,
            "color": self.color,
            "position": self.position,
            "baseSpeed": self.base_speed,
            "speed": self.current_speed,
            "speedMs": self.speed_ms,
            "finished": self.finished,
            "finishTime": self.finish_time,
            "personality": self.personality,
        }
        if reveal_winner:
            payload["isWinner"] = self.is_winner
        return payload
