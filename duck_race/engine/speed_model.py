from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Sequence, Tuple

import numpy as np

from duck_race.config import get_config

from .data_models import Entrant
from .sampling import DiscreteDistribution

log = logging.getLogger(__name__)


class Band(Enum):
    EARLY = "early"
    MID = "mid"
    LATE = "late"


@dataclass(frozen=True)
class BandProfile:
    base_weight: float
    variance: float
    burst_chance: float
    slow_chance: float


# Winner builds towards a closing burst; the rest of the field starts fast and fades.
DEFAULT_BANDS = {
    True: {
        Band.EARLY: BandProfile(0.4, 0.3, 0.05, 0.2),
        Band.MID: BandProfile(0.7, 0.4, 0.25, 0.1),
        Band.LATE: BandProfile(1.2, 0.5, 0.6, 0.05),
    },
    False: {
        Band.EARLY: BandProfile(1.0, 0.6, 0.4, 0.1),
        Band.MID: BandProfile(0.6, 0.4, 0.2, 0.3),
        Band.LATE: BandProfile(0.3, 0.3, 0.05, 0.5),
    },
}

DEFAULT_BURST = DiscreteDistribution((1.2, 1.5, 1.8, 2.2, 2.8), (0.4, 0.3, 0.2, 0.08, 0.02))
DEFAULT_SLOW = DiscreteDistribution((0.8, 0.6, 0.4, 0.2, 0.1), (0.3, 0.3, 0.25, 0.1, 0.05))

# Upper bound on speed as a multiple of base speed, by position progress.
DEFAULT_SPEED_CAPS = {Band.EARLY: 1.5, Band.MID: 4.0, Band.LATE: 2.0}
SPEED_CAP_BOUNDS = (0.4, 0.9)
WEIGHT_BAND_BOUNDS = (0.5, 0.8)

FALLBACK_MULTIPLIER = 1.0


def _config_band_table() -> Dict[bool, Dict[Band, BandProfile]]:
    table = get_config("speed_model.bands", {})
    result: Dict[bool, Dict[Band, BandProfile]] = {}
    for is_winner, fallback in DEFAULT_BANDS.items():
        role_entry = table.get("winner" if is_winner else "field") if isinstance(table, dict) else None
        role_map: Dict[Band, BandProfile] = {}
        for band, default_profile in fallback.items():
            entry = role_entry.get(band.value) if isinstance(role_entry, dict) else None
            if isinstance(entry, dict):
                try:
                    role_map[band] = BandProfile(
                        float(entry.get("base_weight", default_profile.base_weight)),
                        float(entry.get("variance", default_profile.variance)),
                        float(entry.get("burst_chance", default_profile.burst_chance)),
                        float(entry.get("slow_chance", default_profile.slow_chance)),
                    )
                    continue
                except (TypeError, ValueError):
                    log.error("Malformed speed band config for %s/%s", "winner" if is_winner else "field", band.value)
            role_map[band] = default_profile
        result[is_winner] = role_map
    return result


def _config_distribution(key: str, fallback: DiscreteDistribution) -> DiscreteDistribution:
    entry = get_config(f"speed_model.{key}")
    if not isinstance(entry, dict):
        return fallback
    try:
        return DiscreteDistribution(
            tuple(float(v) for v in entry["multipliers"]),
            tuple(float(p) for p in entry["probabilities"]),
        )
    except (KeyError, TypeError, ValueError) as err:
        log.error("Malformed speed_model.%s config: %s", key, err)
        return fallback


def _config_caps() -> Dict[Band, float]:
    entry = get_config("speed_model.speed_caps", {})
    caps = dict(DEFAULT_SPEED_CAPS)
    if isinstance(entry, dict):
        for band in Band:
            if band.value in entry:
                caps[band] = float(entry[band.value])
    return caps


BANDS = _config_band_table()
BURST_DISTRIBUTION = _config_distribution("burst", DEFAULT_BURST)
SLOW_DISTRIBUTION = _config_distribution("slow", DEFAULT_SLOW)
SPEED_CAPS = _config_caps()
NOISE_AMPLITUDES: Tuple[float, float, float] = tuple(get_config("speed_model.noise_amplitudes", (0.3, 0.2, 0.1)))
PACING_GAP = float(get_config("speed_model.pacing_gap", 5.0))
PACING_CATCH_UP = float(get_config("speed_model.pacing_catch_up", 2.0))
PACING_SLOW_DOWN = float(get_config("speed_model.pacing_slow_down", 0.5))
MIN_MULTIPLIER = float(get_config("speed_model.min_multiplier", 0.05))
MAX_MULTIPLIER = float(get_config("speed_model.max_multiplier", 3.0))
MIN_SPEED = float(get_config("speed_model.min_speed", 0.01))


def weight_band(position_progress: float) -> Band:
    if position_progress < WEIGHT_BAND_BOUNDS[0]:
        return Band.EARLY
    if position_progress < WEIGHT_BAND_BOUNDS[1]:
        return Band.MID
    return Band.LATE


def cap_band(position_progress: float) -> Band:
    if position_progress < SPEED_CAP_BOUNDS[0]:
        return Band.EARLY
    if position_progress < SPEED_CAP_BOUNDS[1]:
        return Band.MID
    return Band.LATE


def organic_noise(
    time_progress: float,
    position_progress: float,
    index: int,
    amplitudes: Sequence[float] = NOISE_AMPLITUDES,
) -> float:
    a, b, c = amplitudes
    return (
        a * math.sin(time_progress * math.pi * 2 + index * 0.5)
        + b * math.cos(position_progress * math.pi * 3 + index * 0.3)
        + c * math.sin(time_progress * math.pi * 4 + position_progress * math.pi * 2)
    )


@dataclass
class SpeedContext:
    """Inputs for one entrant's speed on the current tick."""

    position_progress: float
    time_progress: float
    index: int
    is_winner: bool


class SpeedModel:
    """
    Stochastic per-tick velocity function.

    Produces a percent-per-tick speed for one entrant from its progress, the
    race clock and its role. The only side effect is consuming draws from the
    random generator.
    """

    def __init__(
        self,
        rng: Optional[np.random.Generator] = None,
        bands: Optional[Dict[bool, Dict[Band, BandProfile]]] = None,
        burst: DiscreteDistribution = BURST_DISTRIBUTION,
        slow: DiscreteDistribution = SLOW_DISTRIBUTION,
    ):
        self.rng = rng if rng is not None else np.random.default_rng()
        self.bands = bands or BANDS
        self.burst = burst
        self.slow = slow

    def context_for(self, entrant: Entrant, time_progress: float) -> SpeedContext:
        return SpeedContext(
            position_progress=entrant.position / 100.0,
            time_progress=time_progress,
            index=entrant.index,
            is_winner=entrant.is_winner,
        )

    def speed_for(self, entrant: Entrant, time_progress: float) -> float:
        return self.compute(entrant.base_speed, self.context_for(entrant, time_progress), label=entrant.name)

    def compute(self, base_speed: float, ctx: SpeedContext, label: str = "?") -> float:
        base_speed = _finite_or(base_speed, MIN_SPEED, "base_speed", label)
        position_progress = _finite_or(ctx.position_progress, 0.0, "position_progress", label)
        time_progress = _finite_or(ctx.time_progress, 0.0, "time_progress", label)

        profile = self.bands[ctx.is_winner][weight_band(position_progress)]
        multiplier = profile.base_weight + (self.rng.random() - 0.5) * profile.variance

        if ctx.is_winner:
            target_position = time_progress * 100.0
            gap = target_position - position_progress * 100.0
            if gap > PACING_GAP:
                multiplier = max(multiplier, PACING_CATCH_UP)
            elif gap < -PACING_GAP:
                multiplier = min(multiplier, PACING_SLOW_DOWN)
        multiplier = _finite_or(multiplier, FALLBACK_MULTIPLIER, "multiplier before noise", label)

        multiplier += organic_noise(time_progress, position_progress, ctx.index)
        multiplier = _finite_or(multiplier, FALLBACK_MULTIPLIER, "multiplier after noise", label)

        roll = self.rng.random()
        if roll < profile.burst_chance:
            multiplier *= self.burst.sample(self.rng)
        elif roll < profile.burst_chance + profile.slow_chance:
            multiplier *= self.slow.sample(self.rng)
        multiplier = _finite_or(multiplier, FALLBACK_MULTIPLIER, "multiplier after events", label)

        multiplier = float(np.clip(multiplier, MIN_MULTIPLIER, MAX_MULTIPLIER))

        speed = _finite_or(base_speed * multiplier, MIN_SPEED, "speed", label)
        max_speed = base_speed * SPEED_CAPS[cap_band(position_progress)]
        return float(max(MIN_SPEED, min(speed, max_speed)))


def _finite_or(value: float, fallback: float, what: str, label: str) -> float:
    if value is None or not math.isfinite(value):
        log.warning("[SpeedModel] Non-finite %s (%r) for %s; using %s", what, value, label, fallback)
        return fallback
    return value
