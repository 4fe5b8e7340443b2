from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

import numpy as np

from duck_race.config import get_config
from duck_race.errors import RaceAlreadyRunningError, TooFewEntrantsError

from .data_models import (
    TICK_INTERVAL_MS,
    EndReason,
    Entrant,
    RacePhase,
    compute_base_speed,
    track_scale,
)
from .speed_model import SpeedModel

log = logging.getLogger(__name__)

DEFAULT_DURATION_MS = int(get_config("race.default_duration_ms", 30000))
MIN_ENTRANTS = int(get_config("race.min_entrants", 2))
# Only the designated winner may cross this line; everyone else is held short of it.
FINISH_THRESHOLD = float(get_config("race.finish_threshold", 98.0))
HOLD_POSITION = float(get_config("race.hold_position", 99.0))
PALETTE: Sequence[str] = tuple(get_config("display.palette", ("#FFD700", "#4A90E2", "#E74C3C", "#9B59B6")))


def wall_clock_ms() -> float:
    return time.time() * 1000.0


class SimulatedClock:
    """Manually advanced millisecond clock for replays and tests."""

    def __init__(self, start_ms: float = 0.0, auto_step_ms: float = 0.0):
        self.now = start_ms
        self.auto_step_ms = auto_step_ms

    def __call__(self) -> float:
        current = self.now
        self.now += self.auto_step_ms
        return current

    def advance(self, ms: float) -> None:
        self.now += ms


@dataclass
class TickOutcome:
    now: float
    advanced: bool
    end_reason: Optional[EndReason] = None

    @property
    def terminal(self) -> bool:
        return self.end_reason is not None


class Race:
    """
    Authoritative race state machine (idle -> running -> finished).

    Owns the entrant list and every transition. The tick scheduler and the
    control surface hold a reference to one instance; nothing else mutates it.
    """

    def __init__(
        self,
        duration_ms: int = DEFAULT_DURATION_MS,
        clock: Optional[Callable[[], float]] = None,
        rng: Optional[np.random.Generator] = None,
        speed_model: Optional[SpeedModel] = None,
        tick_interval_ms: float = TICK_INTERVAL_MS,
    ):
        self.clock = clock or wall_clock_ms
        self.rng = rng if rng is not None else np.random.default_rng()
        self.speed_model = speed_model or SpeedModel(self.rng)
        self.tick_interval_ms = tick_interval_ms
        self.duration_ms = duration_ms
        self.generation = 0
        self._clear()

    def _clear(self) -> None:
        self.phase = RacePhase.IDLE
        self.entrants: List[Entrant] = []
        self.winner: Optional[Entrant] = None
        self.start_time: Optional[float] = None
        self.deadline: Optional[float] = None
        self.end_time: Optional[float] = None
        self.end_reason: Optional[EndReason] = None
        self.bell_order: List[Entrant] = []

    @property
    def is_running(self) -> bool:
        return self.phase is RacePhase.RUNNING

    @property
    def is_finished(self) -> bool:
        return self.phase is RacePhase.FINISHED

    @property
    def all_finished(self) -> bool:
        return bool(self.entrants) and all(e.finished for e in self.entrants)

    def start(self, names: Sequence[str], duration_ms: int) -> None:
        """Builds the full field and moves to running in one step."""
        if self.is_running:
            raise RaceAlreadyRunningError("A race is already running.")
        if len(names) < MIN_ENTRANTS:
            raise TooFewEntrantsError(f"At least {MIN_ENTRANTS} entrants are required to start a race.")

        winner_index = int(self.rng.integers(len(names)))
        base_speed = compute_base_speed(duration_ms, self.tick_interval_ms)
        entrants = [
            Entrant(
                entrant_id=f"duck_{idx}",
                name=name,
                color=self._pick_color(),
                base_speed=base_speed,
                is_winner=idx == winner_index,
                personality=float(self.rng.random()),
                index=idx,
            )
            for idx, name in enumerate(names)
        ]

        now = self.clock()
        self._clear()
        self.generation += 1
        self.duration_ms = duration_ms
        self.entrants = entrants
        self.start_time = now
        self.deadline = now + duration_ms
        self.phase = RacePhase.RUNNING
        log.info(
            "[Race] Started generation %d with %d entrants for %d ms",
            self.generation,
            len(entrants),
            duration_ms,
        )

    def reset(self) -> None:
        """Discards the current race, keeping only the configured duration."""
        self._clear()
        self.generation += 1
        log.info("[Race] Reset to idle (duration %d ms kept)", self.duration_ms)

    def tick(self, now: Optional[float] = None) -> TickOutcome:
        now = self.clock() if now is None else now
        if not self.is_running:
            return TickOutcome(now=now, advanced=False)

        if now >= self.deadline:
            self._finish_by_timeout(now)
            return TickOutcome(now=now, advanced=True, end_reason=EndReason.TIMEOUT)

        time_progress = (now - self.start_time) / self.duration_ms
        runners = [e for e in self.entrants if not e.finished]
        # Every speed is computed from the previous tick's positions before any is applied.
        speeds = [(entrant, self.speed_model.speed_for(entrant, time_progress)) for entrant in runners]
        scale = track_scale(tick_interval_ms=self.tick_interval_ms)
        for entrant, speed in speeds:
            entrant.current_speed = speed
            entrant.speed_ms = round(speed * scale, 2)
            new_position = entrant.position + speed
            if not math.isfinite(new_position):
                log.warning("[Race] Non-finite position for %s; holding at %s", entrant.name, entrant.position)
                continue
            entrant.position = min(new_position, 100.0)

        if self._check_finish_line(now):
            return TickOutcome(now=now, advanced=True, end_reason=EndReason.FINISHED)
        return TickOutcome(now=now, advanced=True)

    def _check_finish_line(self, now: float) -> bool:
        winner_crossed = False
        for entrant in self.entrants:
            if entrant.finished or entrant.position < FINISH_THRESHOLD:
                continue
            if entrant.is_winner:
                entrant.mark_finished(now)
                self.winner = entrant
                winner_crossed = True
            else:
                entrant.position = HOLD_POSITION

        if winner_crossed:
            self._end(now, EndReason.FINISHED)
        return winner_crossed

    def _finish_by_timeout(self, now: float) -> None:
        # Standings are frozen before everyone is snapped to the line; ties keep start order.
        self.bell_order = sorted(self.entrants, key=lambda e: (-e.position, e.index))
        leader = self.bell_order[0]
        for entrant in self.entrants:
            if not entrant.finished:
                entrant.mark_finished(now)
        self.winner = leader
        self._end(now, EndReason.TIMEOUT)

    def _end(self, now: float, reason: EndReason) -> None:
        self.phase = RacePhase.FINISHED
        self.end_time = now
        self.end_reason = reason
        log.info("[Race] Finished (%s); winner %s", reason.value, self.winner.name if self.winner else None)

    def _pick_color(self) -> str:
        return PALETTE[int(self.rng.integers(len(PALETTE)))]

    def elapsed_ms(self, now: Optional[float] = None) -> float:
        if self.start_time is None:
            return 0.0
        if self.end_time is not None:
            return self.end_time - self.start_time
        now = self.clock() if now is None else now
        return max(0.0, now - self.start_time)

    def remaining_ms(self, now: Optional[float] = None) -> Optional[float]:
        if self.deadline is None:
            return None
        if self.end_time is not None:
            return max(0.0, self.deadline - self.end_time)
        now = self.clock() if now is None else now
        return max(0.0, self.deadline - now)

    def ordered_results(self) -> List[Entrant]:
        """
        Finishers by finish time, then everyone else by position.
        After a timeout, the standings at the bell.
        """
        if self.end_reason is EndReason.TIMEOUT:
            return list(self.bell_order)
        return sorted(
            self.entrants,
            key=lambda e: (e.finish_time is None, e.finish_time or 0.0, -e.position),
        )
