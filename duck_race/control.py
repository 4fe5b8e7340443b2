from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from functools import partial
from typing import Any, Dict, Iterable, List, Optional, Tuple

from duck_race import events
from duck_race.broadcast import BroadcastChannel, Subscription
from duck_race.config import get_config
from duck_race.engine import Race, TickOutcome, TickScheduler
from duck_race.engine.data_models import TICK_INTERVAL_MS
from duck_race.engine.race_state import DEFAULT_DURATION_MS, MIN_ENTRANTS
from duck_race.errors import (
    DurationOutOfRangeError,
    RaceAlreadyRunningError,
    SchedulerStartError,
    TooFewEntrantsError,
    TooManyEntrantsError,
)

log = logging.getLogger(__name__)

MIN_DURATION_MS = int(get_config("race.min_duration_ms", 5000))
MAX_DURATION_MS = int(get_config("race.max_duration_ms", 300000))
MAX_ENTRANTS = int(get_config("race.max_entrants", 200))


@dataclass
class StartResult:
    accepted: bool
    message: str
    effective_duration_ms: int

    def to_payload(self) -> Dict[str, Any]:
        return {
            "accepted": self.accepted,
            "message": self.message,
            "effectiveDurationMs": self.effective_duration_ms,
        }


def normalize_names(names: Optional[Iterable[Any]]) -> List[str]:
    if not names:
        return []
    cleaned = []
    for name in names:
        text = str(name).strip() if name is not None else ""
        if text:
            cleaned.append(text)
    return cleaned


def validate_start_request(names: Optional[Iterable[Any]], duration_ms: Optional[int]) -> Tuple[List[str], int]:
    """
    Checks a start request without touching race state.
    Returns the cleaned names and the effective duration.
    """
    cleaned = normalize_names(names)
    if len(cleaned) < MIN_ENTRANTS:
        raise TooFewEntrantsError(f"At least {MIN_ENTRANTS} entrants are required to start a race.")
    if len(cleaned) > MAX_ENTRANTS:
        raise TooManyEntrantsError(f"A race supports at most {MAX_ENTRANTS} entrants.")

    duration = DEFAULT_DURATION_MS if duration_ms is None else duration_ms
    if isinstance(duration, bool) or not isinstance(duration, int):
        raise DurationOutOfRangeError("Race duration must be a whole number of milliseconds.")
    if not MIN_DURATION_MS <= duration <= MAX_DURATION_MS:
        raise DurationOutOfRangeError(
            f"Race duration must be between {MIN_DURATION_MS} and {MAX_DURATION_MS} ms."
        )
    return cleaned, duration


class RaceController:
    """
    The single writer in front of the race.

    Start and reset commands take the same lock as each scheduler tick, so a
    command arriving mid-tick waits for that tick to land. Observers only ever
    get a mailbox from the broadcast channel.
    """

    def __init__(
        self,
        race: Optional[Race] = None,
        channel: Optional[BroadcastChannel] = None,
        tick_interval_ms: float = TICK_INTERVAL_MS,
    ):
        self.race = race or Race(tick_interval_ms=tick_interval_ms)
        self.channel = channel or BroadcastChannel()
        self.tick_interval_ms = tick_interval_ms
        self.lock = asyncio.Lock()
        self.scheduler: Optional[TickScheduler] = None
        self.recovery: Optional[asyncio.Task] = None

    async def start(self, entrant_names: Optional[Iterable[Any]], duration_ms: Optional[int] = None) -> StartResult:
        async with self.lock:
            names, duration = validate_start_request(entrant_names, duration_ms)
            if self.race.is_running:
                raise RaceAlreadyRunningError("A race is already running.")

            self.race.start(names, duration)
            scheduler = TickScheduler(self.race, self.lock, self._on_tick, self.tick_interval_ms)
            try:
                task = scheduler.start()
            except Exception as err:
                log.exception("[RaceControl] Could not start the tick loop; returning to idle")
                self.race.reset()
                raise SchedulerStartError("The race could not be started. Please try again.") from err

            task.add_done_callback(partial(self._scheduler_done, scheduler))
            self.scheduler = scheduler
            self.channel.publish(events.race_start(self.race))
            return StartResult(True, events.start_message(duration), duration)

    async def reset(self) -> Dict[str, Any]:
        async with self.lock:
            self._stop_scheduler()
            self.race.reset()
            self.channel.publish(events.race_reset())
        return {"accepted": True, "message": events.RESET_MESSAGE}

    def current_snapshot(self) -> Dict[str, Any]:
        return events.snapshot(self.race)

    def connect_observer(self, mailbox_size: Optional[int] = None) -> Subscription:
        """
        Subscribes a new observer and queues its ``raceStatus`` snapshot first.
        Both happen without yielding to the loop, so no tick can slip between.
        """
        subscription = self.channel.subscribe(mailbox_size)
        subscription.deliver(events.race_status(self.race))
        return subscription

    async def wait_until_stopped(self) -> None:
        if self.scheduler is not None:
            await self.scheduler.join()
        if self.recovery is not None:
            await self.recovery

    async def close(self) -> None:
        self._stop_scheduler()
        if self.scheduler is not None:
            await self.scheduler.join()
        if self.recovery is not None and not self.recovery.done():
            self.recovery.cancel()
            await asyncio.gather(self.recovery, return_exceptions=True)

    def _stop_scheduler(self) -> None:
        if self.scheduler is not None:
            self.scheduler.cancel()

    def _on_tick(self, race: Race, outcome: TickOutcome) -> None:
        if outcome.terminal:
            self.channel.publish(events.race_end(race))
        else:
            self.channel.publish(events.race_update(race, outcome.now))

    def _scheduler_done(self, scheduler: TickScheduler, task: asyncio.Task) -> None:
        if task.cancelled() or not scheduler.crashed:
            return
        self.recovery = task.get_loop().create_task(self._recover_from_crash(scheduler))

    async def _recover_from_crash(self, scheduler: TickScheduler) -> None:
        # Only the generation whose loop died is reset.
        async with self.lock:
            if self.race.generation != scheduler.generation or not self.race.is_running:
                return
            log.warning("[RaceControl] Tick loop for generation %d died; resetting the race", scheduler.generation)
            self.race.reset()
            self.channel.publish(events.race_reset())
