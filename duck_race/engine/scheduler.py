from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from .data_models import TICK_INTERVAL_MS
from .race_state import Race, TickOutcome

log = logging.getLogger(__name__)


class TickScheduler:
    """
    Fixed-cadence loop driving one race generation forward.

    Each step runs under the shared command lock, so a start/reset never
    interleaves with a half-applied tick. The loop exits on its own when the
    race leaves the running phase, when every entrant has finished, or when
    the race it was started for has been reset.
    """

    def __init__(
        self,
        race: Race,
        lock: asyncio.Lock,
        on_tick: Callable[[Race, TickOutcome], None],
        interval_ms: float = TICK_INTERVAL_MS,
    ):
        self.race = race
        self.lock = lock
        self.on_tick = on_tick
        self.interval_ms = interval_ms
        self.generation = race.generation
        self.ticks = 0
        self.crashed = False
        self.task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self.task is not None and not self.task.done()

    def start(self) -> asyncio.Task:
        loop = asyncio.get_running_loop()
        self.task = loop.create_task(self.run(), name=f"race-ticks-{self.generation}")
        return self.task

    def cancel(self) -> None:
        if self.running:
            self.task.cancel()

    async def join(self) -> None:
        if self.task is None:
            return
        try:
            await self.task
        except asyncio.CancelledError:
            pass

    async def step(self) -> bool:
        """Runs one tick. Returns False once the loop should stop."""
        async with self.lock:
            if self.race.generation != self.generation or not self.race.is_running:
                return False
            outcome = self.race.tick()
            self.ticks += 1
            self.on_tick(self.race, outcome)
            return not (outcome.terminal or self.race.all_finished)

    async def run(self) -> None:
        loop = asyncio.get_running_loop()
        interval = self.interval_ms / 1000.0
        next_at = loop.time()
        try:
            while await self.step():
                next_at += interval
                await asyncio.sleep(max(0.0, next_at - loop.time()))
        except asyncio.CancelledError:
            log.debug("[TickScheduler] Generation %d cancelled after %d ticks", self.generation, self.ticks)
            raise
        except Exception:
            log.exception("[TickScheduler] Tick loop for generation %d crashed", self.generation)
            self.crashed = True
            return
        log.info("[TickScheduler] Generation %d stopped after %d ticks", self.generation, self.ticks)
