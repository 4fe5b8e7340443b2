import asyncio
import logging
import unittest

import numpy as np

from duck_race.engine import Race, SimulatedClock, TickScheduler


def _race(seed=0) -> Race:
    return Race(clock=SimulatedClock(0.0, auto_step_ms=100.0), rng=np.random.default_rng(seed))


class TickSchedulerTests(unittest.IsolatedAsyncioTestCase):
    async def test_step_refuses_when_race_is_idle(self):
        outcomes = []
        scheduler = TickScheduler(_race(), asyncio.Lock(), lambda race, outcome: outcomes.append(outcome))
        self.assertFalse(await scheduler.step())
        self.assertEqual(outcomes, [])

    async def test_step_refuses_after_race_generation_changes(self):
        race = _race()
        race.start(["A", "B"], 5000)
        scheduler = TickScheduler(race, asyncio.Lock(), lambda race, outcome: None)

        self.assertTrue(await scheduler.step())
        race.reset()
        race.start(["C", "D"], 5000)
        self.assertFalse(await scheduler.step())
        self.assertEqual(scheduler.ticks, 1)

    async def test_run_stops_on_terminal_tick(self):
        race = _race(7)
        race.start(["A", "B", "C"], 5000)
        outcomes = []
        scheduler = TickScheduler(race, asyncio.Lock(), lambda race, outcome: outcomes.append(outcome), interval_ms=0)

        scheduler.start()
        await asyncio.wait_for(scheduler.join(), timeout=5)

        self.assertTrue(race.is_finished)
        self.assertTrue(outcomes[-1].terminal)
        self.assertEqual(sum(outcome.terminal for outcome in outcomes), 1)
        self.assertEqual(scheduler.ticks, len(outcomes))
        self.assertFalse(scheduler.running)

    async def test_cancel_stops_the_loop(self):
        race = _race()
        race.start(["A", "B"], 300000)
        scheduler = TickScheduler(race, asyncio.Lock(), lambda race, outcome: None, interval_ms=50)

        scheduler.start()
        await asyncio.sleep(0)
        scheduler.cancel()
        await scheduler.join()

        self.assertFalse(scheduler.running)
        self.assertTrue(race.is_running)

    async def test_crashing_tick_is_logged_and_ends_loop(self):
        race = _race()
        race.start(["A", "B"], 5000)

        def explode(race, outcome):
            raise RuntimeError("boom")

        scheduler = TickScheduler(race, asyncio.Lock(), explode, interval_ms=0)
        with self.assertLogs("duck_race.engine.scheduler", level=logging.ERROR):
            scheduler.start()
            await scheduler.join()
        self.assertEqual(scheduler.ticks, 1)


if __name__ == "__main__":
    unittest.main()
