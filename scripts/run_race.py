"""
Utility script to run a single duck race in the terminal.

Usage:
    python scripts/run_race.py Alice Bob Carol --duration 10
    python scripts/run_race.py Alice Bob Carol --duration 60 --fast --seed 7

``--fast`` replays the race on a simulated clock instead of waiting for the
wall clock, ticking exactly as the live server would.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys

import numpy as np

# Ensure repo root is on sys.path when script is executed from anywhere
REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if REPO_ROOT not in sys.path:
    sys.path.append(REPO_ROOT)

from duck_race import events  # noqa: E402
from duck_race.control import RaceController, validate_start_request  # noqa: E402
from duck_race.engine import Race, SimulatedClock  # noqa: E402
from duck_race.errors import RaceControlError  # noqa: E402

UPDATE_EVERY_TICKS = 10


def run_fast(names, duration_ms, seed=None) -> Race:
    clock = SimulatedClock()
    race = Race(clock=clock, rng=np.random.default_rng(seed))
    race.start(names, duration_ms)
    while race.is_running:
        clock.advance(race.tick_interval_ms)
        race.tick()
    return race


async def run_live(names, duration_ms, seed=None) -> dict:
    controller = RaceController(race=Race(rng=np.random.default_rng(seed)))
    subscription = controller.connect_observer()
    await controller.start(names, duration_ms)
    ticks = 0
    try:
        async for event in subscription:
            if event.name == events.RACE_UPDATE:
                ticks += 1
                if ticks % UPDATE_EVERY_TICKS == 0:
                    leader = max(event.data["entrants"], key=lambda e: e["position"])
                    print(f"{event.data['elapsedMs'] / 1000:5.1f}s  leader: {leader['name']} ({leader['position']:.1f}%)")
            elif event.name == events.RACE_END:
                return event.data
    finally:
        subscription.close()
        await controller.close()


def print_results(results, message) -> None:
    print(f"\n{message}\n\nFinish Order:")
    for idx, entrant in enumerate(results, start=1):
        print(f"{idx}. {entrant['name']} ({entrant['position']:.1f}%)")


def main() -> None:
    parser = argparse.ArgumentParser(description="Run a duck race simulation.")
    parser.add_argument("names", nargs="+", help="Entrant names.")
    parser.add_argument("--duration", type=int, default=30, help="Race length in seconds.")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for a repeatable race.")
    parser.add_argument("--fast", action="store_true", help="Simulate time instead of waiting.")
    args = parser.parse_args()
    logging.basicConfig(level=logging.WARNING)

    try:
        names, duration_ms = validate_start_request(args.names, args.duration * 1000)
    except RaceControlError as err:
        parser.error(err.message)
    if args.fast:
        race = run_fast(names, duration_ms, args.seed)
        end = events.race_end(race).data
    else:
        end = asyncio.run(run_live(names, duration_ms, args.seed))
    print_results(end["results"], end["message"])


if __name__ == "__main__":
    main()
