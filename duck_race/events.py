"""
Event names and payload builders for everything pushed to observers.

Payload keys are camelCase because they go straight onto the wire.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from duck_race.engine.data_models import EndReason, RacePhase
from duck_race.engine.race_state import Race

RACE_STATUS = "raceStatus"
RACE_START = "raceStart"
RACE_UPDATE = "raceUpdate"
RACE_END = "raceEnd"
RACE_RESET = "raceReset"

RESET_MESSAGE = "The race has been reset."


@dataclass(frozen=True)
class RaceEvent:
    name: str
    data: Dict[str, Any] = field(default_factory=dict)

    def to_message(self) -> Dict[str, Any]:
        return {"event": self.name, "data": self.data}


def _entrants(race: Race):
    reveal = race.phase is RacePhase.FINISHED
    return [entrant.to_payload(reveal_winner=reveal) for entrant in race.entrants]


def start_message(duration_ms: int) -> str:
    return f"The race has started! Duration: {duration_ms // 1000} seconds"


def end_message(race: Race) -> str:
    name = race.winner.name if race.winner else "?"
    if race.end_reason is EndReason.TIMEOUT:
        return f"Time's up! Leader at the bell: {name}!"
    return f"The winner is {name}!"


def snapshot(race: Race, now: Optional[float] = None) -> Dict[str, Any]:
    """Full read-only view of the race, used for connect snapshots and status queries."""
    return {
        "phase": race.phase.value,
        "isRunning": race.is_running,
        "isFinished": race.is_finished,
        "entrants": _entrants(race),
        "winner": race.winner.to_payload(reveal_winner=True) if race.winner else None,
        "reason": race.end_reason.value if race.end_reason else None,
        "durationMs": race.duration_ms,
        "startTime": race.start_time,
        "deadline": race.deadline,
        "endTime": race.end_time,
        "elapsedMs": race.elapsed_ms(now),
        "remainingMs": race.remaining_ms(now),
    }


def race_status(race: Race, now: Optional[float] = None) -> RaceEvent:
    return RaceEvent(RACE_STATUS, snapshot(race, now))


def race_start(race: Race) -> RaceEvent:
    return RaceEvent(
        RACE_START,
        {
            "entrants": _entrants(race),
            "durationMs": race.duration_ms,
            "message": start_message(race.duration_ms),
        },
    )


def race_update(race: Race, now: Optional[float] = None) -> RaceEvent:
    return RaceEvent(
        RACE_UPDATE,
        {
            "entrants": _entrants(race),
            "isRunning": race.is_running,
            "isFinished": race.is_finished,
            "durationMs": race.duration_ms,
            "elapsedMs": race.elapsed_ms(now),
            "remainingMs": race.remaining_ms(now),
        },
    )


def race_end(race: Race) -> RaceEvent:
    return RaceEvent(
        RACE_END,
        {
            "winner": race.winner.to_payload(reveal_winner=True) if race.winner else None,
            "results": [entrant.to_payload(reveal_winner=True) for entrant in race.ordered_results()],
            "message": end_message(race),
            "reason": race.end_reason.value if race.end_reason else None,
        },
    )


def race_reset() -> RaceEvent:
    return RaceEvent(RACE_RESET, {"message": RESET_MESSAGE})
