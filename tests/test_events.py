import numpy as np

from duck_race import events
from duck_race.engine import Race, SimulatedClock


def _finished_race(leader_index=1) -> Race:
    race = Race(clock=SimulatedClock(500.0), rng=np.random.default_rng(5))
    race.start(["Alice", "Bob", "Carol"], 10000)
    race.entrants[leader_index].position = 60.0
    race.clock.advance(10000)
    race.tick()
    return race


def test_messages_are_json_shaped():
    message = events.race_reset().to_message()
    assert message == {"event": "raceReset", "data": {"message": "The race has been reset."}}


def test_start_event_hides_the_winner():
    race = Race(clock=SimulatedClock(), rng=np.random.default_rng(1))
    race.start(["Alice", "Bob"], 12500)
    event = events.race_start(race)
    assert event.name == events.RACE_START
    assert event.data["message"] == "The race has started! Duration: 12 seconds"
    assert all("isWinner" not in e for e in event.data["entrants"])


def test_timeout_end_event_names_leader_at_the_bell():
    race = _finished_race()
    event = events.race_end(race)
    assert event.data["reason"] == "timeout"
    assert event.data["winner"]["name"] == "Bob"
    assert event.data["message"] == "Time's up! Leader at the bell: Bob!"
    assert [e["name"] for e in event.data["results"]] == ["Bob", "Alice", "Carol"]
    assert event.data["results"][0]["id"] == event.data["winner"]["id"]


def test_snapshot_of_finished_race_is_frozen_in_time():
    race = _finished_race()
    race.clock.advance(60000)
    snapshot = events.snapshot(race)
    assert snapshot["phase"] == "finished"
    assert snapshot["elapsedMs"] == 10000
    assert snapshot["remainingMs"] == 0
    assert snapshot["winner"]["isWinner"] in (True, False)
    assert snapshot["reason"] == "timeout"


def test_update_event_reports_timing():
    race = Race(clock=SimulatedClock(0.0), rng=np.random.default_rng(2))
    race.start(["Alice", "Bob"], 10000)
    race.clock.advance(1000)
    outcome = race.tick()
    event = events.race_update(race, outcome.now)
    assert event.data["isRunning"] is True
    assert event.data["elapsedMs"] == 1000
    assert event.data["remainingMs"] == 9000
