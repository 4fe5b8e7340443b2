import unittest
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

from duck_race import events
from duck_race.bot.commands import RaceCommands, build_status_embed, parse_names
from duck_race.bot.race_broadcast import (
    RaceBroadcastCog,
    build_final_embed,
    build_live_embed,
    format_duration_ms,
    render_board,
)
from duck_race.control import StartResult
from duck_race.errors import TooFewEntrantsError


def _entrant(name, position):
    return {"id": name.lower(), "name": name, "position": position}


class FormattingTests(unittest.TestCase):
    def test_parse_names_splits_and_trims(self):
        self.assertEqual(parse_names("Alice, Bob;Carol\n Dave ,, "), ["Alice", "Bob", "Carol", "Dave"])
        self.assertEqual(parse_names(""), [])

    def test_format_duration(self):
        self.assertEqual(format_duration_ms(None), "-")
        self.assertEqual(format_duration_ms(2500), "2.5s")
        self.assertEqual(format_duration_ms(65000), "1m 05.0s")
        self.assertEqual(format_duration_ms(-10), "0.0s")

    def test_board_puts_leader_first_and_ties_by_lane(self):
        board = render_board([_entrant("Slow", 10.0), _entrant("Fast", 80.0), _entrant("Also", 80.0)])
        lines = board.strip("`").strip().splitlines()[1:]
        self.assertIn("Fast", lines[0])
        self.assertIn("Also", lines[1])
        self.assertIn("Slow", lines[2])
        self.assertIn("#" * 16 + "." * 4, lines[0])

    def test_board_fits_in_an_embed_field(self):
        board = render_board([_entrant(f"Duck {i}", float(i % 100)) for i in range(200)])
        self.assertLessEqual(len(board), 1024)
        self.assertTrue(board.endswith("```"))

    def test_live_and_final_embeds(self):
        live = build_live_embed({"elapsedMs": 1000, "remainingMs": 9000, "entrants": [_entrant("A", 5.0)]})
        self.assertEqual([f.name for f in live.fields], ["Elapsed", "Remaining", "Track Position"])

        final = build_final_embed(
            {
                "results": [_entrant("A", 100.0), _entrant("B", 99.0)],
                "message": "The winner is A!",
                "reason": "finished",
            }
        )
        self.assertIn("1. A (100%)", final.description)
        self.assertEqual(final.fields[0].value, "The winner is A!")
        self.assertEqual(final.footer.text, "Finished at the line.")

    def test_status_embed_shows_winner_once_finished(self):
        idle = build_status_embed({"phase": "idle", "durationMs": 30000})
        self.assertEqual([f.name for f in idle.fields], ["Phase", "Duration"])

        finished = build_status_embed(
            {
                "phase": "finished",
                "durationMs": 10000,
                "elapsedMs": 9000,
                "entrants": [_entrant("A", 100.0)],
                "winner": {"name": "A"},
            }
        )
        self.assertEqual(finished.fields[-1].name, "Winner")
        self.assertEqual(finished.fields[-1].value, "A")


class RaceBroadcastCogTests(unittest.IsolatedAsyncioTestCase):
    def _cog(self):
        cog = RaceBroadcastCog.__new__(RaceBroadcastCog)
        cog.channel = MagicMock()
        cog.live_message = None
        cog.last_edit = 0.0
        cog.refresh_seconds = 2.0
        self.live_message = MagicMock()
        self.live_message.edit = AsyncMock()
        cog.channel.send = AsyncMock(side_effect=[None, self.live_message, None, None])
        return cog

    async def test_start_update_end_sequence(self):
        cog = self._cog()
        entrants = [_entrant("A", 0.0), _entrant("B", 0.0)]

        await cog.handle_event(events.RaceEvent(events.RACE_START, {"message": "Go!", "entrants": entrants}))
        self.assertIs(cog.live_message, self.live_message)
        self.assertEqual(cog.channel.send.await_args_list[0].args, ("Go!",))

        # Inside the refresh window the edit is skipped.
        await cog.handle_event(events.RaceEvent(events.RACE_UPDATE, {"entrants": entrants}))
        self.live_message.edit.assert_not_awaited()

        cog.last_edit -= 10.0
        await cog.handle_event(events.RaceEvent(events.RACE_UPDATE, {"entrants": entrants}))
        self.live_message.edit.assert_awaited_once()

        await cog.handle_event(
            events.RaceEvent(events.RACE_END, {"results": entrants, "message": "The winner is A!", "reason": "finished"})
        )
        self.assertEqual(self.live_message.edit.await_count, 2)
        final_embed = self.live_message.edit.await_args.kwargs["embed"]
        self.assertEqual(final_embed.title, "Duck Race - Final Standings")
        self.assertIsNone(cog.live_message)

    async def test_idle_status_is_not_posted(self):
        cog = self._cog()
        await cog.handle_event(events.RaceEvent(events.RACE_STATUS, {"isRunning": False}))
        cog.channel.send.assert_not_awaited()

    async def test_reset_posts_message(self):
        cog = self._cog()
        cog.channel.send = AsyncMock()
        await cog.handle_event(events.race_reset())
        cog.channel.send.assert_awaited_once_with(events.RESET_MESSAGE)


class RaceCommandsTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.controller = MagicMock()
        self.controller.start = AsyncMock(return_value=StartResult(True, "The race has started! Duration: 10 seconds", 10000))
        self.cog = RaceCommands(SimpleNamespace(controller=self.controller))
        self.interaction = MagicMock()
        self.interaction.response.send_message = AsyncMock()

    async def test_start_converts_seconds_and_names(self):
        await RaceCommands.race_start.callback(self.cog, self.interaction, "Alice, Bob", 10)
        self.controller.start.assert_awaited_once_with(["Alice", "Bob"], 10000)
        self.interaction.response.send_message.assert_awaited_once_with("The race has started! Duration: 10 seconds")

    async def test_rejection_is_ephemeral(self):
        self.controller.start.side_effect = TooFewEntrantsError("At least 2 entrants are required to start a race.")
        await RaceCommands.race_start.callback(self.cog, self.interaction, "Alice", None)
        self.controller.start.assert_awaited_once_with(["Alice"], None)
        self.interaction.response.send_message.assert_awaited_once_with(
            "At least 2 entrants are required to start a race.", ephemeral=True
        )


if __name__ == "__main__":
    unittest.main()
