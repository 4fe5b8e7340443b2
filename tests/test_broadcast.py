import asyncio
import unittest

from duck_race.broadcast import BroadcastChannel
from duck_race.events import RaceEvent


def _event(n: int) -> RaceEvent:
    return RaceEvent("raceUpdate", {"n": n})


class BroadcastChannelTests(unittest.IsolatedAsyncioTestCase):
    async def test_every_subscriber_gets_every_event_in_order(self):
        channel = BroadcastChannel(mailbox_size=8)
        first = channel.subscribe()
        second = channel.subscribe()

        for n in range(3):
            channel.publish(_event(n))

        for subscription in (first, second):
            received = [(await subscription.get()).data["n"] for _ in range(3)]
            self.assertEqual(received, [0, 1, 2])
        self.assertEqual(channel.subscriber_count, 2)

    async def test_full_mailbox_drops_oldest_event(self):
        channel = BroadcastChannel(mailbox_size=2)
        slow = channel.subscribe()
        fast = channel.subscribe(mailbox_size=10)

        for n in range(5):
            channel.publish(_event(n))

        self.assertEqual(slow.dropped, 3)
        self.assertEqual(slow.get_nowait().data["n"], 3)
        self.assertEqual(slow.get_nowait().data["n"], 4)
        self.assertIsNone(slow.get_nowait())
        self.assertEqual(fast.dropped, 0)
        self.assertEqual(fast.queue.qsize(), 5)

    async def test_closed_subscription_stops_receiving(self):
        channel = BroadcastChannel()
        subscription = channel.subscribe()
        subscription.close()
        subscription.close()

        channel.publish(_event(1))

        self.assertEqual(channel.subscriber_count, 0)
        self.assertIsNone(subscription.get_nowait())

    async def test_publish_without_subscribers_is_harmless(self):
        BroadcastChannel().publish(_event(0))

    async def test_async_iteration_yields_published_events(self):
        channel = BroadcastChannel()
        subscription = channel.subscribe()

        async def produce():
            for n in range(3):
                channel.publish(_event(n))
                await asyncio.sleep(0)

        producer = asyncio.create_task(produce())
        received = []
        async for event in subscription:
            received.append(event.data["n"])
            if len(received) == 3:
                subscription.close()
        await producer

        self.assertEqual(received, [0, 1, 2])


if __name__ == "__main__":
    unittest.main()
