import threading
import time
import unittest
from unittest.mock import Mock

from batepapo.database import SQLiteStore
from batepapo.errors import StoreUnavailable
from batepapo.models import BROADCAST, LEAVE_TEXT, STATUS
from batepapo.reaper import PresenceReaper
from batepapo.service import ChatService

from .utils import FakeClock, make_service


class TestPresenceReaper(unittest.TestCase):

    def setUp(self):
        self.clock = FakeClock()
        self.service = make_service(self.clock, ttl=10, sweep_interval=15)
        self.registry = self.service.registry
        self.reaper = self.service.reaper

    def tearDown(self):
        self.service.close()

    def departures(self):
        return [
            event for event in self.service.store.messages.find_visible("nobody", 1000)
            if event.kind == STATUS and event.text == LEAVE_TEXT
        ]

    def test_silent_participant_is_evicted_on_first_tick(self):
        self.registry.register("Ana")

        self.clock.advance(15)
        removed = self.reaper.sweep()

        self.assertEqual([p.name for p in removed], ["Ana"])
        self.assertEqual(self.registry.list(), [])
        departures = self.departures()
        self.assertEqual(len(departures), 1)
        self.assertEqual(departures[0].sender, "Ana")
        self.assertEqual(departures[0].to, BROADCAST)

    def test_active_participant_survives(self):
        self.registry.register("Ana")
        self.registry.register("Bea")
        self.clock.advance(8)
        self.registry.heartbeat("Bea")
        self.clock.advance(7)

        removed = self.reaper.sweep()

        self.assertEqual([p.name for p in removed], ["Ana"])
        self.assertEqual([p.name for p in self.registry.list()], ["Bea"])

    def test_cutoff_is_inclusive(self):
        self.registry.register("Ana")
        self.clock.advance(10)
        self.assertEqual(len(self.reaper.sweep()), 1)

    def test_idle_sweep(self):
        self.registry.register("Ana")
        self.clock.advance(5)

        self.assertEqual(self.reaper.sweep(), [])
        self.assertEqual(self.departures(), [])

    def test_evicted_participant_stays_gone_until_reregistered(self):
        self.registry.register("Ana")
        self.clock.advance(20)
        self.reaper.sweep()
        self.reaper.sweep()

        self.assertEqual(self.registry.list(), [])
        self.assertEqual(len(self.departures()), 1)

        self.registry.register("Ana")
        self.assertEqual([p.name for p in self.registry.list()], ["Ana"])

    def test_one_departure_per_evicted_participant(self):
        for name in ("Ana", "Bea", "Caio"):
            self.registry.register(name)
        self.clock.advance(30)

        self.reaper.sweep()

        self.assertEqual(sorted(e.sender for e in self.departures()), ["Ana", "Bea", "Caio"])

    def test_lost_departure_events_are_logged(self):
        self.registry.register("Ana")
        self.clock.advance(20)
        emitter = Mock()
        emitter.left.side_effect = StoreUnavailable("Insert messages failed")
        reaper = PresenceReaper(self.service.store.participants, emitter, ttl=10, clock=self.clock)

        with self.assertLogs("batepapo.reaper", level="ERROR") as logs:
            removed = reaper.sweep()

        self.assertEqual([p.name for p in removed], ["Ana"])
        self.assertIn("Ana", logs.output[0])
        self.assertEqual(self.registry.list(), [])


class TestReaperThread(unittest.TestCase):

    def test_failed_sweep_does_not_stop_the_schedule(self):
        calls = []
        swept = threading.Event()

        def delete_stale(cutoff):
            calls.append(cutoff)
            if len(calls) == 1:
                raise StoreUnavailable("Delete stale participants failed")
            swept.set()
            return []

        participants = Mock()
        participants.delete_stale.side_effect = delete_stale
        reaper = PresenceReaper(participants, Mock(), ttl=10, interval=0.01)

        with self.assertLogs("batepapo.reaper", level="ERROR"):
            reaper.start()
            self.assertTrue(swept.wait(2.0))
        reaper.stop(timeout=2.0)

        self.assertGreaterEqual(len(calls), 2)
        self.assertFalse(reaper.is_alive())

    def test_service_evicts_in_background_and_stops(self):
        service = ChatService(SQLiteStore(":memory:"), ttl=0, sweep_interval=0.02)
        service.registry.register("Ana")
        service.start()
        try:
            deadline = time.time() + 2.0
            while service.registry.list() and time.time() < deadline:
                time.sleep(0.01)
            self.assertEqual(service.registry.list(), [])
        finally:
            service.close()
        self.assertFalse(service.reaper.is_alive())

    def test_stop_does_not_wait_for_a_full_interval(self):
        reaper = PresenceReaper(Mock(), Mock(), interval=60)
        reaper.start()
        started = time.time()
        reaper.stop(timeout=5.0)

        self.assertLess(time.time() - started, 5.0)
        self.assertFalse(reaper.is_alive())


if __name__ == '__main__':
    unittest.main()
