import unittest

from gtu_sim.model.errors import ProgrammingError
from gtu_sim.model.scheduler import EventScheduler


class TestEventScheduler(unittest.TestCase):
    def setUp(self):
        self.scheduler = EventScheduler()
        self.log = []

    def record(self, label):
        return lambda t: self.log.append((label, t))

    def test_events_run_in_time_order(self):
        self.scheduler.schedule(2.0, self.record("b"))
        self.scheduler.schedule(1.0, self.record("a"))
        self.scheduler.schedule(3.0, self.record("c"))
        self.scheduler.run_until(10.0)
        self.assertEqual(self.log, [("a", 1.0), ("b", 2.0), ("c", 3.0)])
        self.assertEqual(self.scheduler.time, 10.0)

    def test_simultaneous_events_keep_insertion_order(self):
        for label in "xyz":
            self.scheduler.schedule(1.0, self.record(label))
        self.scheduler.run_until(1.0)
        self.assertEqual([label for label, _ in self.log], ["x", "y", "z"])

    def test_one_pending_event_per_gtu(self):
        self.scheduler.schedule(5.0, self.record("old"), gtu_id=7)
        self.scheduler.schedule(2.0, self.record("new"), gtu_id=7)
        self.assertEqual(len(self.scheduler), 1)
        self.assertEqual(self.scheduler.pending(7).time, 2.0)

        self.scheduler.run_until(10.0)
        self.assertEqual(self.log, [("new", 2.0)])
        self.assertIsNone(self.scheduler.pending(7))

    def test_cancel(self):
        self.scheduler.schedule(1.0, self.record("a"), gtu_id=1)
        self.assertTrue(self.scheduler.cancel(1))
        self.assertFalse(self.scheduler.cancel(1))
        self.scheduler.run_until(2.0)
        self.assertEqual(self.log, [])

    def test_run_until_stops_at_end_time(self):
        self.scheduler.schedule(1.0, self.record("a"))
        self.scheduler.schedule(5.0, self.record("b"))
        self.scheduler.run_until(3.0)
        self.assertEqual(self.log, [("a", 1.0)])
        self.assertEqual(self.scheduler.next_time(), 5.0)
        self.assertEqual(self.scheduler.time, 3.0)

    def test_events_may_schedule_events(self):
        def chain(t):
            self.log.append(("tick", t))
            if t < 3.0:
                self.scheduler.schedule(t + 1.0, chain, gtu_id=1)

        self.scheduler.schedule(1.0, chain, gtu_id=1)
        self.scheduler.run_until(10.0)
        self.assertEqual([t for _, t in self.log], [1.0, 2.0, 3.0])
        self.assertEqual(self.scheduler.executed, 3)

    def test_scheduling_in_the_past(self):
        self.scheduler.run_until(5.0)
        with self.assertRaises(ProgrammingError):
            self.scheduler.schedule(4.0, self.record("late"))

    def test_scheduling_now_is_allowed(self):
        self.scheduler.run_until(5.0)
        self.scheduler.schedule(5.0, self.record("now"))
        self.assertTrue(self.scheduler.step())
        self.assertEqual(self.log, [("now", 5.0)])
        self.assertFalse(self.scheduler.step())


if __name__ == "__main__":
    unittest.main()
