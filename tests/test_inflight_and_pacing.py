import threading
import time
import unittest

from goldpulse.services.inflight import InFlightDeduplicator
from goldpulse.services.pacing import RequestPacer


def _wait_until(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return False


class InFlightDeduplicatorTest(unittest.TestCase):
    def test_concurrent_callers_share_one_execution(self):
        dedup = InFlightDeduplicator()
        release = threading.Event()
        calls = []

        def work():
            calls.append(1)
            release.wait(2.0)
            return {"price": 42.0}

        results = []
        threads = [threading.Thread(target=lambda: results.append(dedup.run("GET:u", work))) for _ in range(4)]
        for t in threads:
            t.start()
        self.assertTrue(_wait_until(lambda: dedup.metrics()["inflight_coalesced"] == 3))
        release.set()
        for t in threads:
            t.join(2.0)

        self.assertEqual(len(calls), 1)
        self.assertEqual(results, [{"price": 42.0}] * 4)
        self.assertEqual(len({id(r) for r in results}), 4)
        self.assertEqual(dedup.pending(), 0)

    def test_joiner_mutation_does_not_leak_to_other_callers(self):
        dedup = InFlightDeduplicator()
        release = threading.Event()

        def work():
            release.wait(2.0)
            return {"price": 42.0, "tags": ["live"]}

        results = []
        threads = [threading.Thread(target=lambda: results.append(dedup.run("quote:k", work))) for _ in range(3)]
        for t in threads:
            t.start()
        self.assertTrue(_wait_until(lambda: dedup.metrics()["inflight_coalesced"] == 2))
        release.set()
        for t in threads:
            t.join(2.0)

        results[0]["price"] = -1.0
        results[0]["tags"].append("edited")

        for other in results[1:]:
            self.assertEqual(other, {"price": 42.0, "tags": ["live"]})

    def test_failure_is_shared_and_ticket_removed(self):
        dedup = InFlightDeduplicator()
        release = threading.Event()
        errors = []

        def work():
            release.wait(2.0)
            raise RuntimeError("boom")

        def call():
            try:
                dedup.run("GET:u", work)
            except RuntimeError as exc:
                errors.append(str(exc))

        threads = [threading.Thread(target=call) for _ in range(3)]
        for t in threads:
            t.start()
        self.assertTrue(_wait_until(lambda: dedup.metrics()["inflight_coalesced"] == 2))
        release.set()
        for t in threads:
            t.join(2.0)

        self.assertEqual(errors, ["boom"] * 3)
        self.assertEqual(dedup.pending(), 0)

    def test_sequential_calls_run_again_after_settle(self):
        dedup = InFlightDeduplicator()
        counter = iter(range(10))

        first = dedup.run("k", lambda: next(counter))
        second = dedup.run("k", lambda: next(counter))

        self.assertEqual((first, second), (0, 1))
        self.assertEqual(dedup.metrics()["inflight_started"], 2)

    def test_distinct_keys_do_not_coalesce(self):
        dedup = InFlightDeduplicator()
        self.assertEqual(dedup.run("a", lambda: 1), 1)
        self.assertEqual(dedup.run("b", lambda: 2), 2)
        self.assertEqual(dedup.metrics()["inflight_coalesced"], 0)


class RequestPacerTest(unittest.TestCase):
    def setUp(self):
        self.now = 100.0
        self.sleeps = []

        def sleep(seconds):
            self.sleeps.append(seconds)
            self.now += seconds

        self.pacer = RequestPacer(0.1, clock=lambda: self.now, sleep_fn=sleep)

    def test_first_request_is_not_delayed(self):
        self.assertEqual(self.pacer.wait_turn(), 0.0)
        self.assertEqual(self.sleeps, [])

    def test_back_to_back_requests_are_spaced(self):
        self.pacer.wait_turn()
        self.now += 0.03

        slept = self.pacer.wait_turn()

        self.assertAlmostEqual(slept, 0.07)
        self.assertEqual(len(self.sleeps), 1)

    def test_no_delay_once_interval_elapsed(self):
        self.pacer.wait_turn()
        self.now += 0.5

        self.assertEqual(self.pacer.wait_turn(), 0.0)
        self.assertEqual(self.sleeps, [])

    def test_starts_never_closer_than_interval(self):
        starts = []
        for _ in range(5):
            self.pacer.wait_turn()
            starts.append(self.now)

        gaps = [b - a for a, b in zip(starts, starts[1:])]
        for gap in gaps:
            self.assertGreaterEqual(gap, 0.1 - 1e-9)


if __name__ == "__main__":
    unittest.main()
