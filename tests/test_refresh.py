from datetime import datetime, timedelta, timezone
import unittest

from radarloop.frames import FrameDescriptor, FrameWindow, RadarSnapshot, iso_utc
from radarloop.providers import BomProvider, FetchError, NoDataAvailable
from radarloop.refresh import (
    MAX_RETRY_COUNT,
    RefreshScheduler,
    RefreshState,
    get_next_snapshot_delay_ms,
    get_retry_delay_ms,
    refresh_on_failure,
)
from radarloop.timers import TimerQueue

BASE_TIME = datetime(2024, 2, 15, 12, 0, tzinfo=timezone.utc)
INTERVAL_MS = 10 * 60 * 1000
BOM_INTERVAL_MS = 5 * 60 * 1000


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def make_snapshot(first: int, last: int) -> RadarSnapshot:
    frames = []
    for i in range(first, last + 1):
        ts = BASE_TIME + timedelta(minutes=10 * i)
        frames.append(FrameDescriptor(iso_utc(ts), ts, f"/v2/radar/{i}"))
    return RadarSnapshot(tuple(frames), frames[-1].timestamp)


class FakeProvider:
    name = "fake"
    label = "Fake"
    publication_interval_ms = INTERVAL_MS
    poll_interval_ms = INTERVAL_MS

    def __init__(self):
        self.responses = []
        self.calls = 0

    def fetch_snapshot(self, now_ms=None):
        self.calls += 1
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class RetryDelayTest(unittest.TestCase):
    def test_backoff_doubles_then_caps(self):
        self.assertEqual(get_retry_delay_ms(0), 5000)
        self.assertEqual(get_retry_delay_ms(1), 10000)
        self.assertEqual(get_retry_delay_ms(3), 40000)
        self.assertEqual(get_retry_delay_ms(4), 60000)
        self.assertEqual(get_retry_delay_ms(30), 60000)

    def test_retry_count_is_clamped(self):
        state = RefreshState()
        for _ in range(10):
            state, delay = refresh_on_failure(state, 0, error="boom")
        self.assertEqual(state.retry_count, MAX_RETRY_COUNT)
        self.assertEqual(delay, 60000)
        self.assertEqual(state.last_error, "boom")


class NextSnapshotDelayTest(unittest.TestCase):
    def test_right_after_publication(self):
        latest = 1_700_000_000_000
        self.assertEqual(get_next_snapshot_delay_ms(latest, latest, interval_ms=INTERVAL_MS), 615000)

    def test_floor_when_overdue(self):
        latest = 1_700_000_000_000
        self.assertEqual(get_next_snapshot_delay_ms(latest, latest + 3_600_000), 5000)

    def test_lagged_provider_waits_for_next_publication(self):
        latest = 1_700_000_000_000
        provider = BomProvider()
        self.assertEqual(provider.poll_interval_ms, 2 * BOM_INTERVAL_MS)
        # Fetched two minutes after the frame went up, one interval behind its nominal time.
        now = latest + BOM_INTERVAL_MS + 2 * 60 * 1000
        self.assertEqual(
            get_next_snapshot_delay_ms(latest, now, interval_ms=provider.poll_interval_ms),
            3 * 60 * 1000 + 15000,
        )


class RefreshSchedulerTest(unittest.TestCase):
    def setUp(self):
        first = make_snapshot(0, 6)
        self.clock = FakeClock(first.latest_time_ms)
        self.timers = TimerQueue(clock=self.clock)
        self.window = FrameWindow(5)
        self.provider = FakeProvider()
        self.provider.responses.append(first)
        self.changes = []
        self.scheduler = RefreshScheduler(self.timers, self.provider, self.window, self.changes.append)

    def advance_to_next_poll(self):
        self.clock.now = self.timers.next_due_ms()
        self.timers.pump()

    def test_initial_poll_fills_window(self):
        self.scheduler.start()
        self.assertEqual(len(self.window), 5)
        self.assertEqual(self.window.visible_index, 4)
        self.assertEqual(len(self.changes), 1)
        self.assertTrue(self.scheduler.state.primed)
        self.assertEqual(self.timers.next_due_ms(), self.clock.now + 615000)

    def test_failure_keeps_window_and_backs_off(self):
        self.scheduler.start()
        ids = self.window.ids()
        self.provider.responses.append(FetchError("timeout"))
        self.provider.responses.append(NoDataAvailable("empty"))

        self.advance_to_next_poll()
        self.assertEqual(self.window.ids(), ids)
        self.assertEqual(self.scheduler.state.retry_count, 1)
        self.assertEqual(self.timers.next_due_ms(), self.clock.now + 5000)

        self.advance_to_next_poll()
        self.assertEqual(self.scheduler.state.retry_count, 2)
        self.assertEqual(self.timers.next_due_ms(), self.clock.now + 10000)
        self.assertEqual(len(self.changes), 1)

    def test_success_after_failure_merges(self):
        self.scheduler.start()
        self.provider.responses.append(FetchError("timeout"))
        self.provider.responses.append(make_snapshot(1, 7))

        self.advance_to_next_poll()
        self.advance_to_next_poll()
        self.assertEqual(self.scheduler.state.retry_count, 0)
        self.assertIsNone(self.scheduler.state.last_error)
        self.assertEqual(self.window.ids()[-1], make_snapshot(7, 7).frames[0].id)
        self.assertEqual(len(self.window), 5)
        self.assertEqual(len(self.changes), 2)

    def test_unchanged_snapshot_does_not_notify(self):
        self.scheduler.start()
        self.provider.responses.append(make_snapshot(0, 6))
        self.advance_to_next_poll()
        self.assertEqual(len(self.changes), 1)
        self.assertTrue(self.scheduler.timer_armed)

    def test_reset_replaces_window(self):
        self.scheduler.start()
        self.provider.responses.append(make_snapshot(20, 22))
        self.scheduler.request_reset()
        self.assertEqual(self.window.ids(), [f.id for f in make_snapshot(20, 22).frames])

    def test_stop_prevents_polling(self):
        self.scheduler.start()
        self.scheduler.stop()
        self.assertFalse(self.scheduler.timer_armed)
        self.assertFalse(self.scheduler.poll())
        self.assertEqual(self.provider.calls, 1)
        self.assertEqual(self.timers.pending_count(), 0)


class RecordingBomProvider(BomProvider):
    def __init__(self, clock):
        super().__init__(clock=clock)
        self.polled_at = []

    def fetch_snapshot(self, now_ms=None):
        self.polled_at.append(now_ms)
        return super().fetch_snapshot(now_ms)


class BomRefreshSchedulerTest(unittest.TestCase):
    def setUp(self):
        start = datetime(2024, 2, 15, 12, 2, tzinfo=timezone.utc)
        self.clock = FakeClock(start.timestamp() * 1000)
        self.timers = TimerQueue(clock=self.clock)
        self.window = FrameWindow(12)
        self.provider = RecordingBomProvider(self.clock)
        self.changes = []
        self.scheduler = RefreshScheduler(self.timers, self.provider, self.window, self.changes.append)

    def run_for(self, ms: float):
        end = self.clock.now + ms
        while self.timers.next_due_ms() is not None and self.timers.next_due_ms() <= end:
            self.clock.now = self.timers.next_due_ms()
            self.timers.pump()
        self.clock.now = end

    def test_polls_once_per_publication(self):
        self.scheduler.start()
        self.run_for(10 * 60 * 1000)

        polled = self.provider.polled_at
        self.assertEqual(len(polled), 3)
        gaps = [b - a for a, b in zip(polled, polled[1:])]
        self.assertEqual(gaps, [3 * 60 * 1000 + 15000, BOM_INTERVAL_MS])
        self.assertEqual(self.scheduler.state.retry_count, 0)

    def test_each_poll_adds_the_new_frame(self):
        self.scheduler.start()
        first_newest = self.window.newest.timestamp
        self.run_for(10 * 60 * 1000)

        self.assertEqual(len(self.changes), 3)
        self.assertEqual(len(self.window), 12)
        self.assertEqual(self.window.newest.timestamp - first_newest, timedelta(minutes=10))
        self.assertEqual(self.window.visible_index, 11)


if __name__ == "__main__":
    unittest.main()
