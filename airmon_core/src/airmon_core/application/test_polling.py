import threading
import time

from airmon_core.application.polling import (
    BackoffPolicy,
    CoalescingRunner,
    ExponentialBackoff,
    RefreshPoller,
)


class MockBackoffPolicy(BackoffPolicy):
    def __init__(self, delay: float = 5.0):
        self.delay = delay
        self.calls: list[bool] = []

    def next_delay(self, *, success: bool) -> float:
        self.calls.append(success)
        return 0.0 if success else self.delay


class FlakyRefresh:
    def __init__(self, failures: int):
        self.remaining_failures = failures
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.remaining_failures:
            self.remaining_failures -= 1
            raise RuntimeError("backend down")


# ExponentialBackoff tests


def test_next_delay_success():
    backoff = ExponentialBackoff(base=2.0)
    backoff.attempt = 3
    assert backoff.next_delay(success=True) == 0.0
    assert backoff.attempt == 0


def test_next_delay_failure_is_capped():
    backoff = ExponentialBackoff(base=1.0, max_=10.0, jitter=0.0)
    delays = [backoff.next_delay(success=False) for _ in range(4)]
    assert delays == [2.0, 4.0, 8.0, 10.0]


# CoalescingRunner tests


def test_runner_skips_while_in_flight():
    started = threading.Event()
    release = threading.Event()
    calls = []

    def slow():
        calls.append(1)
        started.set()
        release.wait(2)

    runner = CoalescingRunner(slow)
    worker = threading.Thread(target=runner.run)
    worker.start()
    assert started.wait(2)

    assert runner.busy
    assert runner.run() is False

    release.set()
    worker.join(2)
    assert not runner.busy
    assert runner.run() is True
    assert len(calls) == 2


def test_runner_releases_after_error():
    runner = CoalescingRunner(FlakyRefresh(failures=1))
    try:
        runner.run()
    except RuntimeError:
        pass
    assert not runner.busy


# RefreshPoller tests


def test_poll_once_success_returns_interval():
    backoff = MockBackoffPolicy()
    poller = RefreshPoller("test", 2.0, FlakyRefresh(failures=0), backoff=backoff)
    assert poller.poll_once() == 2.0
    assert backoff.calls == [True]


def test_transient_failures_are_retried_silently():
    errors = []
    poller = RefreshPoller(
        "test", 1.0, FlakyRefresh(failures=2), MockBackoffPolicy(5.0), 3, errors.append
    )
    assert poller.poll_once() == 5.0
    assert poller.poll_once() == 5.0
    assert poller.failures == 2
    assert poller.poll_once() == 1.0
    assert poller.failures == 0
    assert errors == []


def test_persistent_failure_surfaces_once():
    errors = []
    poller = RefreshPoller(
        "test", 1.0, FlakyRefresh(failures=10), MockBackoffPolicy(), 3, errors.append
    )
    for _ in range(5):
        poller.poll_once()
    assert len(errors) == 1
    assert isinstance(errors[0], RuntimeError)


def test_stop():
    poller = RefreshPoller("test", 1.0, FlakyRefresh(failures=0))
    assert not poller.s_stop.is_set()
    poller.stop()
    assert poller.s_stop.is_set()


def test_thread_polls_until_stopped():
    refresh = FlakyRefresh(failures=0)
    poller = RefreshPoller("test", 0.01, refresh)
    poller.start()
    try:
        for _ in range(200):
            if refresh.calls >= 3:
                break
            time.sleep(0.01)
    finally:
        poller.stop()
        poller.join(1)
    assert refresh.calls >= 3
    assert not poller.is_alive()
