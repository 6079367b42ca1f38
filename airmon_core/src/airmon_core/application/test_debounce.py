import threading

from airmon_core.application.debounce import Debouncer


class Counter:
    def __init__(self):
        self.calls = 0
        self.called = threading.Event()

    def __call__(self):
        self.calls += 1
        self.called.set()


def test_burst_of_triggers_runs_once():
    counter = Counter()
    debouncer = Debouncer(0.05, counter)
    for _ in range(20):
        debouncer.trigger()
    assert debouncer.pending
    assert counter.called.wait(1)
    debouncer.cancel()
    assert counter.calls == 1
    assert not debouncer.pending


def test_flush_runs_immediately_and_drops_pending():
    counter = Counter()
    debouncer = Debouncer(10.0, counter)
    debouncer.trigger()
    debouncer.flush()
    assert counter.calls == 1
    assert not debouncer.pending


def test_cancel_prevents_call():
    counter = Counter()
    debouncer = Debouncer(0.05, counter)
    debouncer.trigger()
    debouncer.cancel()
    assert not counter.called.wait(0.15)


def test_errors_are_logged_not_raised(caplog):
    def boom():
        raise RuntimeError("nope")

    Debouncer(0.0, boom).flush()
    assert "Debounced call failed" in caplog.text
