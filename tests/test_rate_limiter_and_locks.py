import threading
import time

from comanda.core.rate_limiter import InMemoryRateLimiterService
from comanda.core.sender_locks import SenderLocks


class FakeClock:
    def __init__(self, start=0.0):
        self.now = start

    def __call__(self):
        return self.now


def test_thirty_events_allowed_then_thirty_first_denied() -> None:
    clock = FakeClock()
    limiter = InMemoryRateLimiterService(limit=30, window_seconds=60, clock=clock)

    decisions = [limiter.check(sender="5491111") for _ in range(30)]
    assert all(decision.allowed for decision in decisions)
    assert decisions[-1].remaining == 0

    denied = limiter.check(sender="5491111")
    assert denied.allowed is False
    assert denied.retry_after_seconds >= 1

    # otro remitente no se ve afectado
    assert limiter.allow("5492222") is True


def test_window_slides() -> None:
    clock = FakeClock()
    limiter = InMemoryRateLimiterService(limit=2, window_seconds=60, clock=clock)

    assert limiter.allow("a")
    clock.now = 30
    assert limiter.allow("a")
    assert not limiter.allow("a")

    clock.now = 61
    assert limiter.allow("a")


def test_idle_buckets_are_collected() -> None:
    clock = FakeClock()
    limiter = InMemoryRateLimiterService(limit=5, window_seconds=60, clock=clock)

    for index in range(20):
        limiter.allow(f"sender-{index}")
    assert limiter.tracked_senders() == 20

    clock.now = 500
    limiter.allow("fresh")
    assert limiter.tracked_senders() == 1


def test_sender_lock_serializes_same_key() -> None:
    locks = SenderLocks()
    events = []

    def worker(name):
        with locks.hold(("pnid", "5491111")):
            events.append(f"{name}-start")
            time.sleep(0.02)
            events.append(f"{name}-end")

    threads = [threading.Thread(target=worker, args=(name,)) for name in ("a", "b")]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert events[0].split("-")[0] == events[1].split("-")[0]
    assert events[2].split("-")[0] == events[3].split("-")[0]


def test_sender_lock_does_not_block_other_keys() -> None:
    locks = SenderLocks()
    with locks.hold(("pnid", "a")):
        acquired = threading.Event()

        def other():
            with locks.hold(("pnid", "b")):
                acquired.set()

        thread = threading.Thread(target=other)
        thread.start()
        assert acquired.wait(timeout=1)
        thread.join()


def test_idle_sender_locks_are_released() -> None:
    clock = FakeClock()
    locks = SenderLocks(idle_seconds=10, clock=clock)

    with locks.hold(("pnid", "a")):
        pass
    assert len(locks) == 1

    clock.now = 100
    with locks.hold(("pnid", "b")):
        pass
    assert len(locks) == 1
