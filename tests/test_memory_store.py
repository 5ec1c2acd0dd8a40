import threading

from merchant_twin.api.schemas import AttemptEvent
from merchant_twin.insight.pipeline.memory_store import InMemoryEventStore


def _attempt(merchant_id: str, index: int = 1) -> AttemptEvent:
    return AttemptEvent(merchant_id=merchant_id, scenario_id="BASELINE", attempt_index=index, latency_ms=100, result="retry")


def test_all_returns_events_in_arrival_order():
    store = InMemoryEventStore()
    for i in range(1, 4):
        store.append(_attempt("m1", i))
    assert [e.attempt_index for e in store.all()] == [1, 2, 3]
    assert store.count() == 3


def test_clear_empties_store():
    store = InMemoryEventStore()
    store.append(_attempt("m1"))
    store.clear()
    assert store.count() == 0
    assert list(store.all()) == []


def test_snapshot_is_not_affected_by_later_writes():
    store = InMemoryEventStore()
    store.append(_attempt("m1"))
    snapshot = store.all()
    store.append(_attempt("m2"))
    store.clear()
    assert [e.merchant_id for e in snapshot] == ["m1"]


def test_concurrent_appends_are_not_lost():
    store = InMemoryEventStore()

    def writer(n: int) -> None:
        for i in range(200):
            store.append(_attempt(f"m{n}", i + 1))

    threads = [threading.Thread(target=writer, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    events = list(store.all())
    assert len(events) == 1600
    for n in range(8):
        indexes = [e.attempt_index for e in events if e.merchant_id == f"m{n}"]
        assert indexes == list(range(1, 201))
