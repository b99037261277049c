from __future__ import annotations

import random
import threading

from catchpoint_bridge.store import CheckRecord, StateStore


def test_repeated_state_keeps_first_seen_and_updates_output() -> None:
    store = StateStore()
    store.upsert("h1", "ping", 2, "timeout", 100)
    store.upsert("h1", "ping", 2, "timeout again", 200)

    rec = store.get("h1", "ping")
    assert rec == CheckRecord(
        host="h1",
        service="ping",
        state=2,
        output="timeout again",
        last_updated=200,
        status_first_seen=100,
    )


def test_state_change_resets_first_seen() -> None:
    store = StateStore()
    store.upsert("h1", "ping", 0, "ok", 100)
    store.upsert("h1", "ping", 2, "down", 150)

    rec = store.get("h1", "ping")
    assert rec is not None
    assert rec.state == 2
    assert rec.last_updated == 150
    assert rec.status_first_seen == 150


def test_first_seen_changes_iff_state_changes() -> None:
    rng = random.Random(7)
    store = StateStore()
    prev_state: int | None = None
    prev_first_seen: int | None = None
    ts = 1_000

    for _ in range(300):
        ts += rng.randint(0, 5)
        state = rng.choice([0, 0, 1, 2, 2, 3])
        store.upsert("h1", "http", state, f"state {state} at {ts}", ts)
        rec = store.get("h1", "http")
        assert rec is not None
        assert rec.last_updated == ts
        if prev_state is None or state != prev_state:
            assert rec.status_first_seen == ts
        else:
            assert rec.status_first_seen == prev_first_seen
        prev_state, prev_first_seen = state, rec.status_first_seen


def test_one_record_per_host_and_service() -> None:
    store = StateStore()
    store.upsert("h1", "ping", 0, "a", 1)
    store.upsert("h1", "ping", 1, "b", 2)
    store.upsert("h1", "http", 0, "c", 3)
    store.upsert("h2", "ping", 0, "d", 4)

    assert len(store) == 3
    assert store.host_count() == 2
    assert {(r.host, r.service) for r in store.snapshot_all()} == {("h1", "ping"), ("h1", "http"), ("h2", "ping")}
    assert store.get("h3", "ping") is None


def test_empty_store_snapshot() -> None:
    store = StateStore()
    assert store.snapshot_all() == []
    assert len(store) == 0


def test_concurrent_writers_never_produce_torn_records() -> None:
    store = StateStore()
    stop = threading.Event()
    errors: list[str] = []

    def writer(host: str) -> None:
        for ts in range(1, 2_000):
            store.upsert(host, "svc", ts % 4, f"{host}:{ts}", ts)

    def reader() -> None:
        while not stop.is_set():
            for rec in store.snapshot_all():
                if rec.output != f"{rec.host}:{rec.last_updated}" or rec.state != rec.last_updated % 4:
                    errors.append(repr(rec))

    writers = [threading.Thread(target=writer, args=(f"h{i}",)) for i in range(4)]
    reader_thread = threading.Thread(target=reader)
    reader_thread.start()
    for t in writers:
        t.start()
    for t in writers:
        t.join()
    stop.set()
    reader_thread.join()

    assert errors == []
    assert len(store) == 4
    for i in range(4):
        rec = store.get(f"h{i}", "svc")
        assert rec is not None
        assert rec.last_updated == 1_999
