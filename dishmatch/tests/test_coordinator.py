from __future__ import annotations

import threading

import pytest

from dishmatch.analytics.store import get_events
from dishmatch.inventory.memory import InMemoryStore
from dishmatch.inventory.settings import AUTO_RETRAIN_KEY, NumberSetting
from dishmatch.similarity.coordinator import ModelSwapCoordinator, Slot, TrainingState
from dishmatch.similarity.index import SimilarityDocument

DOCS = [
    SimilarityDocument("Ramen", "Japanese noodle soup with wheat noodles in a rich pork broth"),
    SimilarityDocument("Udon", "Japanese soup with thick wheat noodles in a hot broth"),
    SimilarityDocument("Pizza", "Italian flatbread baked with tomato sauce and mozzarella cheese"),
]


class _Source:
    """Document source that can be told to fail."""

    def __init__(self, docs=DOCS) -> None:
        self.docs = list(docs)
        self.error: Exception | None = None
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.docs


@pytest.fixture
def source() -> _Source:
    return _Source()


@pytest.fixture
def coordinator(source) -> ModelSwapCoordinator:
    coord = ModelSwapCoordinator(source, InMemoryStore(), interval_s=3600.0)
    yield coord
    coord.stop(timeout=5.0)


def test_starts_untrained_on_primary(coordinator):
    assert coordinator.active_slot is Slot.PRIMARY
    assert coordinator.state is TrainingState.IDLE
    assert not coordinator.active_index().is_trained
    assert coordinator.nearest("Ramen") == []


def test_successful_retrain_flips_slot(coordinator):
    assert coordinator.retrain_now() is True

    assert coordinator.active_slot is Slot.SECONDARY
    assert coordinator.active_index().document_count == 3
    assert coordinator.nearest("Ramen")[0].document_id == "Udon"
    assert coordinator.last_document_count == 3

    coordinator.retrain_now()
    assert coordinator.active_slot is Slot.PRIMARY


def test_failed_retrain_keeps_serving_previous_slot(coordinator, source):
    coordinator.retrain_now()
    served_before = coordinator.nearest("Ramen")

    source.error = RuntimeError("store offline")
    assert coordinator.retrain_now() is False

    assert coordinator.active_slot is Slot.SECONDARY
    assert coordinator.degraded
    assert "store offline" in coordinator.last_error
    assert coordinator.state is TrainingState.IDLE
    assert coordinator.nearest("Ramen") == served_before


def test_next_success_clears_degraded(coordinator, source):
    source.error = RuntimeError("store offline")
    coordinator.retrain_now()
    assert coordinator.degraded

    source.error = None
    assert coordinator.retrain_now() is True
    assert not coordinator.degraded
    assert coordinator.last_error is None


def test_auto_retrain_defaults_on_and_toggles(coordinator):
    assert coordinator.is_auto_retrain_enabled()

    coordinator.set_auto_retrain(False)
    assert not coordinator.is_auto_retrain_enabled()

    coordinator.set_auto_retrain(True)
    assert coordinator.is_auto_retrain_enabled()


def test_tick_skips_when_auto_retrain_disabled(coordinator, source):
    coordinator.set_auto_retrain(False)
    coordinator._tick()
    assert source.calls == 0

    coordinator.set_auto_retrain(True)
    coordinator._tick()
    assert source.calls == 1


def test_tick_with_malformed_flag_marks_degraded(source):
    settings = InMemoryStore()
    settings.put(NumberSetting(key=AUTO_RETRAIN_KEY, value=1.0))
    coordinator = ModelSwapCoordinator(source, settings)

    coordinator._tick()

    assert coordinator.degraded
    assert source.calls == 0


def test_retrain_records_analytics_events(coordinator, source):
    coordinator.retrain_now()
    source.error = ValueError("bad document")
    coordinator.retrain_now()

    events = [e for e in get_events() if e["type"] == "retrain"]
    assert [e["ok"] for e in events] == [True, False]
    assert events[0]["documents"] == 3
    assert "bad document" in events[1]["error"]


def test_status_reports_slot_and_flags(coordinator):
    coordinator.retrain_now()
    status = coordinator.status()

    assert status["active_slot"] == "secondary"
    assert status["state"] == "idle"
    assert status["degraded"] is False
    assert status["auto_retrain_enabled"] is True
    assert status["documents_indexed"] == 3
    assert status["last_success_at"] is not None


def test_timer_trains_immediately_and_on_each_tick(source):
    ticks = threading.Semaphore(0)

    def counting_source():
        docs = source()
        ticks.release()
        return docs

    coordinator = ModelSwapCoordinator(counting_source, InMemoryStore(), interval_s=0.05)
    coordinator.start()
    try:
        for _ in range(3):
            assert ticks.acquire(timeout=5.0)
    finally:
        coordinator.stop(timeout=5.0)

    assert source.calls >= 3
    assert coordinator.active_index().is_trained


def test_initial_build_runs_even_when_auto_retrain_disabled(source):
    settings = InMemoryStore()
    coordinator = ModelSwapCoordinator(source, settings, interval_s=3600.0)
    coordinator.set_auto_retrain(False)
    done = threading.Event()
    original = coordinator.retrain_now

    def retrain_and_signal():
        result = original()
        done.set()
        return result

    coordinator.retrain_now = retrain_and_signal
    coordinator.start()
    try:
        assert done.wait(timeout=5.0)
    finally:
        coordinator.stop(timeout=5.0)

    assert source.calls == 1
    assert coordinator.active_slot is Slot.SECONDARY


def test_readers_see_one_whole_model_during_swap():
    first = [
        SimilarityDocument("Ramen", DOCS[0].content),
        SimilarityDocument("Udon", DOCS[1].content),
    ]
    second = [
        SimilarityDocument("Ramen", DOCS[0].content),
        SimilarityDocument("Soba", "Japanese soup with buckwheat noodles in a light broth"),
    ]
    batches = [first, second]
    turn = {"n": 0}

    def alternating():
        turn["n"] += 1
        return batches[turn["n"] % 2]

    coordinator = ModelSwapCoordinator(alternating, InMemoryStore())
    coordinator.retrain_now()
    allowed = {("Udon",), ("Soba",)}
    stop = threading.Event()
    seen: list[tuple[str, ...]] = []

    def reader():
        while not stop.is_set():
            seen.append(tuple(n.document_id for n in coordinator.nearest("Ramen")))

    threads = [threading.Thread(target=reader) for _ in range(4)]
    for t in threads:
        t.start()
    for _ in range(20):
        coordinator.retrain_now()
    stop.set()
    for t in threads:
        t.join(timeout=5.0)

    assert seen
    assert set(seen) <= allowed


def test_status_reports_training_until_new_slot_serves(source):
    entered = threading.Event()
    release = threading.Event()

    def blocking_source():
        entered.set()
        release.wait(5.0)
        return source()

    coordinator = ModelSwapCoordinator(blocking_source, InMemoryStore())
    worker = threading.Thread(target=coordinator.retrain_now)
    worker.start()
    try:
        assert entered.wait(timeout=5.0)
        during = coordinator.status()
    finally:
        release.set()
        worker.join(timeout=5.0)
    after = coordinator.status()

    assert (during["state"], during["active_slot"]) == ("training", "primary")
    assert (after["state"], after["active_slot"]) == ("idle", "secondary")
