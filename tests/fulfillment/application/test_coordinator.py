"""Application tests for the fulfillment coordinator's correlation rules."""

import threading

import pytest
from fulfillment.coordinator import get_coordinator, reset_coordinator
from fulfillment.coordinator.coordinator import FulfillmentCoordinator
from fulfillment.coordinator.state import Stage
from shared.catalogue import Category
from shared.errors import PersistenceError
from shared.messages import CompletionReport, CountReport


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def writes():
    return []


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def coordinator(writes, clock):
    def record(order_id, status):
        writes.append((order_id, status))
        return True

    return FulfillmentCoordinator(status_writer=record, idle_timeout=60.0, max_tracked=3, clock=clock)


class TestBeginTracking:
    def test_fresh_state(self, coordinator):
        coordinator.begin_tracking("ord-1")

        state = coordinator.state_for("ord-1")
        assert state.stage == Stage.AWAITING_COUNTS
        assert state.remaining == {Category.PREMIUM: None, Category.STANDARD: None}
        assert state.packing_issued is False

    def test_retracking_resets_state(self, coordinator):
        coordinator.begin_tracking("ord-1")
        coordinator.record_count(Category.PREMIUM, 0)
        coordinator.begin_tracking("ord-1")

        assert coordinator.state_for("ord-1").remaining[Category.PREMIUM] is None

    def test_state_for_returns_a_copy(self, coordinator):
        coordinator.begin_tracking("ord-1")
        coordinator.state_for("ord-1").remaining[Category.PREMIUM] = 0
        assert coordinator.state_for("ord-1").remaining[Category.PREMIUM] is None

    def test_untracked_state(self, coordinator):
        assert coordinator.state_for("nope") is None

    def test_capacity_must_be_positive(self):
        with pytest.raises(ValueError):
            FulfillmentCoordinator(max_tracked=0)


class TestCountReports:
    @pytest.mark.parametrize(
        "first, second",
        [(Category.PREMIUM, Category.STANDARD), (Category.STANDARD, Category.PREMIUM)],
    )
    def test_both_zero_in_either_order_marks_packing_once(self, coordinator, writes, first, second):
        coordinator.begin_tracking("ord-1")

        assert coordinator.record_count(first, 0) is False
        assert coordinator.record_count(second, 0) is True
        assert coordinator.record_count(first, 0) is False

        assert writes == [("ord-1", "packing")]
        assert coordinator.state_for("ord-1").stage == Stage.PACKING

    def test_countdown_then_zero(self, coordinator, writes):
        coordinator.begin_tracking("ord-1")
        for remaining in (2, 1, 0):
            coordinator.record_count(Category.PREMIUM, remaining)
        assert writes == []
        coordinator.record_count(Category.STANDARD, 0)
        assert writes == [("ord-1", "packing")]

    def test_id_less_report_goes_to_oldest_waiting_order(self, coordinator):
        coordinator.begin_tracking("ord-1")
        coordinator.begin_tracking("ord-2")

        coordinator.record_count(Category.PREMIUM, 4)

        assert coordinator.state_for("ord-1").remaining[Category.PREMIUM] == 4
        assert coordinator.state_for("ord-2").remaining[Category.PREMIUM] is None

    def test_id_less_reports_move_on_once_oldest_is_packing(self, coordinator, writes):
        coordinator.begin_tracking("ord-1")
        coordinator.begin_tracking("ord-2")

        coordinator.record_count(Category.PREMIUM, 0)
        coordinator.record_count(Category.STANDARD, 0)
        coordinator.record_count(Category.PREMIUM, 0)
        coordinator.record_count(Category.STANDARD, 0)

        assert writes == [("ord-1", "packing"), ("ord-2", "packing")]

    def test_id_less_report_falls_back_to_newest_when_all_packing(self, coordinator):
        coordinator.begin_tracking("ord-1")
        coordinator.record_count(Category.PREMIUM, 0)
        coordinator.record_count(Category.STANDARD, 0)

        coordinator.record_count(Category.PREMIUM, 2)

        assert coordinator.state_for("ord-1").remaining[Category.PREMIUM] == 2

    def test_finished_oldest_hands_reports_to_next_order(self, coordinator, writes):
        coordinator.begin_tracking("ord-1")
        coordinator.begin_tracking("ord-2")
        coordinator.record_completion("ord-1", "finished")

        coordinator.record_count(Category.PREMIUM, 0)
        coordinator.record_count(Category.STANDARD, 0)

        assert writes == [("ord-1", "finished"), ("ord-2", "packing")]

    def test_report_with_id_only_touches_that_order(self, coordinator, writes):
        coordinator.begin_tracking("ord-1")
        coordinator.begin_tracking("ord-2")

        coordinator.record_count(Category.PREMIUM, 0, order_id="ord-1")
        coordinator.record_count(Category.STANDARD, 0, order_id="ord-1")

        assert writes == [("ord-1", "packing")]
        assert coordinator.state_for("ord-2").remaining == {Category.PREMIUM: None, Category.STANDARD: None}

    def test_report_for_untracked_id_is_discarded(self, coordinator, writes):
        coordinator.begin_tracking("ord-1")

        assert coordinator.record_count(Category.PREMIUM, 0, order_id="ord-9") is False

        assert coordinator.state_for("ord-1").remaining[Category.PREMIUM] is None
        assert writes == []

    def test_report_with_nothing_tracked_is_discarded(self, coordinator, writes):
        assert coordinator.record_count(Category.PREMIUM, 0) is False
        assert writes == []

    def test_apply_count(self, coordinator):
        coordinator.begin_tracking("ord-1")
        coordinator.apply_count(CountReport(category=Category.STANDARD, remaining=5))
        assert coordinator.state_for("ord-1").remaining[Category.STANDARD] == 5


class TestCompletionReports:
    def test_completion_after_packing(self, coordinator, writes):
        coordinator.begin_tracking("ord-1")
        coordinator.record_count(Category.PREMIUM, 0)
        coordinator.record_count(Category.STANDARD, 0)

        assert coordinator.record_completion("ord-1", "finished") is True

        assert writes == [("ord-1", "packing"), ("ord-1", "finished")]
        assert coordinator.is_tracking("ord-1") is False

    def test_completion_before_packing(self, coordinator, writes):
        coordinator.begin_tracking("ord-1")
        coordinator.record_count(Category.PREMIUM, 0)

        assert coordinator.record_completion("ord-1", "finished") is True

        assert writes == [("ord-1", "finished")]
        assert coordinator.is_tracking("ord-1") is False

    def test_completion_for_untracked_order(self, coordinator, writes):
        coordinator.begin_tracking("ord-1")

        assert coordinator.record_completion("ord-2", "finished") is False

        assert writes == []
        assert coordinator.is_tracking("ord-1")

    def test_other_commands_are_ignored(self, coordinator, writes):
        coordinator.begin_tracking("ord-1")

        assert coordinator.record_completion("ord-1", "started") is False

        assert writes == []
        assert coordinator.is_tracking("ord-1")

    def test_duplicate_completion(self, coordinator, writes):
        coordinator.begin_tracking("ord-1")
        coordinator.record_completion("ord-1", "finished")

        assert coordinator.record_completion("ord-1", "finished") is False
        assert writes == [("ord-1", "finished")]

    def test_late_counts_after_completion_are_discarded(self, coordinator, writes):
        coordinator.begin_tracking("ord-1")
        coordinator.record_completion("ord-1", "finished")

        coordinator.record_count(Category.PREMIUM, 0, order_id="ord-1")
        coordinator.record_count(Category.STANDARD, 0, order_id="ord-1")

        assert writes == [("ord-1", "finished")]

    def test_apply_completion(self, coordinator, writes):
        coordinator.begin_tracking("ord-1")
        coordinator.apply_completion(CompletionReport(order_id="ord-1", command="finished"))
        assert writes == [("ord-1", "finished")]


class TestEviction:
    def test_idle_orders_are_evicted(self, coordinator, clock):
        coordinator.begin_tracking("ord-1")
        clock.advance(61)

        assert coordinator.snapshot() == []
        assert coordinator.is_tracking("ord-1") is False

    def test_activity_keeps_order_tracked(self, coordinator, clock):
        coordinator.begin_tracking("ord-1")
        clock.advance(50)
        coordinator.record_count(Category.PREMIUM, 3)
        clock.advance(50)

        assert [row["order_id"] for row in coordinator.snapshot()] == ["ord-1"]

    def test_completion_after_eviction_is_discarded(self, coordinator, clock, writes):
        coordinator.begin_tracking("ord-1")
        clock.advance(61)

        assert coordinator.record_completion("ord-1", "finished") is False
        assert writes == []

    def test_capacity_evicts_oldest(self, coordinator):
        for order_id in ("ord-1", "ord-2", "ord-3", "ord-4"):
            coordinator.begin_tracking(order_id)

        assert [row["order_id"] for row in coordinator.snapshot()] == ["ord-2", "ord-3", "ord-4"]


class TestStatusWriteFailures:
    def test_persistence_error_is_logged_not_raised(self, clock):
        def failing(order_id, status):
            raise PersistenceError("store offline")

        coordinator = FulfillmentCoordinator(status_writer=failing, clock=clock)
        coordinator.begin_tracking("ord-1")
        coordinator.record_count(Category.PREMIUM, 0)

        assert coordinator.record_count(Category.STANDARD, 0) is True
        assert coordinator.record_completion("ord-1", "finished") is True


class TestGetCoordinator:
    def setup_method(self):
        reset_coordinator()

    def test_singleton(self):
        assert get_coordinator() is get_coordinator()

    def test_limits_from_environment(self, monkeypatch):
        monkeypatch.setenv("FULFILLMENT_IDLE_TIMEOUT", "120")
        monkeypatch.setenv("FULFILLMENT_MAX_TRACKED", "4")

        coordinator = get_coordinator()

        assert coordinator.idle_timeout == 120.0
        assert coordinator.max_tracked == 4


class TestConcurrentFeedback:
    def test_parallel_orders_each_pack_and_finish_once(self, writes):
        def record(order_id, status):
            writes.append((order_id, status))
            return True

        coordinator = FulfillmentCoordinator(status_writer=record, max_tracked=64)
        order_ids = [f"ord-{n}" for n in range(16)]
        barrier = threading.Barrier(len(order_ids))
        errors = []

        def device_feed(order_id):
            try:
                coordinator.begin_tracking(order_id)
                barrier.wait()
                for _ in range(5):
                    coordinator.record_count(Category.PREMIUM, 0, order_id=order_id)
                    coordinator.record_count(Category.STANDARD, 0, order_id=order_id)
            except Exception as exc:  # noqa: BLE001
                errors.append(exc)

        threads = [threading.Thread(target=device_feed, args=(order_id,)) for order_id in order_ids]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        assert errors == []
        assert sorted(writes) == sorted((order_id, "packing") for order_id in order_ids)
        assert sorted(row["order_id"] for row in coordinator.snapshot()) == sorted(order_ids)

        finishers = [
            threading.Thread(target=coordinator.record_completion, args=(order_id, "finished"))
            for order_id in order_ids
            for _ in range(3)
        ]
        for thread in finishers:
            thread.start()
        for thread in finishers:
            thread.join(timeout=10)

        assert [status for _, status in writes].count("finished") == len(order_ids)
        assert coordinator.snapshot() == []
