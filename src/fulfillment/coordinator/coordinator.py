"""Fulfillment coordinator — correlates device feedback with placed orders.

Three independent feeds arrive with no ordering or delivery guarantee: the
premium and standard dispensers report how many bottles they still have to
hand out, and the packing robot reports when an order is boxed. The
coordinator folds those reports into one forward-only lifecycle per order
and writes each status change to the store at most once.

Concurrency:
    Order intake (HTTP requests) and device feedback (broker thread) share
    the tracking table. Every read or write of the table happens under one
    re-entrant lock; store writes happen after the lock is released.
"""

import threading
import time
from collections import OrderedDict
from collections.abc import Callable

import structlog
from ordering.order.status import update_order_status
from shared.catalogue import Category
from shared.errors import PersistenceError
from shared.messages import CompletionReport, CountReport

from fulfillment.coordinator.state import FulfillmentState, Stage

logger = structlog.get_logger(__name__)

StatusWriter = Callable[[str, str], bool]

PACKING = "packing"
FINISHED = "finished"

DEFAULT_IDLE_TIMEOUT = 3600.0
DEFAULT_MAX_TRACKED = 32


class FulfillmentCoordinator:
    """Tracks in-flight orders and drives their status from device reports.

    Each tracked order gets its own FulfillmentState, created when the order
    is placed and dropped when the robot reports it finished, when it has
    been idle for ``idle_timeout`` seconds, or when more than ``max_tracked``
    orders are in flight (oldest first).
    """

    def __init__(
        self,
        status_writer: StatusWriter | None = None,
        idle_timeout: float = DEFAULT_IDLE_TIMEOUT,
        max_tracked: int = DEFAULT_MAX_TRACKED,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_tracked < 1:
            raise ValueError("max_tracked must be at least 1")
        self._status_writer = status_writer or update_order_status
        self.idle_timeout = idle_timeout
        self.max_tracked = max_tracked
        self._clock = clock
        self._tracked: OrderedDict[str, FulfillmentState] = OrderedDict()
        self._lock = threading.RLock()

    # -------------------------------------------------------------------
    # Order intake
    # -------------------------------------------------------------------
    def begin_tracking(self, order_id: str) -> None:
        """Start correlating feedback for a newly placed order.

        Counts start unknown and the packing latch starts open. Re-tracking an
        id that is already tracked resets its state.
        """
        order_id = str(order_id)
        with self._lock:
            now = self._clock()
            self._evict_idle(now)
            self._tracked.pop(order_id, None)
            while len(self._tracked) >= self.max_tracked:
                evicted_id, evicted = self._tracked.popitem(last=False)
                logger.warning(
                    "Tracking capacity reached, dropping oldest order",
                    order_id=evicted_id,
                    stage=evicted.stage.value,
                    max_tracked=self.max_tracked,
                )
            self._tracked[order_id] = FulfillmentState(order_id=order_id, started_at=now, last_activity=now)
        logger.info("Tracking order", order_id=order_id)

    # -------------------------------------------------------------------
    # Device feedback
    # -------------------------------------------------------------------
    def record_count(self, category: Category, remaining: int, order_id: str | None = None) -> bool:
        """Apply a dispenser's remaining count.

        A report naming an order applies to that order only. A report without
        an order id applies to the oldest tracked order still waiting for its
        dispensers, or to the newest order if none is waiting.
        Returns True if this report moved the order to packing.
        """
        with self._lock:
            now = self._clock()
            self._evict_idle(now)
            state = self._resolve(order_id)
            if state is None:
                logger.info(
                    "Discarding count report for untracked order",
                    category=category.value,
                    remaining=remaining,
                    order_id=order_id,
                )
                return False
            fire_packing = state.record_count(category, remaining, now)
            target_id = state.order_id

        logger.debug("Remaining count", order_id=target_id, category=category.value, remaining=remaining)
        if fire_packing:
            logger.info("Both dispensers empty, marking order packing", order_id=target_id)
            self._write_status(target_id, PACKING)
        return fire_packing

    def record_completion(self, order_id: str, command: str) -> bool:
        """Apply a packing robot report. Returns True if the order finished."""
        order_id = str(order_id)
        with self._lock:
            now = self._clock()
            self._evict_idle(now)
            if command != FINISHED:
                logger.info("Ignoring robot report", order_id=order_id, command=command)
                return False
            state = self._tracked.pop(order_id, None)
            if state is None:
                logger.info("Discarding completion for untracked order", order_id=order_id)
                return False
            skipped_packing = state.stage == Stage.AWAITING_COUNTS
            state.finish(now)

        logger.info("Robot finished packing", order_id=order_id, skipped_packing=skipped_packing)
        self._write_status(order_id, FINISHED)
        return True

    def apply_count(self, report: CountReport) -> bool:
        return self.record_count(report.category, report.remaining, report.order_id)

    def apply_completion(self, report: CompletionReport) -> bool:
        return self.record_completion(report.order_id, report.command)

    # -------------------------------------------------------------------
    # Inspection
    # -------------------------------------------------------------------
    def is_tracking(self, order_id: str) -> bool:
        with self._lock:
            return str(order_id) in self._tracked

    def state_for(self, order_id: str) -> FulfillmentState | None:
        """Return a copy of the tracked state for ``order_id``, if any."""
        with self._lock:
            state = self._tracked.get(str(order_id))
            if state is None:
                return None
            return FulfillmentState(
                order_id=state.order_id,
                started_at=state.started_at,
                last_activity=state.last_activity,
                remaining=dict(state.remaining),
                packing_issued=state.packing_issued,
                stage=state.stage,
            )

    def snapshot(self) -> list[dict]:
        """Describe every tracked order, oldest first."""
        with self._lock:
            now = self._clock()
            self._evict_idle(now)
            return [state.to_dict(now) for state in self._tracked.values()]

    # -------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------
    def _resolve(self, order_id: str | None) -> FulfillmentState | None:
        if order_id is not None:
            return self._tracked.get(str(order_id))
        if not self._tracked:
            return None
        # Dispensers work through totals in the order they were sent.
        for state in self._tracked.values():
            if not state.packing_issued:
                return state
        return next(reversed(self._tracked.values()))

    def _evict_idle(self, now: float) -> None:
        idle = [oid for oid, state in self._tracked.items() if state.is_idle(now, self.idle_timeout)]
        for oid in idle:
            state = self._tracked.pop(oid)
            logger.warning(
                "Order idle too long, no longer tracking",
                order_id=oid,
                stage=state.stage.value,
                idle_seconds=round(now - state.last_activity, 3),
            )

    def _write_status(self, order_id: str, status: str) -> None:
        try:
            self._status_writer(order_id, status)
        except PersistenceError as exc:
            logger.error("Failed to persist order status", order_id=order_id, status=status, error=str(exc))
