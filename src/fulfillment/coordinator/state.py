"""Per-order fulfillment state held by the coordinator.

Not persisted. One FulfillmentState exists for every order the coordinator
is currently correlating device feedback against.

Stage Machine:
    AWAITING_COUNTS → PACKING → FINISHED
    AWAITING_COUNTS → FINISHED  (robot finished before both counts hit zero)
"""

from dataclasses import dataclass, field
from enum import Enum

from shared.catalogue import Category


class Stage(Enum):
    AWAITING_COUNTS = "AwaitingCounts"
    PACKING = "Packing"
    FINISHED = "Finished"


def _unknown_counts() -> dict[Category, int | None]:
    return {category: None for category in Category}


@dataclass
class FulfillmentState:
    order_id: str
    started_at: float
    last_activity: float
    remaining: dict[Category, int | None] = field(default_factory=_unknown_counts)
    packing_issued: bool = False
    stage: Stage = Stage.AWAITING_COUNTS

    def record_count(self, category: Category, remaining: int, now: float) -> bool:
        """Overwrite the remaining count for ``category``.

        Returns True exactly once: on the report that first leaves both
        categories known and at zero. The latch keeps later zero reports
        from firing again.
        """
        self.remaining[category] = remaining
        self.last_activity = now
        if self.packing_issued or self.stage == Stage.FINISHED:
            return False
        if all(count == 0 for count in self.remaining.values()):
            self.packing_issued = True
            self.stage = Stage.PACKING
            return True
        return False

    def finish(self, now: float) -> None:
        self.stage = Stage.FINISHED
        self.last_activity = now

    def is_idle(self, now: float, idle_timeout: float) -> bool:
        return now - self.last_activity > idle_timeout

    def to_dict(self, now: float) -> dict:
        return {
            "order_id": self.order_id,
            "stage": self.stage.value,
            "remaining": {category.value: count for category, count in self.remaining.items()},
            "packing_issued": self.packing_issued,
            "age_seconds": round(now - self.started_at, 3),
            "idle_seconds": round(now - self.last_activity, 3),
        }
