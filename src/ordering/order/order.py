"""Order aggregate (CQRS) — the core of the ordering domain.

An Order owns its items; removing an order removes its items. Status only
moves forward as the fulfillment devices report progress.

State Machine:
    PENDING → PACKING → FINISHED
    PENDING → FINISHED  (completion reported before both dispensers ran dry)
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, HasMany, Integer, String

from ordering.domain import ordering


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    PACKING = "packing"
    FINISHED = "finished"


_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PACKING, OrderStatus.FINISHED},
    OrderStatus.PACKING: {OrderStatus.FINISHED},
    OrderStatus.FINISHED: set(),  # terminal
}

UNFINISHED_STATUSES = {OrderStatus.PENDING, OrderStatus.PACKING}


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class OrderItem:
    """A line of an order: a wine label and how many bottles of it.

    The label is stored as given. Whether it belongs to a dispensing category
    is decided when totals are computed, not here.
    """

    wine_type = String(required=True, max_length=255)
    quantity = Integer(required=True, min_value=1)


# ---------------------------------------------------------------------------
# Aggregate Root (CQRS)
# ---------------------------------------------------------------------------
@ordering.aggregate
class Order:
    status = String(
        max_length=20,
        choices=OrderStatus,
        default=OrderStatus.PENDING.value,
    )
    items = HasMany(OrderItem)
    created_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, items_data: list[dict]):
        """Create a pending order from a list of ``{wine_type, quantity}`` dicts.

        Raises ValidationError if the list is empty or any line breaks an
        item constraint; no partially built order escapes.
        """
        if not items_data:
            raise ValidationError({"items": ["An order needs at least one item"]})

        order = cls(
            status=OrderStatus.PENDING.value,
            created_at=datetime.now(UTC),
        )
        for item_data in items_data:
            if not isinstance(item_data, dict):
                raise ValidationError({"items": [f"Order line must be an object, got {type(item_data).__name__}"]})
            order.add_items(
                OrderItem(
                    wine_type=item_data.get("wine_type"),
                    quantity=item_data.get("quantity"),
                )
            )
        return order

    # -------------------------------------------------------------------
    # Status transitions
    # -------------------------------------------------------------------
    def advance_to(self, target_status: OrderStatus) -> bool:
        """Move the order to ``target_status``.

        Returns False when the order already has that status, so repeated
        reports from the devices leave the order untouched. Raises
        ValidationError for a backward transition.
        """
        current = OrderStatus(self.status)
        if current == target_status:
            return False
        if target_status not in _VALID_TRANSITIONS[current]:
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})
        self.status = target_status.value
        return True

    @property
    def is_finished(self) -> bool:
        return OrderStatus(self.status) == OrderStatus.FINISHED
