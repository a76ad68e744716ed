"""Order listing — read side for operators watching the packing cell."""

import structlog
from protean.utils.globals import current_domain
from shared.errors import PersistenceError

from ordering.order.order import Order, OrderItem, OrderStatus

logger = structlog.get_logger(__name__)


def _item_to_dict(item) -> dict:
    return {"wine_type": item.wine_type, "quantity": item.quantity}


def _items_of(order) -> list:
    # Queried directly: the HasMany accessor is capped at the default page size.
    return (
        current_domain.repository_for(OrderItem)._dao.query.filter(order_id=str(order.id)).limit(None).all().items
    )


def _order_to_dict(order, with_items: bool = True) -> dict:
    row = {
        "id": str(order.id),
        "created_at": order.created_at.isoformat() if order.created_at else None,
        "status": order.status,
    }
    if with_items:
        row["items"] = [_item_to_dict(item) for item in _items_of(order)]
    return row


def list_orders_with_items() -> list[dict]:
    """Return every order with its items.

    Unfinished orders (pending, packing) come first, then finished ones; each
    group is ordered by creation time, most recent first. An order whose row
    cannot be built is logged and left out.

    Raises:
        PersistenceError: if the orders could not be read.
    """
    try:
        orders = current_domain.repository_for(Order)._dao.query.order_by("-created_at").limit(None).all().items
    except Exception as exc:
        raise PersistenceError(f"Could not read orders: {exc}") from exc

    # Stable sort keeps newest-first within each group.
    orders = sorted(orders, key=lambda o: OrderStatus(o.status) == OrderStatus.FINISHED)

    rows = []
    for order in orders:
        try:
            rows.append(_order_to_dict(order))
        except Exception:
            logger.exception("Skipping unreadable order row", order_id=str(order.id))
    return rows


def sample_orders(limit: int = 5) -> list[dict]:
    """Return up to ``limit`` of the newest orders without items, as a store connectivity probe."""
    try:
        orders = current_domain.repository_for(Order)._dao.query.order_by("-created_at").limit(limit).all().items
    except Exception as exc:
        raise PersistenceError(f"Could not read orders: {exc}") from exc
    return [_order_to_dict(order, with_items=False) for order in orders]
