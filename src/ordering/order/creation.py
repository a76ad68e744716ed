"""Order creation — command, handler, and gateway entry point."""

import json

import structlog
from protean import handle
from protean.exceptions import ValidationError as DomainValidationError
from protean.fields import Text
from protean.utils.globals import current_domain
from shared.errors import PersistenceError

from ordering.domain import ordering
from ordering.order.order import Order

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class CreateOrder:
    """Persist a new order together with all of its items."""

    items = Text(required=True)  # JSON: list of {wine_type, quantity}


@ordering.command_handler(part_of=Order)
class CreateOrderHandler:
    @handle(CreateOrder)
    def create_order(self, command):
        items_data = json.loads(command.items) if isinstance(command.items, str) else command.items
        order = Order.create(items_data)
        current_domain.repository_for(Order).add(order)
        return str(order.id)


def create_order(items: list[dict]) -> str:
    """Store an order and its items as one unit and return the new order id.

    Raises:
        PersistenceError: if any item breaks a storage constraint or the
            write fails. Nothing is stored in that case.
    """
    try:
        order_id = current_domain.process(CreateOrder(items=json.dumps(items)), asynchronous=False)
    except DomainValidationError as exc:
        logger.error("Order rejected by the store", errors=exc.messages)
        raise PersistenceError(f"Invalid order item: {exc.messages}") from exc
    except Exception as exc:
        logger.error("Order could not be stored", error=str(exc))
        raise PersistenceError(f"Could not store order: {exc}") from exc
    logger.info("Order stored", order_id=order_id, item_count=len(items))
    return order_id
