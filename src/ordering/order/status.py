"""Order status updates — command, handler, and gateway entry point.

Updates are idempotent: re-applying the current status changes nothing, and
an update for an order that no longer exists is logged and dropped.
"""

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.exceptions import ValidationError as DomainValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain
from shared.errors import PersistenceError

from ordering.domain import ordering
from ordering.order.order import Order, OrderStatus

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    status = String(required=True, max_length=20, choices=OrderStatus)


@ordering.command_handler(part_of=Order)
class UpdateOrderStatusHandler:
    @handle(UpdateOrderStatus)
    def update_order_status(self, command):
        repo = current_domain.repository_for(Order)
        try:
            order = repo.get(command.order_id)
        except ObjectNotFoundError:
            logger.warning("Status update for unknown order", order_id=str(command.order_id), status=command.status)
            return False

        if not order.advance_to(OrderStatus(command.status)):
            return False
        repo.add(order)
        return True


def update_order_status(order_id: str, status: str) -> bool:
    """Set the status of an order; returns True if the stored status changed.

    Runs inside its own ordering domain context so it can be called from the
    broker's network thread.

    Raises:
        PersistenceError: if the store could not be read or written.
    """
    with ordering.domain_context():
        try:
            changed = current_domain.process(
                UpdateOrderStatus(order_id=order_id, status=status),
                asynchronous=False,
            )
        except DomainValidationError as exc:
            logger.warning("Status update ignored", order_id=order_id, status=status, errors=exc.messages)
            return False
        except Exception as exc:
            raise PersistenceError(f"Could not update order {order_id} to {status}: {exc}") from exc

    if changed:
        logger.info("Order status updated", order_id=order_id, status=status)
    return bool(changed)
