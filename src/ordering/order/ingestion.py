"""Order intake — validate, store, start tracking, and notify the dispensers.

The caller gets its answer as soon as the dispensers have been sent their
totals; nothing here waits for a device. A publish that fails is logged and
left at that: the order is already stored and stays stored.
"""

from dataclasses import dataclass

import structlog
from fulfillment.coordinator import get_coordinator
from shared.catalogue import Category, category_totals
from shared.channels import channel_for_category, topic_for
from shared.errors import TransportError, ValidationError
from shared.messages import encode_totals
from shared.transport import get_transport

from ordering.order.creation import create_order

logger = structlog.get_logger(__name__)

TOTALS_QOS = 1


@dataclass(frozen=True)
class OrderPlacement:
    """Outcome of a successful order intake."""

    order_id: str
    total_premium: int
    total_standard: int


def place_order(lines, transport=None, coordinator=None) -> OrderPlacement:
    """Take in an order made of ``{wine_type, quantity}`` lines.

    Raises:
        ValidationError: if ``lines`` is absent, not a list, or empty.
        PersistenceError: if the order could not be stored.
    """
    if lines is None or not isinstance(lines, list) or not lines:
        raise ValidationError("Order is empty or malformed")

    transport = transport or get_transport()
    coordinator = coordinator or get_coordinator()

    logger.info("Order received", line_count=len(lines))
    order_id = create_order(lines)

    totals = category_totals(lines)
    coordinator.begin_tracking(order_id)

    for category, total in totals.items():
        _publish_total(transport, category, order_id, total)

    return OrderPlacement(
        order_id=order_id,
        total_premium=totals[Category.PREMIUM],
        total_standard=totals[Category.STANDARD],
    )


def _publish_total(transport, category: Category, order_id: str, total: int) -> None:
    topic = topic_for(channel_for_category(category))
    try:
        transport.publish(topic, encode_totals(category, order_id, total), qos=TOTALS_QOS)
    except TransportError as exc:
        logger.error(
            "Failed to send totals to dispenser",
            order_id=order_id,
            category=category.value,
            total=total,
            error=str(exc),
        )
        return
    logger.info("Totals sent to dispenser", order_id=order_id, category=category.value, total=total)
