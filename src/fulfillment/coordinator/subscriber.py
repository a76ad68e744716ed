"""Inbound broker subscriber — Fulfillment reacts to device reports.

Binds the four device channels of the transport to the coordinator. Every
payload is decoded before it can touch coordinator state; payloads that do
not decode are logged and dropped.
"""

import structlog
from shared.catalogue import Category
from shared.channels import Channel, topic_for
from shared.errors import MalformedMessageError, TransportError
from shared.messages import decode_completion, decode_count
from shared.transport.port import TransportPort

from fulfillment.coordinator.coordinator import FulfillmentCoordinator

logger = structlog.get_logger(__name__)


class CoordinatorSubscriber:
    """Reacts to dispenser and robot messages on behalf of the coordinator."""

    def __init__(self, coordinator: FulfillmentCoordinator):
        self.coordinator = coordinator

    def bind(self, transport: TransportPort) -> None:
        """Subscribe to every device channel (QoS 0, at most once)."""
        transport.subscribe(topic_for(Channel.PREMIUM), self.on_premium_count, qos=0)
        transport.subscribe(topic_for(Channel.STANDARD), self.on_standard_count, qos=0)
        transport.subscribe(topic_for(Channel.ROBOT_COMMAND), self.on_robot_command, qos=0)
        transport.subscribe(topic_for(Channel.ROBOT_STATUS), self.on_robot_status, qos=0)

    def on_premium_count(self, topic: str, payload: bytes) -> None:
        self._on_count(topic, Category.PREMIUM, payload)

    def on_standard_count(self, topic: str, payload: bytes) -> None:
        self._on_count(topic, Category.STANDARD, payload)

    def on_robot_status(self, topic: str, payload: bytes) -> None:
        try:
            report = decode_completion(topic, payload)
        except MalformedMessageError as exc:
            logger.warning("Discarding malformed robot report", topic=topic, reason=exc.reason)
            return
        self.coordinator.apply_completion(report)

    def on_robot_command(self, topic: str, payload: bytes) -> None:
        # Commands addressed to the robot carry nothing the coordinator tracks.
        logger.debug("Robot command observed", topic=topic, size=len(payload))

    def _on_count(self, topic: str, category: Category, payload: bytes) -> None:
        try:
            report = decode_count(topic, category, payload)
        except MalformedMessageError as exc:
            logger.warning("Discarding malformed count report", topic=topic, reason=exc.reason)
            return
        if report is None:
            logger.debug("Ignoring echoed totals", topic=topic)
            return
        self.coordinator.apply_count(report)


def start_listening(transport: TransportPort, coordinator: FulfillmentCoordinator) -> bool:
    """Bind the device channels and open the broker session.

    A broker that cannot be reached is logged rather than raised: orders are
    still taken, and their totals are logged as unsent until it comes back.
    Returns True if the session was opened.
    """
    CoordinatorSubscriber(coordinator).bind(transport)
    try:
        transport.connect()
    except TransportError as exc:
        logger.error("Broker connection failed", error=str(exc))
        return False
    return True
