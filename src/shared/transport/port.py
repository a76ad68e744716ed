"""Transport port — abstract interface for publish/subscribe brokers.

The ordering and fulfillment code programs against the port; adapters are
swapped via configuration. Delivery is at most once, unordered, and may
duplicate messages. Adapters do not retry.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable

MessageHandler = Callable[[str, bytes], None]


class TransportPort(ABC):
    """Abstract interface for broker adapters."""

    @abstractmethod
    def connect(self) -> None:
        """Open the broker session.

        Raises:
            TransportError: if the session cannot be started.
        """
        ...

    @abstractmethod
    def disconnect(self) -> None:
        """Close the broker session. Safe to call when not connected."""
        ...

    @property
    @abstractmethod
    def connected(self) -> bool:
        """Whether the broker session is currently up."""
        ...

    @abstractmethod
    def publish(self, topic: str, payload: bytes, qos: int = 0) -> None:
        """Publish a payload on a topic, fire-and-forget.

        Raises:
            TransportError: if the broker refused or could not queue the message.
        """
        ...

    @abstractmethod
    def subscribe(self, topic: str, handler: MessageHandler, qos: int = 0) -> None:
        """Register ``handler(topic, payload)`` for every message on ``topic``.

        Subscriptions registered before ``connect()`` are activated once the
        session is up, and re-activated after a reconnect.

        Raises:
            TransportError: if the broker rejected the subscription.
        """
        ...
