"""In-memory transport — synchronous broker for tests and local development.

Messages are delivered to subscribers in the publishing thread. Every publish
is recorded so tests can assert on what the shop sent to the devices, and
``deliver()`` injects a device message as if the broker had received it.
"""

import threading
from collections import defaultdict

import structlog

from shared.errors import TransportError
from shared.transport.port import MessageHandler, TransportPort

logger = structlog.get_logger(__name__)


class InMemoryTransport(TransportPort):
    """Broker stand-in that always succeeds by default."""

    def __init__(self):
        self.should_succeed = True
        self.failure_reason = "Broker unavailable"
        self.published: list[tuple[str, bytes, int]] = []
        self._handlers: dict[str, list[MessageHandler]] = defaultdict(list)
        self._connected = False
        self._lock = threading.Lock()

    def configure(self, should_succeed: bool = True, failure_reason: str = "Broker unavailable"):
        """Configure the transport behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def connect(self) -> None:
        if not self.should_succeed:
            raise TransportError(self.failure_reason)
        self._connected = True

    def disconnect(self) -> None:
        self._connected = False

    @property
    def connected(self) -> bool:
        return self._connected

    def publish(self, topic: str, payload: bytes, qos: int = 0) -> None:
        if not self._connected:
            raise TransportError(f"Cannot publish on {topic}: not connected")
        if not self.should_succeed:
            raise TransportError(self.failure_reason)
        with self._lock:
            self.published.append((topic, payload, qos))
        self.deliver(topic, payload)

    def subscribe(self, topic: str, handler: MessageHandler, qos: int = 0) -> None:  # noqa: ARG002
        with self._lock:
            self._handlers[topic].append(handler)

    def deliver(self, topic: str, payload: bytes | str) -> None:
        """Hand a message to every subscriber of ``topic``."""
        if isinstance(payload, str):
            payload = payload.encode("utf-8")
        with self._lock:
            handlers = list(self._handlers.get(topic, ()))
        logger.debug("Message received", topic=topic, payload=payload.decode("utf-8", "replace"))
        for handler in handlers:
            try:
                handler(topic, payload)
            except Exception:
                logger.exception("Message handler failed", topic=topic)

    def published_on(self, topic: str) -> list[bytes]:
        """Return the payloads published on ``topic``, oldest first."""
        with self._lock:
            return [payload for published_topic, payload, _ in self.published if published_topic == topic]
