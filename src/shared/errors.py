"""Error taxonomy shared by the ordering and fulfillment contexts.

Protean's own ``ValidationError`` covers field constraints inside the domain
model. These exceptions describe failures at the edges of the system: the
request payload, the store, the broker, and inbound device messages.
"""


class BodegaError(Exception):
    """Base class for all application errors."""


class ValidationError(BodegaError):
    """The order request is absent, not a list, or empty. Nothing was written."""


class PersistenceError(BodegaError):
    """Reading from or writing to the order store failed."""


class TransportError(BodegaError):
    """Publishing, subscribing, or connecting to the broker failed."""


class MalformedMessageError(BodegaError):
    """An inbound broker payload could not be decoded."""

    def __init__(self, topic: str, reason: str):
        super().__init__(f"Malformed message on {topic}: {reason}")
        self.topic = topic
        self.reason = reason
