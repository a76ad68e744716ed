"""Transport abstraction — pluggable publish/subscribe broker integration."""

import os

_transport_instance = None


def get_transport():
    """Return the configured transport adapter (singleton).

    Uses the in-memory transport by default. In production, set
    TRANSPORT_ADAPTER=mqtt and the MQTT_* environment variables.
    """
    global _transport_instance
    if _transport_instance is None:
        adapter = os.environ.get("TRANSPORT_ADAPTER", "memory")
        if adapter == "memory":
            from shared.transport.memory_adapter import InMemoryTransport

            _transport_instance = InMemoryTransport()
        elif adapter == "mqtt":
            from shared.transport.mqtt_adapter import MqttTransport

            _transport_instance = MqttTransport(
                host=os.environ.get("MQTT_BROKER_HOST", "localhost"),
                port=int(os.environ.get("MQTT_BROKER_PORT", "1883")),
                username=os.environ.get("MQTT_USERNAME"),
                password=os.environ.get("MQTT_PASSWORD"),
                client_id=os.environ.get("MQTT_CLIENT_ID", ""),
            )
        else:
            raise ValueError(f"Unknown transport adapter: {adapter}")
    return _transport_instance


def reset_transport():
    """Reset the transport singleton (useful for testing)."""
    global _transport_instance
    _transport_instance = None
