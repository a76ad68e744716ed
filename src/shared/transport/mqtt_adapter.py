"""MQTT transport — paho-mqtt adapter for the dispensers and the packing robot.

The network loop runs on paho's background thread (``loop_start``), which
also owns reconnection. Handlers are invoked on that thread.
"""

import threading
from collections import defaultdict

import paho.mqtt.client as mqtt
import structlog

from shared.errors import TransportError
from shared.transport.port import MessageHandler, TransportPort

logger = structlog.get_logger(__name__)


class MqttTransport(TransportPort):
    """Broker adapter over a single paho-mqtt client session."""

    def __init__(
        self,
        host: str,
        port: int = 1883,
        username: str | None = None,
        password: str | None = None,
        client_id: str = "",
        keepalive: int = 60,
    ):
        self.host = host
        self.port = port
        self.keepalive = keepalive
        self._client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=client_id)
        if username:
            self._client.username_pw_set(username, password)
        self._client.on_connect = self._on_connect
        self._client.on_disconnect = self._on_disconnect
        self._client.on_message = self._on_message

        self._handlers: dict[str, list[MessageHandler]] = defaultdict(list)
        self._qos: dict[str, int] = {}
        self._lock = threading.Lock()

    # -------------------------------------------------------------------
    # Session
    # -------------------------------------------------------------------
    def connect(self) -> None:
        try:
            self._client.connect_async(self.host, self.port, keepalive=self.keepalive)
        except (OSError, ValueError) as exc:
            raise TransportError(f"Cannot connect to MQTT broker at {self.host}:{self.port}: {exc}") from exc
        self._client.loop_start()

    def disconnect(self) -> None:
        self._client.disconnect()
        self._client.loop_stop()

    @property
    def connected(self) -> bool:
        return self._client.is_connected()

    # -------------------------------------------------------------------
    # Publish / subscribe
    # -------------------------------------------------------------------
    def publish(self, topic: str, payload: bytes, qos: int = 0) -> None:
        info = self._client.publish(topic, payload, qos=qos, retain=False)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise TransportError(f"Publish on {topic} failed: {mqtt.error_string(info.rc)}")
        logger.info("Message published", topic=topic, qos=qos, mid=info.mid)

    def subscribe(self, topic: str, handler: MessageHandler, qos: int = 0) -> None:
        with self._lock:
            self._handlers[topic].append(handler)
            self._qos[topic] = qos
        if self.connected:
            self._activate(topic, qos)

    def _activate(self, topic: str, qos: int) -> None:
        result, _mid = self._client.subscribe(topic, qos=qos)
        if result != mqtt.MQTT_ERR_SUCCESS:
            raise TransportError(f"Subscribe to {topic} failed: {mqtt.error_string(result)}")
        logger.info("Subscribed", topic=topic, qos=qos)

    # -------------------------------------------------------------------
    # paho callbacks (network thread)
    # -------------------------------------------------------------------
    def _on_connect(self, _client, _userdata, _flags, reason_code, _properties) -> None:
        if reason_code.is_failure:
            logger.error("MQTT connection refused", host=self.host, port=self.port, reason=str(reason_code))
            return
        logger.info("Connected to MQTT broker", host=self.host, port=self.port)
        with self._lock:
            subscriptions = list(self._qos.items())
        for topic, qos in subscriptions:
            try:
                self._activate(topic, qos)
            except TransportError as exc:
                logger.error("Subscribe error", topic=topic, error=str(exc))

    def _on_disconnect(self, _client, _userdata, _flags, reason_code, _properties) -> None:
        logger.warning("Disconnected from MQTT broker", host=self.host, reason=str(reason_code))

    def _on_message(self, _client, _userdata, message) -> None:
        topic = message.topic
        payload = message.payload
        logger.debug("Message received", topic=topic, payload=payload.decode("utf-8", "replace"))
        with self._lock:
            handlers = list(self._handlers.get(topic, ()))
        for handler in handlers:
            try:
                handler(topic, payload)
            except Exception:
                logger.exception("Message handler failed", topic=topic)
