"""
Publish transports for push queries.

A transport exposes ``connected`` and ``publish(topic, payload)``. The
interval publisher checks ``connected`` before every tick and skips the tick
when it is False; transports reconnect on their own.

- ``MqttTransport``: paho-mqtt client with its network loop in a background
  thread (``loop_start``) and automatic reconnect.
- ``RedisTransport``: Redis pub/sub; the topic is the channel name.
"""

import logging
from typing import Protocol

import paho.mqtt.client as mqtt
import redis

from querygate.core import redis_client
from querygate.core.config import settings

_log = logging.getLogger(__name__)


class PublishError(Exception):
    """The transport refused or failed to send a message."""

    pass


class PublishTransport(Protocol):
    @property
    def connected(self) -> bool: ...

    def publish(self, topic: str, payload: bytes) -> None: ...

    def close(self) -> None: ...


class MqttTransport:
    """MQTT publisher (QoS 0)."""

    def __init__(
        self,
        host: str,
        port: int = 1883,
        *,
        client_id: str = "",
        username: str | None = None,
        password: str | None = None,
        client: mqtt.Client | None = None,
    ) -> None:
        self.host = host
        self.port = port
        self._client = client or mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2, client_id=client_id
        )
        if username:
            self._client.username_pw_set(username, password)
        self._client.on_connect = self._on_connect
        self._client.on_disconnect = self._on_disconnect

    def start(self) -> None:
        """Connect in the background; paho keeps reconnecting until ``close``."""
        self._client.connect_async(self.host, self.port)
        self._client.loop_start()
        _log.info("MQTT connecting to %s:%s", self.host, self.port)

    @property
    def connected(self) -> bool:
        return self._client.is_connected()

    def publish(self, topic: str, payload: bytes) -> None:
        try:
            info = self._client.publish(topic, payload)
        except (ValueError, OSError) as e:
            raise PublishError(f"MQTT publish to {topic} failed: {e}") from e
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise PublishError(f"MQTT publish to {topic} failed: {mqtt.error_string(info.rc)}")

    def close(self) -> None:
        self._client.disconnect()
        self._client.loop_stop()

    def _on_connect(self, client, userdata, flags, reason_code, properties) -> None:
        if reason_code.is_failure:
            _log.warning("MQTT connect to %s:%s refused: %s", self.host, self.port, reason_code)
        else:
            _log.info("MQTT connected to %s:%s", self.host, self.port)

    def _on_disconnect(self, client, userdata, flags, reason_code, properties) -> None:
        _log.warning("MQTT disconnected from %s:%s: %s", self.host, self.port, reason_code)


class RedisTransport:
    """Redis pub/sub publisher on the shared client."""

    def start(self) -> None:
        if redis_client.get_redis() is None:
            _log.warning("Redis transport started without a reachable server")

    @property
    def connected(self) -> bool:
        if redis_client.ping():
            return True
        # Next tick retries with a fresh client.
        redis_client.reset()
        return False

    def publish(self, topic: str, payload: bytes) -> None:
        client = redis_client.get_redis()
        if client is None:
            raise PublishError(f"Redis unavailable, cannot publish to {topic}")
        try:
            client.publish(topic, payload)
        except redis.RedisError as e:
            raise PublishError(f"Redis publish to {topic} failed: {e}") from e

    def close(self) -> None:
        redis_client.reset()


def build_transport() -> MqttTransport | RedisTransport | None:
    """Transport selected by ``PUBLISH_TRANSPORT`` (None for ``none``)."""
    if settings.PUBLISH_TRANSPORT == "mqtt":
        return MqttTransport(
            settings.MQTT_HOST,
            settings.MQTT_PORT,
            client_id=settings.MQTT_CLIENT_ID,
            username=settings.MQTT_USERNAME,
            password=settings.MQTT_PASSWORD,
        )
    if settings.PUBLISH_TRANSPORT == "redis":
        return RedisTransport()
    return None
