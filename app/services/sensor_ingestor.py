# app/services/sensor_ingestor.py
"""
MQTT sensor ingestor: listens to the door sensor and feeds the ledger.

Topic (subscribe): MQTT_TOPIC_SENSOR    payload "add" | "remove" (case-insensitive)
Topic (publish):   MQTT_TOPIC_CAPACITY  payload = new max capacity as plain text

paho runs the network loop on its own thread and reconnects by itself with
exponential backoff (MQTT_RECONNECT_MIN_SECONDS → MQTT_RECONNECT_MAX_SECONDS).
Messages published while we are disconnected are lost; the reconciler only
trusts the committed visitor log, so that window never corrupts the count.
"""

import asyncio
import secrets
import time
from typing import Callable, Optional, Union

import paho.mqtt.client as mqtt

from app.config import Settings
from app.errors import FeedUnreachable, OccupancyError
from app.schemas.visitor_event import RealtimeEvent, VisitorEventType
from app.services.broadcast import (
    BroadcastGateway, DASHBOARD_UPDATE, STATS_HOURLY, VISITOR_EVENT,
)
from app.services.ledger import OccupancyLedger
from app.utils.logger import get_logger
from app.utils.timezone import isoformat_in_zone

logger = get_logger(__name__)

SENSOR_COMMANDS = {
    "add": VisitorEventType.ENTRY,
    "remove": VisitorEventType.EXIT,
}


def parse_sensor_payload(payload: Union[bytes, str]) -> Optional[VisitorEventType]:
    """Map a raw sensor payload to an event type, or None if unrecognised."""
    if isinstance(payload, bytes):
        payload = payload.decode("utf-8", errors="replace")
    return SENSOR_COMMANDS.get(payload.strip().lower())


class SensorIngestor:
    def __init__(
        self,
        ledger: OccupancyLedger,
        gateway: BroadcastGateway,
        settings: Settings,
        client: Optional[mqtt.Client] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._ledger = ledger
        self._gateway = gateway
        self._settings = settings
        self._clock = clock
        self.topic_sensor = settings.MQTT_TOPIC_SENSOR
        self.topic_capacity = settings.MQTT_TOPIC_CAPACITY

        self._client = client or self._build_client()
        self._connected = False
        self._accepting = True
        self._stopping = False
        self.last_message_at = self._clock()

    # ── Client setup ─────────────────────────────────────────────────────
    def _build_client(self) -> mqtt.Client:
        s = self._settings
        client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=f"{s.MQTT_CLIENT_ID_PREFIX}-{secrets.token_hex(3)}",
            clean_session=True,
        )
        if s.MQTT_USERNAME:
            client.username_pw_set(s.MQTT_USERNAME, s.MQTT_PASSWORD)
        client.reconnect_delay_set(min_delay=s.MQTT_RECONNECT_MIN_SECONDS,
                                   max_delay=s.MQTT_RECONNECT_MAX_SECONDS)
        client.on_connect = self._on_connect
        client.on_disconnect = self._on_disconnect
        client.on_message = self._on_message
        return client

    def start(self):
        """Connect in the background; paho keeps retrying until the broker answers."""
        s = self._settings
        logger.info(f"📡 Connecting to MQTT broker mqtt://{s.MQTT_BROKER}:{s.MQTT_PORT}...")
        self._client.connect_async(s.MQTT_BROKER, s.MQTT_PORT, keepalive=s.MQTT_KEEPALIVE)
        self._client.loop_start()

    def stop_accepting(self):
        """Drop every message from now on; in-flight ledger writes still finish."""
        self._accepting = False

    def stop(self):
        self._accepting = False
        self._stopping = True
        self._client.disconnect()
        self._client.loop_stop()
        self._connected = False
        logger.info("[MQTT] Disconnected")

    @property
    def is_connected(self) -> bool:
        return self._connected

    # ── paho callbacks (network thread) ──────────────────────────────────
    def _on_connect(self, client, userdata, flags, reason_code, properties):
        if reason_code.is_failure:
            logger.warning(f"❌ [MQTT] Broker refused connection: {reason_code}")
            return
        self._connected = True
        client.subscribe(self.topic_sensor, qos=1)
        logger.info(f"✅ [MQTT] Connected — subscribed to {self.topic_sensor}")

    def _on_disconnect(self, client, userdata, flags, reason_code, properties):
        self._connected = False
        if not self._stopping:
            logger.warning(f"⚠️  [MQTT] Connection lost ({reason_code}) — reconnecting with backoff")

    def _on_message(self, client, userdata, message):
        # an exception escaping here would stop paho's network loop
        try:
            self.handle_message(message.topic, message.payload)
        except Exception:
            logger.exception(f"[MQTT] Error handling message on {message.topic}")

    # ── Event handling ───────────────────────────────────────────────────
    def handle_message(self, topic: str, payload: Union[bytes, str], now=None) -> Optional[RealtimeEvent]:
        """
        Record one sensor message and push the update to dashboard clients.
        Never raises: bad payloads and storage failures are logged and dropped.
        """
        self.last_message_at = self._clock()
        logger.debug(f"[MQTT] Received: {topic} -> {payload!r}")

        if not self._accepting:
            logger.debug("[MQTT] Shutting down — message dropped")
            return None
        if topic != self.topic_sensor:
            logger.debug(f"[MQTT] Ignoring message on {topic}")
            return None

        event_type = parse_sensor_payload(payload)
        if event_type is None:
            logger.warning(f"[MQTT] Unknown message on {topic}: {payload!r} — ignored")
            return None

        try:
            entry, current_visitors = self._ledger.record_visitor_event(event_type, now)
            snapshot = self._ledger.get_current_status()
            hourly = self._ledger.query_today_hourly_aggregates(now)
        except OccupancyError as e:
            logger.error(f"[MQTT] Failed to record {event_type.value} event: {e.detail}")
            return None
        except Exception:
            logger.exception(f"[MQTT] Unexpected error recording {event_type.value} event")
            return None

        event = RealtimeEvent(
            id=str(entry.id),
            type=event_type,
            timestamp=isoformat_in_zone(entry.timestamp, self._ledger.tz_name),
            current_visitors=current_visitors,
        )
        self._gateway.publish([
            (VISITOR_EVENT, event),
            (DASHBOARD_UPDATE, snapshot),
            (STATS_HOURLY, hourly),
        ])
        logger.info(f"📥 [MQTT] Processed {event_type.value} event. Current visitors: {current_visitors}")
        return event

    def publish_capacity(self, capacity: int):
        """Tell the sensor controller about a new limit. Raises FeedUnreachable."""
        if not self._connected:
            raise FeedUnreachable("MQTT client not connected")
        info = self._client.publish(self.topic_capacity, str(capacity), qos=1)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise FeedUnreachable(f"Publish to {self.topic_capacity} failed (rc={info.rc})")
        logger.info(f"[MQTT] Published capacity: {capacity} to {self.topic_capacity}")

    # ── Liveness ─────────────────────────────────────────────────────────
    def seconds_since_last_message(self) -> float:
        return max(0.0, self._clock() - self.last_message_at)

    def check_liveness(self) -> bool:
        """False (and a warning) when the feed has been silent too long."""
        silent_for = self.seconds_since_last_message()
        if silent_for > self._settings.FEED_STALE_SECONDS:
            logger.warning(
                f"⏱  [MQTT] No messages received in {int(silent_for // 60)} min — connection may be stale"
            )
            return False
        return True

    async def watch_liveness(self):
        """Background task: check the feed every FEED_CHECK_INTERVAL_SECONDS."""
        while not self._stopping:
            await asyncio.sleep(self._settings.FEED_CHECK_INTERVAL_SECONDS)
            self.check_liveness()
