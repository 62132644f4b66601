"""Broadcast hub — fan-out of board events to live subscribers.

One hub per application, created by create_app() and kept on
``app.extensions["broadcast_hub"]``. It is the only owner of the
viewer -> channel registry.

Thread-safe: the registry is guarded by a single lock. Publishing takes a
snapshot under the lock and writes outside it, so a slow or broken
channel never blocks registration or other publishers.

Delivery is best-effort and at most once per subscriber per event: a
failed write is logged and skipped, not retried, and does not remove the
subscriber. Removal belongs to the connection's own teardown.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional, Protocol, Union

from flask import current_app

from taskboard.errors import BroadcastDeliveryFailure
from taskboard.realtime.events import BroadcastEvent, EventType, Payload, make_event

logger = logging.getLogger(__name__)

EXTENSION_KEY = "broadcast_hub"


class Channel(Protocol):
    def send(self, frame: str) -> None: ...

    def close(self) -> bool: ...


class BroadcastHub:
    """Registry of live channels, one per viewer."""

    def __init__(self) -> None:
        self._channels: dict[str, Channel] = {}
        self._lock = threading.Lock()

    @property
    def connection_count(self) -> int:
        with self._lock:
            return len(self._channels)

    def viewers(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._channels)

    def get(self, viewer_id: str) -> Optional[Channel]:
        with self._lock:
            return self._channels.get(viewer_id)

    def register(self, viewer_id: str, channel: Channel) -> Optional[Channel]:
        """Store ``channel`` for the viewer, replacing any previous one.

        Returns the replaced channel, if any. It is not closed here: the old
        connection closes through its own teardown.
        """
        with self._lock:
            previous = self._channels.get(viewer_id)
            self._channels[viewer_id] = channel
            total = len(self._channels)
        if previous is not None and previous is not channel:
            logger.info(f"Viewer {viewer_id} reconnected, replaced stale channel")
        logger.info(f"Viewer {viewer_id} connected. Total connections: {total}")
        return previous

    def unregister(self, viewer_id: str, channel: Optional[Channel] = None) -> bool:
        """Remove the viewer's channel. Absent viewers are a no-op.

        With ``channel`` given, only remove the entry if it is still that
        channel, so a stale connection cannot evict its replacement.
        """
        with self._lock:
            current = self._channels.get(viewer_id)
            if current is None:
                return False
            if channel is not None and current is not channel:
                return False
            del self._channels[viewer_id]
            total = len(self._channels)
        logger.info(f"Viewer {viewer_id} disconnected. Total connections: {total}")
        return True

    def publish(self, event_type: Union[EventType, str], payload: Union[Payload, dict[str, Any]]) -> int:
        """Build an event of ``event_type`` and send it to every viewer.

        Returns the number of channels the frame was written to.
        """
        return self.publish_event(_build_event(event_type, payload))

    def publish_event(self, event: BroadcastEvent) -> int:
        frame = event.to_frame()
        with self._lock:
            targets = list(self._channels.items())

        sent = 0
        failed = 0
        for viewer_id, channel in targets:
            if self._deliver(viewer_id, channel, frame):
                sent += 1
            else:
                failed += 1

        logger.info(f"Broadcast '{event.type.value}': {sent} sent, {failed} failed")
        return sent

    def send_to(
        self,
        viewer_id: str,
        event_type: Union[EventType, str],
        payload: Union[Payload, dict[str, Any]],
    ) -> bool:
        """Send one event to a single viewer, if connected."""
        channel = self.get(viewer_id)
        if channel is None:
            logger.warning(f"Viewer {viewer_id} not connected, dropping '{EventType(event_type).value}'")
            return False
        return self._deliver(viewer_id, channel, _build_event(event_type, payload).to_frame())

    def shutdown(self) -> int:
        """Close every channel and empty the registry (process shutdown)."""
        with self._lock:
            channels = list(self._channels.items())
            self._channels.clear()
        for viewer_id, channel in channels:
            try:
                channel.close()
            except Exception:
                logger.exception(f"Failed to close channel for viewer {viewer_id}")
        if channels:
            logger.info(f"Broadcast hub shut down, closed {len(channels)} connections")
        return len(channels)

    @staticmethod
    def _deliver(viewer_id: str, channel: Channel, frame: str) -> bool:
        try:
            channel.send(frame)
            return True
        except BroadcastDeliveryFailure as e:
            logger.warning(f"[SSE] {e}")
        except Exception:
            logger.exception(f"[SSE] Unexpected error writing to viewer {viewer_id}")
        return False


def _build_event(event_type, payload) -> BroadcastEvent:
    if isinstance(payload, dict):
        return make_event(event_type, **payload)
    return BroadcastEvent(type=EventType(event_type), data=payload)


def init_hub(app) -> BroadcastHub:
    """Create the application's hub and attach it to ``app.extensions``."""
    hub = BroadcastHub()
    app.extensions[EXTENSION_KEY] = hub
    return hub


def get_hub() -> BroadcastHub:
    """The current application's hub."""
    return current_app.extensions[EXTENSION_KEY]
