"""Subscriber connections for the live feed.

A SubscriberChannel is the per-viewer output buffer the hub writes into.
A SubscriptionStream drives one connection through its life:

    CONNECTING -> OPEN -> CLOSING -> CLOSED

It registers the channel with the hub, yields a ``connected`` frame, then
relays queued frames, writing a keep-alive comment whenever the channel
stays idle for ``heartbeat_interval`` seconds. The keep-alive "timer" is
the queue wait itself, so stopping the generator stops the timer.

Teardown (client gone, write error, hub shutdown) runs exactly once, from
whichever path gets there first: the generator's ``finally`` or the
response's close callback.
"""

import enum
import logging
import queue
import threading

from taskboard.errors import BroadcastDeliveryFailure
from taskboard.realtime.events import HEARTBEAT_FRAME, EventType, make_event

logger = logging.getLogger(__name__)

# Wakes a waiting stream so it can tear down.
_CLOSE = object()


class ChannelState(str, enum.Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


class SubscriberChannel:
    """Bounded frame buffer for one viewer. Only OPEN channels accept frames."""

    def __init__(self, viewer_id, maxsize=256):
        self.viewer_id = viewer_id
        self._queue = queue.Queue(maxsize=maxsize)
        self._state = ChannelState.CONNECTING
        self._lock = threading.Lock()

    @property
    def state(self):
        return self._state

    @property
    def pending(self):
        return self._queue.qsize()

    def open(self):
        with self._lock:
            if self._state is not ChannelState.CONNECTING:
                raise RuntimeError(f"Cannot open a {self._state.value} channel")
            self._state = ChannelState.OPEN

    def send(self, frame):
        with self._lock:
            if self._state is not ChannelState.OPEN:
                raise BroadcastDeliveryFailure(self.viewer_id, f"channel is {self._state.value}")
            try:
                self._queue.put_nowait(frame)
            except queue.Full:
                raise BroadcastDeliveryFailure(self.viewer_id, "send buffer full") from None

    def next_frame(self, timeout):
        """Next queued frame, None after ``timeout`` idle seconds, or _CLOSE."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def close(self):
        """Stop accepting frames and wake the reader. True on first call."""
        with self._lock:
            if self._state in (ChannelState.CLOSING, ChannelState.CLOSED):
                return False
            self._state = ChannelState.CLOSING
            self._drain()
            self._queue.put_nowait(_CLOSE)
        return True

    def mark_closed(self):
        with self._lock:
            self._state = ChannelState.CLOSED

    def _drain(self):
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                return

    def __repr__(self):
        return f"<SubscriberChannel {self.viewer_id} {self._state.value}>"


class SubscriptionStream:
    """One viewer's long-lived connection to the hub."""

    def __init__(self, hub, viewer_id, heartbeat_interval=30.0, queue_size=256):
        self.hub = hub
        self.viewer_id = viewer_id
        self.heartbeat_interval = heartbeat_interval
        self.channel = SubscriberChannel(viewer_id, maxsize=queue_size)
        self._lock = threading.Lock()
        self._torn_down = False

    @property
    def state(self):
        return self.channel.state

    def open(self):
        """Register with the hub. False if the stream was already torn down."""
        with self._lock:
            if self._torn_down:
                return False
            self.channel.open()
            self.hub.register(self.viewer_id, self.channel)
        return True

    def frames(self):
        """Generator of SSE frames for the response body."""
        try:
            if not self.open():
                return
            yield make_event(EventType.CONNECTED).to_frame()
            while True:
                frame = self.channel.next_frame(timeout=self.heartbeat_interval)
                if frame is _CLOSE:
                    break
                # A failed write here raises GeneratorExit at the yield.
                yield HEARTBEAT_FRAME if frame is None else frame
        finally:
            self.teardown()

    def teardown(self):
        """Unregister and release the channel. Runs once; True on that run."""
        with self._lock:
            if self._torn_down:
                return False
            self._torn_down = True
        self.channel.close()
        self.hub.unregister(self.viewer_id, self.channel)
        self.channel.mark_closed()
        logger.info(f"[SSE] Stream for viewer {self.viewer_id} closed")
        return True
