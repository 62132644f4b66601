"""Live update feed: typed events, the broadcast hub, subscriber streams."""

from taskboard.realtime.events import BroadcastEvent, EventType, make_event  # noqa: F401
from taskboard.realtime.hub import BroadcastHub, get_hub, init_hub  # noqa: F401
from taskboard.realtime.stream import (  # noqa: F401
    ChannelState,
    SubscriberChannel,
    SubscriptionStream,
)
