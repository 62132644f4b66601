"""Realtime blueprint — /api/realtime/*

Server-Sent Events feed of board changes. One stream per viewer; opening a
second stream for the same viewer replaces the first in the hub.

Route Map:
  GET /api/realtime/updates  — text/event-stream of board events
  GET /api/realtime/status   — Number of open streams on this worker
"""

from flask import Blueprint, Response, current_app, jsonify
from flask_login import current_user

from taskboard.decorators import api_login_required
from taskboard.realtime.hub import get_hub
from taskboard.realtime.stream import SubscriptionStream

realtime_bp = Blueprint("realtime", __name__, url_prefix="/api/realtime")

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "X-Accel-Buffering": "no",  # Disable buffering in nginx
}


@realtime_bp.route("/updates")
@api_login_required
def updates():
    stream = SubscriptionStream(
        get_hub(),
        current_user.id,
        heartbeat_interval=current_app.config["SSE_HEARTBEAT_INTERVAL"],
        queue_size=current_app.config["SSE_QUEUE_SIZE"],
    )
    response = Response(stream.frames(), mimetype="text/event-stream", headers=SSE_HEADERS)
    # Covers a client that goes away before the generator ever runs.
    response.call_on_close(stream.teardown)
    return response


@realtime_bp.route("/status")
@api_login_required
def status():
    return jsonify({"connections": get_hub().connection_count})
