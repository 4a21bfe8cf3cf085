"""
SocketIO Event Handlers for Real-time Updates

Clients connect to the ``/live`` namespace to hear about settled matches and
refetch the leaderboard when it changes.
"""

import logging
from datetime import datetime, timezone

from flask import request
from flask_login import current_user
from flask_socketio import emit, join_room, leave_room

from app import socketio

logger = logging.getLogger(__name__)

NAMESPACE = "/live"

# Track connected clients and their subscriptions
connected_users = {}


@socketio.on("connect", namespace=NAMESPACE)
def on_connect():
    """Handle client connection to the live namespace"""
    try:
        user_id = current_user.id if current_user.is_authenticated else None
        client_id = request.sid

        connected_users[client_id] = {"user_id": user_id, "subscriptions": set()}

        # Personal room for wager results
        if user_id is not None:
            join_room(f"user_{user_id}")

        logger.info(f"Client connected to {NAMESPACE}: {client_id} (user: {user_id})")
        emit("connected", {"user_id": user_id})
    except Exception as e:
        logger.error(f"Error in live connect: {e}")


@socketio.on("disconnect", namespace=NAMESPACE)
def on_disconnect():
    """Handle client disconnection from the live namespace"""
    try:
        client_id = request.sid
        info = connected_users.pop(client_id, None)
        if info:
            logger.info(
                f"Client disconnected from {NAMESPACE}: {client_id} (user: {info['user_id']})"
            )
    except Exception as e:
        logger.error(f"Error in live disconnect: {e}")


@socketio.on("subscribe_match", namespace=NAMESPACE)
def on_subscribe_match(data):
    """Subscribe to updates for a specific match"""
    client_id = request.sid
    match_id = (data or {}).get("match_id")
    if client_id not in connected_users or not match_id:
        return

    room_name = f"match_{match_id}"
    if room_name in connected_users[client_id]["subscriptions"]:
        return

    connected_users[client_id]["subscriptions"].add(room_name)
    join_room(room_name)
    logger.debug(f"Client {client_id} subscribed to match {match_id}")


@socketio.on("unsubscribe_match", namespace=NAMESPACE)
def on_unsubscribe_match(data):
    """Unsubscribe from updates for a specific match"""
    client_id = request.sid
    match_id = (data or {}).get("match_id")
    if client_id in connected_users and match_id:
        connected_users[client_id]["subscriptions"].discard(f"match_{match_id}")
        leave_room(f"match_{match_id}")


def broadcast_match_settled(match, wagers=()):
    """Broadcast a new, changed or revoked match result.

    Called after the settlement transaction has committed; a failed broadcast
    never undoes a settlement.
    """
    try:
        timestamp = datetime.now(timezone.utc).isoformat()
        socketio.emit("match_settled", match.to_dict(), namespace=NAMESPACE)

        for wager in wagers:
            socketio.emit(
                "wager_result",
                {
                    "wager_id": wager.id,
                    "match_id": wager.match_id,
                    "outcome": wager.outcome_for(match),
                },
                room=f"user_{wager.user_id}",
                namespace=NAMESPACE,
            )

        socketio.emit(
            "leaderboard_stale",
            {"match_id": match.id, "timestamp": timestamp},
            namespace=NAMESPACE,
        )
        logger.info(
            f"Broadcasted settlement of match {match.id} to {len(wagers)} bettors"
        )
    except Exception as e:
        logger.error(f"Error broadcasting settlement of match {match.id}: {e}")


def get_connection_stats():
    """Get connection statistics"""
    return {
        "total_connections": len(connected_users),
        "authenticated_users": len(
            [u for u in connected_users.values() if u["user_id"]]
        ),
        "total_subscriptions": sum(
            len(u["subscriptions"]) for u in connected_users.values()
        ),
    }
