# agency_api/realtime/hub.py
"""
Realtime hub: authenticates sockets, keeps the connection registry and
routes project chat messages and user notifications to live connections.

Wire protocol (JSON text frames on /ws?token=<jwt>):

  client -> server   {"type": "subscribe", "projectId"?}
                     {"type": "unsubscribe", "projectId"}
                     {"type": "ping"}
  server -> client   connected, subscribed, subscribed_all, unsubscribed,
                     new_message, notification, pong, error

Authentication failures close the socket with 1008. Every other problem
is reported as an `error` frame and the connection stays open.

Delivery is best-effort: nothing is queued for a socket that is not open,
so clients re-fetch chat/notification history after reconnecting.
"""
from __future__ import annotations

import json
import logging
import threading
from typing import Callable, List, Optional

from flask import current_app

from agency_api.common.errors import APIError, AuthenticationError, ValidationError
from .connection import CLOSE_GOING_AWAY, CLOSE_POLICY_VIOLATION, Connection
from .registry import ConnectionRegistry
from .roles import Role, ensure_can_subscribe, projects_visible_to

log = logging.getLogger(__name__)

DEFAULT_HEARTBEAT_SECONDS = 30


def decode_access_token(token: str) -> dict:
    """Verify a bearer token with the REST API's signing secret."""
    from flask_jwt_extended import decode_token
    from flask_jwt_extended.exceptions import JWTExtendedException
    from jwt.exceptions import PyJWTError

    try:
        return decode_token(token)
    except (PyJWTError, JWTExtendedException) as e:
        raise AuthenticationError(f"Authentication failed: {e}")


def _project_id(raw) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValidationError("Invalid projectId")


class RealtimeHub:
    def __init__(
        self,
        store,
        registry: Optional[ConnectionRegistry] = None,
        token_decoder: Callable[[str], dict] = decode_access_token,
        heartbeat_seconds: float = DEFAULT_HEARTBEAT_SECONDS,
    ):
        self.store = store
        self.registry = registry or ConnectionRegistry()
        self.token_decoder = token_decoder
        self.heartbeat_seconds = heartbeat_seconds
        self._stop = threading.Event()
        self._heartbeat_thread: Optional[threading.Thread] = None

    # ---------- connection lifecycle ----------

    def authenticate(self, token: Optional[str]):
        if not token:
            raise AuthenticationError("Authentication required")
        claims = self.token_decoder(token)
        try:
            user_id = int(claims.get("sub"))
        except (TypeError, ValueError):
            raise AuthenticationError("Invalid token identity")
        user = self.store.get_user(user_id)
        if user is None:
            raise AuthenticationError("User not found")
        return user

    def on_connect(self, transport, token: Optional[str]) -> Optional[Connection]:
        """Authenticate and register a socket. Returns None when the socket was rejected."""
        try:
            user = self.authenticate(token)
            role = Role.parse(user.role)
        except AuthenticationError as e:
            log.warning("WebSocket connection rejected: %s", e.message)
            transport.close(CLOSE_POLICY_VIOLATION, e.message)
            return None

        conn = Connection(transport, user.id, role)
        self.registry.register(conn)
        log.info("WebSocket authenticated for user %s (%s)", user.id, role.value)

        if role is not Role.CLIENT:
            self.auto_subscribe(conn)

        conn.send_json({
            "type": "connected",
            "message": "WebSocket connected successfully",
            "userId": conn.user_id,
            "autoSubscribed": role is not Role.CLIENT,
        })
        return conn

    def disconnect(self, conn: Connection) -> None:
        if self.registry.remove_connection(conn):
            log.info("WebSocket closed for user %s", conn.user_id)

    # ---------- inbound frames ----------

    def handle_frame(self, conn: Connection, raw) -> None:
        conn.mark_alive()
        try:
            message = json.loads(raw)
            if not isinstance(message, dict):
                raise ValueError("frame is not an object")
        except ValueError:
            conn.send_json({"type": "error", "message": "Invalid message format"})
            return

        kind = message.get("type")
        try:
            if kind == "subscribe":
                if message.get("projectId") is None:
                    self.auto_subscribe(conn)
                else:
                    self.subscribe(conn, _project_id(message["projectId"]))
            elif kind == "unsubscribe":
                if message.get("projectId") is None:
                    raise ValidationError("projectId is required")
                self.unsubscribe(conn, _project_id(message["projectId"]))
            elif kind == "ping":
                conn.send_json({"type": "pong"})
            else:
                conn.send_json({"type": "error", "message": "Unknown message type"})
        except APIError as e:
            conn.send_json({"type": "error", "message": e.message})

    # ---------- subscriptions ----------

    def auto_subscribe(self, conn: Connection) -> List[int]:
        if conn.role is Role.CLIENT:
            conn.send_json({"type": "error", "message": "Clients must subscribe to specific projects"})
            return []
        try:
            project_ids = projects_visible_to(conn.role, conn.user_id, self.store)
        except Exception:
            log.exception("Error auto-subscribing user %s", conn.user_id)
            conn.send_json({"type": "error", "message": "Failed to auto-subscribe to projects"})
            return []

        # the lookup above may have blocked; skip the writes if the socket closed meanwhile
        subscribed = [pid for pid in project_ids if self.registry.subscribe(conn, pid)]
        log.info("User %s (%s) auto-subscribed to %d projects", conn.user_id, conn.role.value, len(subscribed))
        conn.send_json({
            "type": "subscribed_all",
            "message": f"Auto-subscribed to {len(subscribed)} projects",
            "projectCount": len(subscribed),
            "projectIds": subscribed,
        })
        return subscribed

    def subscribe(self, conn: Connection, project_id: int) -> bool:
        """Raises AuthorizationError / NotFoundError when a client does not own the project."""
        try:
            ensure_can_subscribe(conn.role, conn.user_id, project_id, self.store)
        except APIError:
            log.info("User %s (%s) denied subscription to project %s", conn.user_id, conn.role.value, project_id)
            raise
        if not self.registry.subscribe(conn, project_id):
            return False
        log.info("User %s (%s) subscribed to project %s", conn.user_id, conn.role.value, project_id)
        conn.send_json({
            "type": "subscribed",
            "projectId": project_id,
            "message": f"Subscribed to project {project_id}",
        })
        return True

    def unsubscribe(self, conn: Connection, project_id: int) -> None:
        if self.registry.unsubscribe(conn, project_id):
            log.info("User %s unsubscribed from project %s", conn.user_id, project_id)
        conn.send_json({
            "type": "unsubscribed",
            "projectId": project_id,
            "message": f"Unsubscribed from project {project_id}",
        })

    # ---------- fan-out ----------

    def broadcast_message(self, project_id: int, message) -> int:
        payload = {"type": "new_message", "projectId": project_id, "message": message}
        sent = sum(1 for conn in self.registry.subscribers_of(project_id) if conn.send_json(payload))
        log.info("Broadcasted message to %d subscribers in project %s", sent, project_id)
        return sent

    def broadcast_notification(self, user_id: int, notification) -> int:
        payload = {"type": "notification", "notification": notification}
        sent = sum(1 for conn in self.registry.connections_of(user_id) if conn.send_json(payload))
        log.info("Broadcasted notification to %d connections for user %s", sent, user_id)
        return sent

    # ---------- liveness ----------

    def heartbeat(self) -> int:
        """
        One heartbeat tick. A connection that has not shown life since the
        previous tick is terminated and dropped from both indexes; every other
        open connection is pinged. Returns the number evicted.
        """
        evicted = 0
        for conn in self.registry.all_connections():
            if not conn.is_alive or not conn.is_open:
                log.info("Terminating dead connection for user %s", conn.user_id)
                conn.close(CLOSE_GOING_AWAY, "Heartbeat timeout")
                self.registry.remove_connection(conn)
                evicted += 1
                continue
            try:
                conn.ping()
            except Exception as e:
                log.warning("ping failed on %r: %s", conn, e)
        return evicted

    def _heartbeat_loop(self):
        while not self._stop.wait(self.heartbeat_seconds):
            self.heartbeat()

    def start_heartbeat(self) -> None:
        if self._heartbeat_thread and self._heartbeat_thread.is_alive():
            return
        self._stop.clear()
        self._heartbeat_thread = threading.Thread(
            target=self._heartbeat_loop, name="ws-heartbeat", daemon=True
        )
        self._heartbeat_thread.start()

    def close(self) -> None:
        self._stop.set()
        if self._heartbeat_thread:
            self._heartbeat_thread.join(timeout=1)
            self._heartbeat_thread = None
        for conn in self.registry.all_connections():
            conn.close(CLOSE_GOING_AWAY, "Server shutting down")
            self.registry.remove_connection(conn)
        log.info("WebSocket hub closed")


def current_hub() -> RealtimeHub:
    return current_app.extensions["realtime_hub"]
