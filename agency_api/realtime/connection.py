# agency_api/realtime/connection.py
from __future__ import annotations

import itertools
import json
import logging
import threading

from .roles import Role

log = logging.getLogger(__name__)

CLOSE_GOING_AWAY = 1001
CLOSE_POLICY_VIOLATION = 1008  # auth failed/expired: clients must re-login, not retry

_ids = itertools.count(1)


class SockTransport:
    """
    Adapter over a flask-sock (simple-websocket) server socket.

    Transport surface the hub relies on:
      send(text), ping(), close(code, reason), connected, pong_received
    """

    def __init__(self, ws):
        self.ws = ws

    @property
    def connected(self) -> bool:
        return bool(getattr(self.ws, "connected", False))

    @property
    def pong_received(self) -> bool:
        return bool(getattr(self.ws, "pong_received", False))

    def send(self, text: str) -> None:
        self.ws.send(text)

    def ping(self) -> None:
        # simple-websocket (>=1.0) has no public ping on the server side; this writes a
        # wsproto Ping through Base.ws / Base.sock and relies on the reader thread
        # setting Base.pong_received when the Pong comes back. Recheck on upgrades.
        from wsproto.events import Ping
        self.ws.pong_received = False
        self.ws.sock.send(self.ws.ws.send(Ping()))

    def close(self, code: int, reason: str = "") -> None:
        self.ws.close(reason=code, message=reason)


class Connection:
    """An authenticated socket, tagged with its user and role."""

    def __init__(self, transport, user_id: int, role: Role):
        self.id = next(_ids)
        self.transport = transport
        self.user_id = user_id
        self.role = role
        self.is_alive = True
        self._send_lock = threading.Lock()

    def __repr__(self):
        return f"<Connection #{self.id} user={self.user_id} role={self.role.value}>"

    @property
    def is_open(self) -> bool:
        return self.transport.connected

    def send_json(self, payload: dict) -> bool:
        """Send one frame. Returns False (and sends nothing) when the socket is not open."""
        if not self.is_open:
            return False
        text = json.dumps(payload, default=str)
        with self._send_lock:
            try:
                self.transport.send(text)
            except Exception as e:
                log.warning("send failed on %r: %s", self, e)
                return False
        return True

    def mark_alive(self) -> None:
        self.is_alive = True

    def ping(self) -> None:
        self.is_alive = False
        with self._send_lock:
            self.transport.ping()

    def close(self, code: int = CLOSE_GOING_AWAY, reason: str = "") -> None:
        with self._send_lock:
            try:
                self.transport.close(code, reason)
            except Exception as e:
                log.debug("close failed on %r: %s", self, e)
