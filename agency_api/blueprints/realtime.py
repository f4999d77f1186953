import logging

from flask import Blueprint, current_app, request
from simple_websocket import ConnectionClosed

from agency_api.extensions import sock
from agency_api.realtime import current_hub
from agency_api.realtime.connection import SockTransport

bp = Blueprint("realtime", __name__)
log = logging.getLogger(__name__)


@sock.route("/ws", bp=bp)
def socket_endpoint(ws):
    hub = current_hub()
    transport = SockTransport(ws)
    conn = hub.on_connect(transport, request.args.get("token"))
    if conn is None:
        return

    timeout = current_app.config["WS_RECEIVE_TIMEOUT"]
    try:
        while transport.connected:
            data = ws.receive(timeout=timeout)
            if transport.pong_received:
                conn.mark_alive()
            if data is None:
                continue
            hub.handle_frame(conn, data)
    except ConnectionClosed:
        log.debug("socket closed by peer for user %s", conn.user_id)
    finally:
        hub.disconnect(conn)
