import json
import threading
import time

import pytest
from simple_websocket import Client as WsClient, ConnectionClosed
from werkzeug.serving import make_server

from agency_api.common.auth import issue_token
from agency_api.models.crm import Client, Project
from agency_api.models.user import User


def _wait_for(predicate, timeout=3.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


def _frame(ws, timeout=3):
    data = ws.receive(timeout=timeout)
    assert data is not None, "no frame within timeout"
    return json.loads(data)


@pytest.fixture
def live(app, session):
    acme = Client(name="Acme", email="acme@test.local")
    other = Client(name="Other", email="other@test.local")
    session.add_all([acme, other]); session.commit()
    buyer = User(email="buyer@test.local", full_name="Buyer", role="client", client_id=acme.id)
    buyer.set_password("x")
    session.add(buyer); session.commit()
    own = Project(client_id=acme.id, name="Website")
    foreign = Project(client_id=other.id, name="Elsewhere")
    session.add_all([own, foreign]); session.commit()
    ids = {"buyer": buyer.id, "own": own.id, "foreign": foreign.id, "token": issue_token(buyer)}
    session.close()

    # pongs do not wake receive(); a short timeout lets the loop notice them
    app.config["WS_RECEIVE_TIMEOUT"] = 0.05
    server = make_server("127.0.0.1", 0, app, threaded=True)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    clients = []

    def connect(token):
        ws = WsClient.connect(f"ws://127.0.0.1:{server.server_port}/ws?token={token}")
        clients.append(ws)
        return ws

    yield app.extensions["realtime_hub"], connect, ids

    for ws in clients:
        if ws.connected:
            ws.close()
    server.shutdown()
    server.server_close()
    thread.join(timeout=5)


def test_bad_token_is_closed_with_policy_violation(live):
    hub, connect, _ = live
    ws = connect("not-a-jwt")
    with pytest.raises(ConnectionClosed) as exc:
        ws.receive(timeout=5)
    assert exc.value.reason == 1008
    assert hub.registry.user_ids() == set()


def test_socket_session_end_to_end(live):
    hub, connect, ids = live
    ws = connect(ids["token"])

    hello = _frame(ws)
    assert hello["type"] == "connected"
    assert hello["userId"] == ids["buyer"]
    assert hello["autoSubscribed"] is False

    ws.send(json.dumps({"type": "subscribe", "projectId": ids["foreign"]}))
    denied = _frame(ws)
    assert denied["type"] == "error"
    assert denied["message"].startswith("Access denied")

    ws.send(json.dumps({"type": "subscribe", "projectId": ids["own"]}))
    assert _frame(ws) == {
        "type": "subscribed",
        "projectId": ids["own"],
        "message": f"Subscribed to project {ids['own']}",
    }
    assert hub.registry.project_ids() == {ids["own"]}

    assert hub.broadcast_message(ids["own"], {"id": 1, "content": "hello"}) == 1
    got = _frame(ws)
    assert got["type"] == "new_message"
    assert got["projectId"] == ids["own"]
    assert got["message"]["content"] == "hello"

    # the client library answers pings on its own
    conn = hub.registry.connections_of(ids["buyer"])[0]
    assert hub.heartbeat() == 0
    assert _wait_for(lambda: conn.is_alive)
    assert hub.heartbeat() == 0
    assert hub.registry.connections_of(ids["buyer"]) == [conn]

    ws.close()
    assert _wait_for(lambda: hub.registry.user_ids() == set())
    assert hub.registry.project_ids() == set()
