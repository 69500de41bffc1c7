from contextlib import nullcontext

import pytest
from fastapi import status
from starlette.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from inbox.core import redis as redis_module
from inbox.core.config import settings
from inbox.db.session import get_db, get_session_factory
from inbox.main import app
from tests.utils.factories import create_conversation_factory

REALTIME_PATH = f"{settings.API_V1_PREFIX}/realtime"


@pytest.fixture
def ws_client(db_session, test_redis_url, monkeypatch):
    """Runs the app with its lifespan so sockets and requests share one loop."""
    monkeypatch.setattr(settings, "REDIS_URL", test_redis_url)

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: lambda: nullcontext(db_session)

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()
    redis_module.redis_client = None


@pytest.fixture
def signed_in_ws(ws_client, test_user_token):
    ws_client.cookies.set("access_token", test_user_token)
    return ws_client


class TestRealtimeRoute:
    def test_should_close_without_session(self, ws_client):
        with pytest.raises(WebSocketDisconnect) as exc:
            with ws_client.websocket_connect(REALTIME_PATH):
                pass

        assert exc.value.code == status.WS_1008_POLICY_VIOLATION

    def test_should_close_with_invalid_token(self, ws_client):
        ws_client.cookies.set("access_token", "garbage")

        with pytest.raises(WebSocketDisconnect) as exc:
            with ws_client.websocket_connect(REALTIME_PATH):
                pass

        assert exc.value.code == status.WS_1008_POLICY_VIOLATION

    def test_should_greet_signed_in_user(self, signed_in_ws, test_user):
        with signed_in_ws.websocket_connect(REALTIME_PATH) as ws:
            assert ws.receive_json() == {"type": "hello", "user_id": str(test_user.id)}

    def test_should_check_membership_on_subscribe(
        self, signed_in_ws, db_session, test_user, other_user
    ):
        own = create_conversation_factory(db_session, [test_user, other_user])
        foreign = create_conversation_factory(db_session, [other_user])

        with signed_in_ws.websocket_connect(REALTIME_PATH) as ws:
            ws.receive_json()

            ws.send_json({"type": "subscribe", "conversation_id": str(foreign.id)})
            refused = ws.receive_json()
            ws.send_json({"type": "subscribe", "conversation_id": str(own.id)})
            accepted = ws.receive_json()

        assert refused["type"] == "error"
        assert refused["conversation_id"] == str(foreign.id)
        assert accepted == {"type": "subscribed", "conversation_id": str(own.id)}

    def test_should_push_insert_after_post(self, signed_in_ws, db_session, test_user, other_user):
        conversation = create_conversation_factory(db_session, [test_user, other_user])

        with signed_in_ws.websocket_connect(REALTIME_PATH) as ws:
            ws.receive_json()
            ws.send_json({"type": "subscribe", "conversation_id": str(conversation.id)})
            assert ws.receive_json()["type"] == "subscribed"

            response = signed_in_ws.post(
                f"{settings.API_V1_PREFIX}/conversations/{conversation.id}/messages",
                json={"content": "hello live", "client_id": "local-1"},
            )
            frame = ws.receive_json()

        assert response.status_code == 201
        assert frame["type"] == "INSERT"
        assert frame["table"] == "messages"
        assert frame["record"]["id"] == response.json()["id"]
        assert frame["record"]["content"] == "hello live"
        assert frame["record"]["client_id"] == "local-1"
        assert frame["record"]["sender_name"] == "Test User"

    def test_should_answer_binary_frame_with_error(self, signed_in_ws):
        with signed_in_ws.websocket_connect(REALTIME_PATH) as ws:
            ws.receive_json()

            ws.send_bytes(b"\x00\x01")
            error = ws.receive_json()
            ws.send_json({"type": "ping"})
            pong = ws.receive_json()

        assert error["type"] == "error"
        assert pong == {"type": "pong"}
