from tests.factories import TENANT_ID, make_tenant


class TestLiveSocket:
    def test_auth_handshake_registers_session(self, client, notifier):
        with client.websocket_connect("/ws") as websocket:
            websocket.send_text("not json")
            websocket.send_json({"type": "ping"})
            websocket.send_json({"type": "auth", "tenantId": TENANT_ID})
            assert websocket.receive_json() == {"type": "ready"}
            assert notifier.connection_count(TENANT_ID) == 1

        assert notifier.connection_count(TENANT_ID) == 0

    def test_user_id_alias_is_accepted(self, client, notifier):
        with client.websocket_connect("/ws") as websocket:
            websocket.send_json({"type": "auth", "userId": "owner-7"})
            assert websocket.receive_json() == {"type": "ready"}
            assert notifier.connection_count("owner-7") == 1

    def test_events_reach_authenticated_session(self, client, db, notifier):
        make_tenant(db)
        with client.websocket_connect("/ws") as websocket:
            websocket.send_json({"type": "auth", "tenantId": TENANT_ID})
            websocket.receive_json()

            client.post(f"/api/chat/{TENANT_ID}", json={"visitorId": "v", "message": "Hi"})

            event = websocket.receive_json()
            assert event["type"] == "conversation:update"
            assert event["channel"] == "website"
