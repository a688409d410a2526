from unittest.mock import AsyncMock, patch

import pytest

from receptionist.models import Booking, Conversation, Message
from receptionist.services.booking_service import create_pending_booking
from receptionist.services.conversation_service import get_or_open_conversation, resolve_customer
from receptionist.services.message_service import append_message
from receptionist.services.result import Result
from tests.factories import TELEGRAM_CONFIG, TENANT_ID, add_channel, make_tenant
from tests.fakes import FakeProvider


@pytest.fixture
def conversation(db):
    make_tenant(db)
    customer = resolve_customer(db, TENANT_ID, "telegram", "123")
    conversation = get_or_open_conversation(db, TENANT_ID, customer.id, "telegram")
    append_message(db, conversation, "customer", "Hi")
    append_message(db, conversation, "ai", "Hello!")
    return conversation


@pytest.fixture
def booking(db, conversation):
    return create_pending_booking(
        db,
        TENANT_ID,
        conversation.customer_id,
        conversation.id,
        {"service": "Haircut", "datetime": "Friday 3pm"},
        fallback_name="Telegram 123",
    )


class TestConversations:
    def test_list_and_filter(self, client, conversation):
        response = client.get(f"/api/tenants/{TENANT_ID}/conversations", params={"status": "active"})
        assert response.status_code == 200
        data = response.json()
        assert [c["id"] for c in data] == [str(conversation.id)]
        assert data[0]["message_count"] == 2

        closed = client.get(f"/api/tenants/{TENANT_ID}/conversations", params={"status": "closed"})
        assert closed.json() == []

    def test_messages_in_order(self, client, conversation):
        response = client.get(f"/api/tenants/{TENANT_ID}/conversations/{conversation.id}/messages")
        assert [(m["position"], m["role"], m["content"]) for m in response.json()] == [
            (1, "customer", "Hi"),
            (2, "ai", "Hello!"),
        ]

    def test_close_then_close_again(self, client, db, conversation, live_connection):
        response = client.post(f"/api/tenants/{TENANT_ID}/conversations/{conversation.id}/close")
        assert response.status_code == 200
        assert response.json()["status"] == "closed"
        assert live_connection.sent[-1]["type"] == "conversation:update"

        again = client.post(f"/api/tenants/{TENANT_ID}/conversations/{conversation.id}/close")
        assert again.status_code == 409

    def test_other_tenant_cannot_read(self, client, db, conversation):
        make_tenant(db, tenant_id="tenant-2", name="Other")
        response = client.get(f"/api/tenants/tenant-2/conversations/{conversation.id}/messages")
        assert response.status_code == 404

    def test_unknown_tenant_is_404(self, client):
        assert client.get("/api/tenants/nobody/conversations").status_code == 404


class TestBookings:
    def test_list(self, client, booking):
        data = client.get(f"/api/tenants/{TENANT_ID}/bookings").json()
        assert len(data) == 1
        assert data[0]["status"] == "pending"
        assert data[0]["requested_time"] == "Friday 3pm"
        assert data[0]["customer_name"] == "Telegram 123"

    def test_confirm_publishes_update(self, client, booking, live_connection):
        response = client.patch(f"/api/tenants/{TENANT_ID}/bookings/{booking.id}", json={"status": "confirmed"})
        assert response.status_code == 200
        assert response.json()["status"] == "confirmed"
        assert live_connection.sent[-1] == {"type": "booking:update", "id": str(booking.id), "status": "confirmed"}

    def test_confirmation_is_sent_to_customer(self, client, db, booking, provider, live_connection):
        add_channel(db, TENANT_ID, "telegram", TELEGRAM_CONFIG)
        provider.reply = "Good news, your haircut on Friday at 3pm is confirmed!"

        with patch(
            "receptionist.services.channels.telegram.TelegramAdapter.send_outbound",
            new_callable=AsyncMock,
            return_value=Result.success({"message_id": 7}),
        ) as mock_send:
            response = client.patch(
                f"/api/tenants/{TENANT_ID}/bookings/{booking.id}", json={"status": "confirmed", "notes": "See you"}
            )

        assert response.status_code == 200
        mock_send.assert_awaited_once()
        assert mock_send.call_args[0][1:] == ("123", "Good news, your haircut on Friday at 3pm is confirmed!")

        instruction = provider.calls[-1][-1]
        assert instruction["role"] == "user"
        assert "APPROVED the Haircut booking for Friday 3pm" in instruction["content"]
        assert [m["content"] for m in provider.calls[-1][1:-1]] == ["Hi", "Hello!"]

        notification = db.query(Message).order_by(Message.position.desc()).first()
        assert (notification.position, notification.role) == (3, "ai")
        assert notification.message_metadata == {
            "action": "booking_notification",
            "ownerAction": "confirmed",
            "bookingId": str(booking.id),
        }
        assert [event["type"] for event in live_connection.sent] == ["booking:update", "conversation:update"]

    def test_failed_notification_is_not_recorded(self, client, db, booking):
        add_channel(db, TENANT_ID, "telegram", TELEGRAM_CONFIG)

        with patch(
            "receptionist.services.channels.telegram.TelegramAdapter.send_outbound",
            new_callable=AsyncMock,
            return_value=Result.failure("Forbidden: bot was blocked by the user", "403"),
        ):
            response = client.patch(f"/api/tenants/{TENANT_ID}/bookings/{booking.id}", json={"status": "cancelled"})

        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"
        assert db.query(Message).count() == 2

    def test_illegal_transition_is_409(self, client, db, booking):
        client.patch(f"/api/tenants/{TENANT_ID}/bookings/{booking.id}", json={"status": "cancelled"})
        response = client.patch(f"/api/tenants/{TENANT_ID}/bookings/{booking.id}", json={"status": "confirmed"})
        assert response.status_code == 409

    def test_unknown_status_is_422(self, client, booking):
        response = client.patch(f"/api/tenants/{TENANT_ID}/bookings/{booking.id}", json={"status": "done"})
        assert response.status_code == 422

    def test_booking_marker_creates_pending_booking(self, app, client, db, live_connection):
        make_tenant(db)
        app.state.pipeline.gateway.provider = FakeProvider(
            reply='Request sent!\n[[BOOKING {"service": "Nails", "datetime": "Monday 10am", "customer_name": "Kim"}]]'
        )

        response = client.post(f"/api/chat/{TENANT_ID}", json={"visitorId": "v", "message": "Nails Monday 10am"})

        assert response.json()["message"] == "Request sent!"
        booking = db.query(Booking).one()
        assert (booking.service, booking.requested_time, booking.customer_name) == ("Nails", "Monday 10am", "Kim")
        assert booking.status == "pending"
        assert booking.conversation_id == db.query(Conversation).one().id
        assert [event["type"] for event in live_connection.sent] == ["booking:new", "conversation:update"]


class TestChannelSetup:
    def test_save_telegram_config_generates_secret(self, client, db):
        make_tenant(db)
        response = client.put(f"/api/tenants/{TENANT_ID}/channels/telegram", json={"botToken": "123:abc"})
        assert response.status_code == 200
        config = response.json()["config"]
        assert config["botToken"] == "123:abc"
        assert len(config["webhookSecret"]) > 20

    def test_webhook_url(self, client, db):
        make_tenant(db)
        response = client.get(f"/api/tenants/{TENANT_ID}/channels/whatsapp/webhook-url")
        assert response.json() == {"url": f"https://receptionist.example.com/hooks/whatsapp/{TENANT_ID}"}

    def test_set_telegram_webhook(self, client, db):
        make_tenant(db)
        add_channel(db, TENANT_ID, "telegram", TELEGRAM_CONFIG)
        with patch(
            "receptionist.services.channels.telegram.TelegramAdapter.set_webhook",
            new_callable=AsyncMock,
            return_value=Result.success({"ok": True}),
        ) as mock_set:
            response = client.post(
                f"/api/tenants/{TENANT_ID}/channels/telegram/set-webhook",
                json={"publicUrl": "https://abc.ngrok.app"},
            )

        assert response.status_code == 200
        assert response.json()["url"] == f"https://abc.ngrok.app/hooks/telegram/{TENANT_ID}"
        assert mock_set.call_args[0][1] == f"https://abc.ngrok.app/hooks/telegram/{TENANT_ID}"

    def test_set_webhook_without_config_is_404(self, client, db):
        make_tenant(db)
        response = client.post(f"/api/tenants/{TENANT_ID}/channels/telegram/set-webhook")
        assert response.status_code == 404
