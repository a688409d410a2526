class ReceptionistError(Exception):
    """Base class for domain errors raised by the routing core."""


class TenantNotFoundError(ReceptionistError):
    def __init__(self, tenant_id: str):
        self.tenant_id = tenant_id
        super().__init__(f"Tenant '{tenant_id}' not found")


class ChannelNotConfiguredError(ReceptionistError):
    def __init__(self, tenant_id: str, channel: str):
        self.tenant_id = tenant_id
        self.channel = channel
        super().__init__(f"Channel '{channel}' is not configured for tenant '{tenant_id}'")


class ConversationNotFoundError(ReceptionistError):
    def __init__(self, conversation_id):
        self.conversation_id = conversation_id
        super().__init__(f"Conversation {conversation_id} not found")


class BookingNotFoundError(ReceptionistError):
    def __init__(self, booking_id):
        self.booking_id = booking_id
        super().__init__(f"Booking {booking_id} not found")
