from receptionist.models.booking import Booking
from receptionist.models.conversation import Conversation
from receptionist.models.customer import Customer
from receptionist.models.delivery_dedup import DeliveryDedup
from receptionist.models.message import Message
from receptionist.models.tenant import AiTraining, ChannelConfig, Tenant

__all__ = [
    "Tenant",
    "ChannelConfig",
    "AiTraining",
    "Customer",
    "Conversation",
    "Message",
    "Booking",
    "DeliveryDedup",
]
