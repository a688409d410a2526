from receptionist.services.conversation_service import (
    close_conversation,
    get_or_open_conversation,
    resolve_customer,
)
from receptionist.services.message_service import (
    MessageRole,
    append_message,
    get_history,
)
from receptionist.services.state_machine import (
    BookingStatus,
    ConversationStatus,
    InvalidTransitionError,
    can_transition,
    transition,
)
