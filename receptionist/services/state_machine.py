from enum import Enum


class ConversationStatus(str, Enum):
    ACTIVE = "active"
    CLOSED = "closed"


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    RESCHEDULE_REQUESTED = "reschedule_requested"


CONVERSATION_TRANSITIONS = {
    ConversationStatus.ACTIVE: [ConversationStatus.CLOSED],
    ConversationStatus.CLOSED: [],
}

BOOKING_TRANSITIONS = {
    BookingStatus.PENDING: [
        BookingStatus.CONFIRMED,
        BookingStatus.CANCELLED,
        BookingStatus.RESCHEDULE_REQUESTED,
    ],
    BookingStatus.RESCHEDULE_REQUESTED: [
        BookingStatus.PENDING,
        BookingStatus.CONFIRMED,
        BookingStatus.CANCELLED,
    ],
    BookingStatus.CONFIRMED: [BookingStatus.CANCELLED, BookingStatus.RESCHEDULE_REQUESTED],
    BookingStatus.CANCELLED: [],
}


class InvalidTransitionError(Exception):
    def __init__(self, from_state: Enum, to_state: Enum):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"Invalid transition: {from_state.value} -> {to_state.value}")


def _allowed(from_state: Enum) -> list:
    if isinstance(from_state, ConversationStatus):
        return CONVERSATION_TRANSITIONS.get(from_state, [])
    if isinstance(from_state, BookingStatus):
        return BOOKING_TRANSITIONS.get(from_state, [])
    return []


def can_transition(from_state: Enum, to_state: Enum) -> bool:
    """Check if transition is valid."""
    return to_state in _allowed(from_state)


def transition(from_state: Enum, to_state: Enum) -> Enum:
    """Perform state transition. Raises InvalidTransitionError if not allowed."""
    if not can_transition(from_state, to_state):
        raise InvalidTransitionError(from_state, to_state)
    return to_state


def close(current_status: ConversationStatus) -> ConversationStatus:
    """Close an active conversation. Closed conversations are never reopened."""
    return transition(current_status, ConversationStatus.CLOSED)
