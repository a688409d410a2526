from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from receptionist.models import Booking
from receptionist.services.errors import BookingNotFoundError
from receptionist.services.state_machine import BookingStatus, transition


def create_pending_booking(
    db: Session,
    tenant_id: str,
    customer_id: Optional[UUID],
    conversation_id: Optional[UUID],
    data: dict,
    fallback_name: Optional[str] = None,
) -> Booking:
    """Record a booking request extracted from a conversation. Approval happens elsewhere."""
    now = datetime.now(timezone.utc)
    booking = Booking(
        tenant_id=tenant_id,
        customer_id=customer_id,
        conversation_id=conversation_id,
        customer_name=data.get("customer_name") or fallback_name,
        service=data.get("service"),
        requested_time=data.get("datetime"),
        status=BookingStatus.PENDING.value,
        notes=data.get("notes"),
        created_at=now,
        updated_at=now,
    )
    db.add(booking)
    db.commit()
    return booking


def get_booking(db: Session, tenant_id: str, booking_id: UUID) -> Booking:
    booking = db.query(Booking).filter(Booking.tenant_id == tenant_id, Booking.id == booking_id).first()
    if not booking:
        raise BookingNotFoundError(booking_id)
    return booking


def list_bookings(db: Session, tenant_id: str, status: Optional[str] = None) -> list[Booking]:
    query = db.query(Booking).filter(Booking.tenant_id == tenant_id)
    if status:
        query = query.filter(Booking.status == status)
    return query.order_by(Booking.created_at.desc()).all()


def update_booking_status(
    db: Session,
    booking: Booking,
    new_status: BookingStatus,
    notes: Optional[str] = None,
) -> Booking:
    """Apply an owner action. Raises InvalidTransitionError for illegal moves."""
    booking.status = transition(BookingStatus(booking.status), new_status).value
    if notes is not None:
        booking.notes = notes
    booking.updated_at = datetime.now(timezone.utc)
    db.commit()
    return booking
