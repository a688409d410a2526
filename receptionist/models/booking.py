import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Text, Uuid

from receptionist.database import Base


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Text, ForeignKey("tenants.id"), nullable=False)
    customer_id = Column(Uuid(as_uuid=True), ForeignKey("customers.id"))
    conversation_id = Column(Uuid(as_uuid=True), ForeignKey("conversations.id"))
    customer_name = Column(Text)
    service = Column(Text)
    requested_time = Column(Text)  # as extracted from the conversation, not normalized
    status = Column(Text, nullable=False, default="pending")  # pending, confirmed, cancelled, reschedule_requested
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
