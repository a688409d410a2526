import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, Text, Uuid, text
from sqlalchemy.orm import relationship

from receptionist.database import Base


class Conversation(Base):
    __tablename__ = "conversations"
    __table_args__ = (
        # At most one active conversation per identity
        Index(
            "uq_conversations_active_identity",
            "tenant_id",
            "customer_id",
            "channel",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Text, ForeignKey("tenants.id"), nullable=False)
    customer_id = Column(Uuid(as_uuid=True), ForeignKey("customers.id"), nullable=False)
    channel = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default="active")  # active, closed
    message_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False)
    last_message_at = Column(DateTime(timezone=True))
    closed_at = Column(DateTime(timezone=True))

    customer = relationship("Customer", back_populates="conversations")
    messages = relationship("Message", back_populates="conversation", order_by="Message.position")
