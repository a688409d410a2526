import uuid

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from receptionist.database import Base


class Customer(Base):
    __tablename__ = "customers"
    __table_args__ = (
        UniqueConstraint("tenant_id", "channel", "external_id", name="uq_customers_tenant_channel_external"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Text, ForeignKey("tenants.id"), nullable=False)
    channel = Column(Text, nullable=False)
    external_id = Column(Text, nullable=False)  # chat id, phone number, PSID, visitor id
    name = Column(Text)
    email = Column(Text)
    phone = Column(Text)
    customer_metadata = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False)
    last_seen_at = Column(DateTime(timezone=True))

    conversations = relationship("Conversation", back_populates="customer")
